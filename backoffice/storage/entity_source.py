from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterable, List, Protocol, Union

from pydantic import TypeAdapter

from backoffice.errors import NotFoundError, ValidationError
from backoffice.models.entity import ENTITY_KINDS, Associate, Customer, EntityRecord, Partner
from .json_repo import JsonRepository

_record_adapter: TypeAdapter = TypeAdapter(EntityRecord)

AnyRecord = Union[Customer, Partner, Associate]

FILES: Dict[str, str] = {
    "customer": "customers.json",
    "partner": "partners.json",
    "associate": "associates.json",
}


def _check_kind(kind: str) -> None:
    if kind not in ENTITY_KINDS:
        raise ValidationError(f"type d'entité inconnu: {kind!r}", kind=kind)


class EntitySource(Protocol):
    def get(self, kind: str, entity_id: str) -> AnyRecord: ...

    def list(self, kind: str) -> List[AnyRecord]: ...


class JsonEntitySource:
    """Clients, partenaires et associés, un fichier JSON par type (lecture seule côté facturation)."""

    def __init__(self, base_dir: os.PathLike | str, *, backup_enabled: bool = True, backup_keep: int = 5):
        base = Path(base_dir)
        base.mkdir(parents=True, exist_ok=True)
        self.repos: Dict[str, JsonRepository] = {
            kind: JsonRepository(base / fname, entity_name=kind, key="id",
                                 backup_enabled=backup_enabled, backup_keep=backup_keep)
            for kind, fname in FILES.items()
        }

    @staticmethod
    def _parse(kind: str, d: dict) -> AnyRecord:
        return _record_adapter.validate_python({**d, "kind": kind})

    def get(self, kind: str, entity_id: str) -> AnyRecord:
        _check_kind(kind)
        d = self.repos[kind].get_by_id(entity_id)
        if d is None:
            raise NotFoundError(kind, entity_id)
        return self._parse(kind, d)

    def list(self, kind: str) -> List[AnyRecord]:
        _check_kind(kind)
        return [self._parse(kind, d) for d in self.repos[kind].list_all()]

    def save(self, record: AnyRecord) -> AnyRecord:
        self.repos[record.kind].upsert(record.model_dump(mode="json"))
        return record


class MemoryEntitySource:
    def __init__(self, records: Iterable[AnyRecord] = ()):
        self._data: Dict[str, Dict[str, AnyRecord]] = {k: {} for k in ENTITY_KINDS}
        for r in records:
            self.save(r)

    def get(self, kind: str, entity_id: str) -> AnyRecord:
        _check_kind(kind)
        try:
            return self._data[kind][entity_id]
        except KeyError:
            raise NotFoundError(kind, entity_id) from None

    def list(self, kind: str) -> List[AnyRecord]:
        _check_kind(kind)
        return list(self._data[kind].values())

    def save(self, record: AnyRecord) -> AnyRecord:
        self._data[record.kind][record.id] = record
        return record
