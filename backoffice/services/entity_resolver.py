from __future__ import annotations

from typing import Callable, Dict, List

from backoffice.models.entity import Associate, BillableEntity, Contact, Customer, Partner
from backoffice.storage.entity_source import AnyRecord, EntitySource


def _from_customer(c: Customer) -> BillableEntity:
    return BillableEntity(
        id=c.id, kind="customer", display_name=c.name,
        contact=Contact(email=c.email, phone=c.phone),
        company=c.company, country=c.country,
        outstanding_balance=0,
    )


def _from_partner(p: Partner) -> BillableEntity:
    return BillableEntity(
        id=p.id, kind="partner", display_name=p.name,
        contact=Contact(email=p.email, phone=p.phone),
        company=p.company, country=p.country,
        outstanding_balance=p.debt,
    )


def _from_associate(a: Associate) -> BillableEntity:
    # commission_due absente sur les anciens enregistrements -> solde disponible
    due = a.commission_due if a.commission_due is not None else a.available_balance
    return BillableEntity(
        id=a.id, kind="associate", display_name=a.full_name,
        contact=Contact(email=a.email, phone=a.phone),
        outstanding_balance=due,
    )


_NORMALIZERS: Dict[str, Callable] = {
    "customer": _from_customer,
    "partner": _from_partner,
    "associate": _from_associate,
}


def normalize(record: AnyRecord) -> BillableEntity:
    return _NORMALIZERS[record.kind](record)


class BillableEntityResolver:
    """Lecture seule : enregistrement source -> profil facturable uniforme."""

    def __init__(self, source: EntitySource) -> None:
        self.source = source

    def resolve(self, kind: str, entity_id: str) -> BillableEntity:
        """Lève NotFoundError si l'id n'existe pas pour ce type."""
        return normalize(self.source.get(kind, entity_id))

    def list(self, kind: str) -> List[BillableEntity]:
        return [normalize(r) for r in self.source.list(kind)]
