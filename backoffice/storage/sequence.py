from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from .json_repo import atomic_write_text, file_lock

log = logging.getLogger(__name__)


class InvoiceNumberSequence:
    """
    Compteur durable par période (année+mois) pour les numéros de facture.

    Format : ``{prefix}{YYYY}{MM}-{seq:04d}``, ex. ``INV-202406-0007``.
    L'allocation est sérialisée par un verrou process-wide sur le fichier et
    persistée avant d'être rendue : un numéro sorti n'est jamais réattribué,
    même si la facture n'est finalement pas enregistrée.
    ``exists`` (optionnel) permet de sauter un numéro déjà présent en base
    (reprise d'un compteur perdu).
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        prefix: str = "INV-",
        exists: Optional[Callable[[str], bool]] = None,
    ) -> None:
        self.filepath = Path(filepath)
        self.prefix = prefix
        self.exists = exists
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        self._lock = file_lock(self.filepath)

    @staticmethod
    def period_of(d: date) -> str:
        return f"{d.year:04d}{d.month:02d}"

    def _read(self) -> Dict[str, int]:
        if not self.filepath.exists():
            return {}
        data = json.loads(self.filepath.read_text(encoding="utf-8") or "{}")
        if not isinstance(data, dict):
            raise ValueError(f"compteur de numérotation invalide: {self.filepath}")
        return {str(k): int(v) for k, v in data.items()}

    def _write(self, counters: Dict[str, int]) -> None:
        atomic_write_text(self.filepath, json.dumps(counters, indent=2, sort_keys=True))

    def format(self, period: str, seq: int) -> str:
        return f"{self.prefix}{period}-{seq:04d}"

    def peek(self, on: date) -> str:
        """Prochain numéro, sans le réserver."""
        with self._lock:
            period = self.period_of(on)
            return self.format(period, self._read().get(period, 0) + 1)

    def next(self, on: date) -> str:
        period = self.period_of(on)
        with self._lock:
            counters = self._read()
            seq = counters.get(period, 0)
            while True:
                seq += 1
                number = self.format(period, seq)
                if self.exists is None or not self.exists(number):
                    break
                log.warning("Numéro %s déjà utilisé, compteur avancé", number)
            counters[period] = seq
            self._write(counters)
        return number
