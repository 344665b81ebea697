from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import ValidationError

from backoffice.errors import InvalidTransitionError, NotFoundError
from backoffice.models.invoice import ALWAYS_EDITABLE, Invoice, can_transition
from .json_repo import JsonRepository

log = logging.getLogger(__name__)


class InvoiceRepository:
    """
    Persistance des factures (data/invoices.json).
    Pas de suppression : une facture annulée reste en base.
    """

    def __init__(self, path: os.PathLike | str, *, backup_enabled: bool = True, backup_keep: int = 5):
        self.repo = JsonRepository(
            Path(path), entity_name="invoice", key="id",
            backup_enabled=backup_enabled, backup_keep=backup_keep,
        )

    def _hydrate(self, d: dict) -> Optional[Invoice]:
        try:
            return Invoice.model_validate(d)
        except ValidationError as e:
            # On ignore les entrées invalides pour ne pas casser les listes
            log.warning("Facture illisible ignorée (id=%s): %s", d.get("id"), e.error_count())
            return None

    # ----------- lecture -----------
    def list(self, predicate: Optional[Callable[[Invoice], bool]] = None) -> List[Invoice]:
        out: List[Invoice] = []
        for d in self.repo.list_all():
            inv = self._hydrate(d)
            if inv is not None and (predicate is None or predicate(inv)):
                out.append(inv)
        return out

    def get_by_id(self, invoice_id: str) -> Invoice:
        d = self.repo.get_by_id(invoice_id)
        inv = self._hydrate(d) if d else None
        if inv is None:
            raise NotFoundError("invoice", invoice_id)
        return inv

    def get_by_number(self, number: str) -> Invoice:
        d = self.repo.find_one(lambda x: x.get("invoice_number") == number)
        inv = self._hydrate(d) if d else None
        if inv is None:
            raise NotFoundError("invoice", number)
        return inv

    def number_exists(self, number: str) -> bool:
        return self.repo.find_one(lambda x: x.get("invoice_number") == number) is not None

    # ----------- écriture -----------
    def create(self, inv: Invoice) -> Invoice:
        with self.repo.locked():
            if self.number_exists(inv.number):
                raise ValueError(f"invoice number {inv.number} already exists")
            self.repo.add(inv.to_record())
        return inv

    def _check_rewrite(self, stored: Invoice, inv: Invoice) -> None:
        """Le statut ne suit que les arêtes du cycle de vie ; une facture terminale ne change plus que ses notes."""
        if stored.status != inv.status:
            if not can_transition(stored.status, inv.status):
                raise InvalidTransitionError(stored.status, inv.status, reason="réécriture refusée")
            return
        if stored.is_terminal:
            before = stored.model_dump(exclude=set(ALWAYS_EDITABLE))
            after = inv.model_dump(exclude=set(ALWAYS_EDITABLE))
            changed = sorted(k for k in before if before[k] != after.get(k))
            if changed:
                raise InvalidTransitionError(stored.status, inv.status,
                                             reason=f"facture figée, champs modifiés: {', '.join(changed)}")

    def update(self, inv: Invoice) -> Invoice:
        with self.repo.locked():
            stored = self.get_by_id(inv.id)
            self._check_rewrite(stored, inv)
            self.repo.update(inv.to_record())
        return inv

    def locked(self):
        return self.repo.locked()
