"""
Machine à états des factures.

    draft ──send──> pending ──record_payment──> paid
      │                │
      └──cancel──> cancelled <──cancel──┘

``paid`` et ``cancelled`` sont terminaux. ``overdue`` n'est jamais stocké :
c'est une vue calculée à la lecture (``is_overdue``) à partir du statut, de
l'échéance et de l'horloge.

Toutes les vérifications sont faites avant la moindre écriture : une
transition refusée laisse la facture strictement inchangée.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Union

from backoffice.errors import InvalidTransitionError, ValidationError
from backoffice.models.common import Clock, SystemClock
from backoffice.models.invoice import DisplayStatus, Invoice, can_transition

log = logging.getLogger(__name__)


def is_overdue(invoice: Invoice, now: Union[datetime, date]) -> bool:
    today = now.date() if isinstance(now, datetime) else now
    return invoice.status == "pending" and today > invoice.due_date


def display_status(invoice: Invoice, now: Union[datetime, date]) -> DisplayStatus:
    return "overdue" if is_overdue(invoice, now) else invoice.status


class InvoiceLifecycle:
    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock = clock or SystemClock()

    def _check(self, inv: Invoice, target: str) -> None:
        if not can_transition(inv.status, target):
            raise InvalidTransitionError(inv.status, target)

    def _apply(self, inv: Invoice, target: str, **changes) -> Invoice:
        previous = inv.status
        for field, value in changes.items():
            setattr(inv, field, value)
        inv.status = target
        inv.touch(self.clock.now())
        log.info("Facture %s: %s -> %s", inv.number, previous, target)
        return inv

    # ----------- transitions -----------
    def send(self, inv: Invoice) -> Invoice:
        """draft -> pending."""
        self._check(inv, "pending")
        return self._apply(inv, "pending")

    def record_payment(self, inv: Invoice, payment_date: Optional[date], method: Optional[str]) -> Invoice:
        """pending -> paid ; date et moyen de paiement obligatoires."""
        self._check(inv, "paid")
        if payment_date is None:
            raise ValidationError("La date de paiement est requise", field="payment_date")
        if isinstance(payment_date, datetime):
            payment_date = payment_date.date()
        method = (method or "").strip()
        if not method:
            raise ValidationError("Le moyen de paiement est requis", field="payment_method")
        if payment_date < inv.issue_date:
            raise ValidationError("Paiement antérieur à la date de facturation", field="payment_date")
        return self._apply(inv, "paid", payment_date=payment_date, payment_method=method)

    def cancel(self, inv: Invoice) -> Invoice:
        self._check(inv, "cancelled")
        return self._apply(inv, "cancelled")

    # ----------- hors machine à états -----------
    def update_notes(self, inv: Invoice, notes: Optional[str]) -> Invoice:
        """Seul champ modifiable quel que soit le statut."""
        inv.notes = notes
        inv.touch(self.clock.now())
        return inv

    def is_overdue(self, inv: Invoice, now: Optional[datetime] = None) -> bool:
        return is_overdue(inv, now or self.clock.now())

    def display_status(self, inv: Invoice, now: Optional[datetime] = None) -> DisplayStatus:
        return display_status(inv, now or self.clock.now())
