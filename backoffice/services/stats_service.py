from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Union

from backoffice.models.invoice import Invoice
from backoffice.models.stats import InvoiceStats
from .invoice_lifecycle import is_overdue


def compute_stats(invoices: Iterable[Invoice], now: Union[datetime, date]) -> InvoiceStats:
    """
    Compteurs et montants par statut.

    Les factures en retard sont celles dont ``is_overdue`` est vrai au moment
    ``now`` ; elles sont comptées dans ``overdue_*`` et non dans ``pending_*``,
    leur statut stocké restant ``pending``. Les annulées sont comptées dans
    ``total_invoices`` mais pas dans ``total_amount``.
    """
    c = dict(total=0, total_amt=0, paid=0, paid_amt=0, pending=0, pending_amt=0,
             overdue=0, overdue_amt=0, draft=0, cancelled=0)
    for inv in invoices:
        c["total"] += 1
        if inv.status == "cancelled":
            c["cancelled"] += 1
            continue
        c["total_amt"] += inv.total
        if inv.status == "paid":
            c["paid"] += 1
            c["paid_amt"] += inv.total
        elif inv.status == "draft":
            c["draft"] += 1
        elif is_overdue(inv, now):
            c["overdue"] += 1
            c["overdue_amt"] += inv.total
        else:
            c["pending"] += 1
            c["pending_amt"] += inv.total

    return InvoiceStats(
        total_invoices=c["total"],
        total_amount=c["total_amt"],
        paid_invoices=c["paid"],
        paid_amount=c["paid_amt"],
        pending_invoices=c["pending"],
        pending_amount=c["pending_amt"],
        overdue_invoices=c["overdue"],
        overdue_amount=c["overdue_amt"],
        draft_invoices=c["draft"],
        cancelled_invoices=c["cancelled"],
    )
