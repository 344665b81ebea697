from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class InvoiceStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_invoices: int = 0
    total_amount: int = 0
    paid_invoices: int = 0
    paid_amount: int = 0
    # en attente et pas encore échues
    pending_invoices: int = 0
    pending_amount: int = 0
    overdue_invoices: int = 0
    overdue_amount: int = 0
    draft_invoices: int = 0
    cancelled_invoices: int = 0
