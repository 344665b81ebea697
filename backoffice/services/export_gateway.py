from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

from backoffice.errors import ExportFailed
from backoffice.models.invoice import DisplayStatus, Invoice
from backoffice.storage.settings import CompanyInfo
from .invoice_lifecycle import display_status

log = logging.getLogger(__name__)

ExportFormat = Literal["pdf", "csv"]

FOOTER_LINE = "Merci de votre confiance."


def format_xaf(amount: int) -> str:
    """150000 -> '150 000 FCFA'."""
    return f"{int(amount):,}".replace(",", " ") + " FCFA"


# ---------- Vue d'export (lecture seule) ---------- #

class _View(BaseModel):
    model_config = ConfigDict(frozen=True)


class ExportHeader(_View):
    company_name: str
    company_city: str
    title: str
    invoice_number: str
    issue_date: date
    due_date: date
    status: DisplayStatus


class ExportClientBlock(_View):
    kind: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    country: Optional[str] = None


class ExportLine(_View):
    description: str
    quantity: int
    unit_price: int
    line_total: int


class ExportTotals(_View):
    currency: str
    subtotal: int
    tax_rate: float
    tax_amount: int
    total: int
    total_display: str


class ExportFooter(_View):
    closing: str
    company_email: str
    company_phone: str
    company_address: str
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    generated_at: datetime


class InvoiceExportView(_View):
    header: ExportHeader
    client_block: ExportClientBlock
    items: List[ExportLine]
    totals: ExportTotals
    footer_metadata: ExportFooter


def build_export_view(inv: Invoice, company: CompanyInfo, now: datetime, currency: str = "XAF") -> InvoiceExportView:
    return InvoiceExportView(
        header=ExportHeader(
            company_name=company.name,
            company_city=f"{company.city}, {company.country}".strip(", "),
            title="FACTURE",
            invoice_number=inv.number,
            issue_date=inv.issue_date,
            due_date=inv.due_date,
            status=display_status(inv, now),
        ),
        client_block=ExportClientBlock(kind=inv.entity_kind, **inv.client_info.model_dump()),
        items=[ExportLine(**it.model_dump()) for it in inv.items],
        totals=ExportTotals(
            currency=currency,
            subtotal=inv.subtotal,
            tax_rate=inv.tax_rate,
            tax_amount=inv.tax_amount,
            total=inv.total,
            total_display=format_xaf(inv.total),
        ),
        footer_metadata=ExportFooter(
            closing=FOOTER_LINE,
            company_email=company.email,
            company_phone=company.phone,
            company_address=company.address,
            payment_date=inv.payment_date,
            payment_method=inv.payment_method,
            notes=inv.notes,
            generated_at=now,
        ),
    )


Renderer = Callable[[InvoiceExportView, ExportFormat], bytes]


class DocumentExportGateway:
    """
    Transmet la vue à un moteur de rendu externe (PDF/CSV).
    Aucune relance interne : un échec remonte en ExportFailed, l'appelant décide.
    L'export n'a aucun effet sur l'état de la facture.
    """

    def __init__(self, renderer: Renderer) -> None:
        self.renderer = renderer

    def export(self, view: InvoiceExportView, fmt: ExportFormat = "pdf") -> bytes:
        number = view.header.invoice_number
        try:
            return self.renderer(view, fmt)
        except Exception as e:
            log.warning("Export %s de %s en échec: %s", fmt, number, e)
            raise ExportFailed(e, invoice_number=number) from e
