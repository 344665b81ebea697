# backoffice/services/invoice_service.py
from __future__ import annotations

import logging
import os
from datetime import date
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from backoffice.errors import ExportUnavailable, ValidationError
from backoffice.models.common import Clock, SystemClock
from backoffice.models.invoice import DisplayStatus, Invoice
from backoffice.models.entity import EntityKind
from backoffice.models.revenue import PaymentRecord, RawRevenueTotals, ReconciliationResult
from backoffice.models.stats import InvoiceStats
from backoffice.models.template import InvoiceTemplate
from backoffice.storage.entity_source import EntitySource, JsonEntitySource
from backoffice.storage.invoice_repo import InvoiceRepository
from backoffice.storage.sequence import InvoiceNumberSequence
from backoffice.storage.settings import Settings, data_dir, load_settings
from .entity_resolver import BillableEntityResolver
from .export_gateway import DocumentExportGateway, ExportFormat, InvoiceExportView, Renderer, build_export_view
from .invoice_builder import InvoiceBuilder, ItemLike
from .invoice_lifecycle import InvoiceLifecycle, display_status
from .revenue_reconciler import RevenueReconciler
from .stats_service import compute_stats
from .template_catalog import InvoiceTemplateCatalog

log = logging.getLogger(__name__)

DateRange = Tuple[Optional[date], Optional[date]]


class InvoiceFilter(BaseModel):
    status: Optional[DisplayStatus] = None
    client_kind: Optional[EntityKind] = None
    entity_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None

    def matches(self, inv: Invoice, now) -> bool:
        if self.status and display_status(inv, now) != self.status:
            return False
        if self.client_kind and inv.entity_kind != self.client_kind:
            return False
        if self.entity_id and inv.entity_id != self.entity_id:
            return False
        if self.date_from and inv.issue_date < self.date_from:
            return False
        if self.date_to and inv.issue_date > self.date_to:
            return False
        term = (self.search or "").strip().casefold()
        if term:
            haystack = [inv.number, inv.client_info.name, inv.client_info.email or "",
                        inv.client_info.company or "", *(it.description for it in inv.items)]
            if not any(term in h.casefold() for h in haystack):
                return False
        return True


# ---------- Service ----------
class InvoiceService:
    """
    Point d'entrée du cœur facturation : construction, cycle de vie,
    listes, statistiques, répartition du CA et vue d'export.
    """

    def __init__(
        self,
        data_path: Optional[os.PathLike | str] = None,
        *,
        entities: Optional[EntitySource] = None,
        settings: Optional[Settings] = None,
        catalog: Optional[InvoiceTemplateCatalog] = None,
        clock: Optional[Clock] = None,
        renderer: Optional[Renderer] = None,
    ) -> None:
        base = data_dir(data_path)
        base.mkdir(parents=True, exist_ok=True)
        self.settings = settings or load_settings(base)
        self.clock = clock or SystemClock()

        backup = self.settings.backup
        self.repo = InvoiceRepository(base / "invoices.json", backup_enabled=backup.enabled, backup_keep=backup.keep)
        self.numbering = InvoiceNumberSequence(
            base / "invoice_sequence.json",
            prefix=self.settings.numbering.invoice_prefix,
            exists=self.repo.number_exists,
        )
        self.catalog = catalog or InvoiceTemplateCatalog.from_settings(self.settings)
        self.resolver = BillableEntityResolver(entities or JsonEntitySource(base, backup_enabled=backup.enabled,
                                                                            backup_keep=backup.keep))
        self.builder = InvoiceBuilder(self.catalog, self.numbering, clock=self.clock,
                                      default_due_days=self.settings.invoicing.default_due_days)
        self.lifecycle = InvoiceLifecycle(self.clock)
        self.reconciler = RevenueReconciler()
        self.exporter = DocumentExportGateway(renderer) if renderer else None

    # ----------- création -----------
    def templates(self) -> List[InvoiceTemplate]:
        return self.catalog.list()

    def build(
        self,
        template_kind: str,
        entity_id: str,
        items: Optional[Iterable[ItemLike]] = None,
        manual_amount: Optional[int] = None,
        issue_date: Optional[date] = None,
        due_date: Optional[date] = None,
        *,
        description: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Invoice:
        template = self.catalog.get(template_kind)
        entity = self.resolver.resolve(template.target_entity_kind, entity_id)
        inv = self.builder.build(template, entity, items, manual_amount, issue_date, due_date,
                                 description=description, notes=notes)
        return self.repo.create(inv)

    # ----------- cycle de vie -----------
    def _transition(self, invoice_id: str, apply: Callable[[Invoice], Invoice]) -> Invoice:
        # relecture sous verrou : un second appel concurrent voit l'état déjà écrit
        with self.repo.locked():
            inv = self.repo.get_by_id(invoice_id)
            apply(inv)
            return self.repo.update(inv)

    def send(self, invoice_id: str) -> Invoice:
        return self._transition(invoice_id, self.lifecycle.send)

    def record_payment(self, invoice_id: str, payment_date: Optional[date] = None, method: Optional[str] = None) -> Invoice:
        return self._transition(invoice_id, lambda inv: self.lifecycle.record_payment(inv, payment_date, method))

    def cancel(self, invoice_id: str) -> Invoice:
        return self._transition(invoice_id, self.lifecycle.cancel)

    def update_notes(self, invoice_id: str, notes: Optional[str]) -> Invoice:
        return self._transition(invoice_id, lambda inv: self.lifecycle.update_notes(inv, notes))

    # ----------- lecture -----------
    def get(self, invoice_id: str) -> Invoice:
        return self.repo.get_by_id(invoice_id)

    def get_by_number(self, number: str) -> Invoice:
        return self.repo.get_by_number(number)

    def list_by_filter(
        self,
        status: Optional[str] = None,
        client_kind: Optional[str] = None,
        date_range: Optional[DateRange] = None,
        search: Optional[str] = None,
        *,
        entity_id: Optional[str] = None,
    ) -> List[Invoice]:
        date_from, date_to = date_range or (None, None)
        if date_from and date_to and date_to < date_from:
            raise ValidationError("Plage de dates inversée", field="date_range")
        try:
            flt = InvoiceFilter(status=status or None, client_kind=client_kind or None, entity_id=entity_id,
                                date_from=date_from, date_to=date_to, search=search)
        except PydanticValidationError as e:
            raise ValidationError("Filtre invalide", errors=[err["msg"] for err in e.errors()]) from e
        now = self.clock.now()
        invoices = self.repo.list(lambda inv: flt.matches(inv, now))
        return sorted(invoices, key=lambda inv: (inv.issue_date, inv.number), reverse=True)

    def compute_stats(self, date_range: Optional[DateRange] = None) -> InvoiceStats:
        invoices = self.list_by_filter(date_range=date_range) if date_range else self.repo.list()
        return compute_stats(invoices, self.clock.now())

    def reconcile_revenue(
        self,
        raw_totals: Union[RawRevenueTotals, Mapping[str, Any]],
        payments: Optional[Iterable[Union[PaymentRecord, Mapping[str, Any]]]] = None,
    ) -> ReconciliationResult:
        return self.reconciler.reconcile(raw_totals, payments)

    # ----------- export -----------
    def export_view(self, invoice_id: str) -> InvoiceExportView:
        inv = self.repo.get_by_id(invoice_id)
        return build_export_view(inv, self.settings.company, self.clock.now(), currency=self.settings.currency)

    def export(self, invoice_id: str, fmt: ExportFormat = "pdf") -> bytes:
        if self.exporter is None:
            raise ExportUnavailable("Aucun moteur de rendu configuré pour l'export")
        return self.exporter.export(self.export_view(invoice_id), fmt)
