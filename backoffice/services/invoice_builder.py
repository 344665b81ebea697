from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Union

from pydantic import ValidationError as PydanticValidationError

from backoffice.errors import ValidationError
from backoffice.models.common import Clock, SystemClock
from backoffice.models.entity import BillableEntity
from backoffice.models.invoice import ClientInfo, Invoice, InvoiceItem, compute_tax
from backoffice.models.template import InvoiceTemplate
from .template_catalog import InvoiceTemplateCatalog

log = logging.getLogger(__name__)

ItemLike = Union[InvoiceItem, Mapping[str, Any]]


class NumberAllocator(Protocol):
    def next(self, on: date) -> str: ...


def _whole(v: Any) -> Any:
    """2.0 -> 2 ; toute autre valeur est rendue telle quelle."""
    if isinstance(v, float) and v.is_integer():
        return int(v)
    return v


def _is_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _item_fields(it: ItemLike) -> dict:
    if isinstance(it, InvoiceItem):
        return {"description": it.description, "quantity": it.quantity, "unit_price": it.unit_price}
    d = dict(it)
    return {
        "description": str(d.get("description") or "").strip(),
        "quantity": _whole(d.get("quantity", d.get("qty", 1))),
        "unit_price": _whole(d.get("unit_price", d.get("unitPrice", 0))),
    }


def _is_blank(row: dict) -> bool:
    # ligne laissée vide dans le formulaire : ni description ni prix
    return not row["description"] and row["unit_price"] in (None, 0, "")


def client_snapshot(entity: BillableEntity) -> ClientInfo:
    return ClientInfo(
        name=entity.display_name,
        email=entity.contact.email,
        phone=entity.contact.phone,
        company=entity.company,
        country=entity.country,
    )


class InvoiceBuilder:
    """
    Seul point de création d'une facture : modèle + entité (+ saisie manuelle)
    -> Invoice validée, totaux calculés, numéro alloué.
    """

    def __init__(
        self,
        catalog: InvoiceTemplateCatalog,
        numbering: NumberAllocator,
        clock: Optional[Clock] = None,
        default_due_days: int = 30,
    ) -> None:
        self.catalog = catalog
        self.numbering = numbering
        self.clock = clock or SystemClock()
        self.default_due_days = default_due_days

    # ----------- validation -----------
    def _validate_items(self, rows: List[dict]) -> List[dict]:
        errors: List[str] = []
        usable: List[dict] = []
        for idx, row in enumerate(rows, start=1):
            if _is_blank(row):
                continue
            usable.append(row)
            if not row["description"]:
                errors.append(f"La description de l'article {idx} est requise")
            qty = row["quantity"]
            if not _is_int(qty) or qty <= 0:
                errors.append(f"La quantité de l'article {idx} doit être un entier supérieur à 0")
            price = row["unit_price"]
            if not _is_int(price):
                errors.append(f"Le prix unitaire de l'article {idx} doit être un montant entier")
            elif price < 0:
                errors.append(f"Le prix unitaire de l'article {idx} ne peut pas être négatif")
        if not usable:
            errors.append("Au moins un article avec description et quantité > 0 est requis")
        if errors:
            raise ValidationError("Articles invalides", errors=errors)
        if len(usable) != len(rows):
            log.debug("%d ligne(s) vide(s) ignorée(s)", len(rows) - len(usable))
        return usable

    # ----------- construction -----------
    def build(
        self,
        template: InvoiceTemplate,
        entity: Optional[BillableEntity],
        items: Optional[Iterable[ItemLike]] = None,
        manual_amount: Optional[int] = None,
        issue_date: Optional[date] = None,
        due_date: Optional[date] = None,
        *,
        description: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Invoice:
        if entity is None:
            raise ValidationError("Le client est requis", field="entity")
        if entity.kind != template.target_entity_kind:
            raise ValidationError(
                f"Le modèle {template.kind} s'applique à un(e) {template.target_entity_kind}, pas {entity.kind}",
                field="entity",
            )

        issue = issue_date or self.clock.today()
        due = due_date or (issue + timedelta(days=self.default_due_days))
        if due < issue:
            raise ValidationError("La date d'échéance précède la date de facturation", field="due_date")

        if items is None:
            amount = self.catalog.resolve_amount(template, entity, manual_amount)
            rows = [{
                "description": (description or "").strip() or template.default_description,
                "quantity": 1,
                "unit_price": amount,
            }]
        else:
            rows = [_item_fields(it) for it in items]
        rows = self._validate_items(rows)

        try:
            line_items = [InvoiceItem(**r) for r in rows]
        except PydanticValidationError as e:
            raise ValidationError("Articles invalides", errors=[err["msg"] for err in e.errors()]) from e

        subtotal = sum(it.line_total for it in line_items)
        tax = compute_tax(subtotal, template.tax_rate)
        now = self.clock.now()

        number = self.numbering.next(issue)
        try:
            inv = Invoice(
                number=number,
                entity_id=entity.id,
                entity_kind=entity.kind,
                client_info=client_snapshot(entity),
                items=line_items,
                subtotal=subtotal,
                tax_rate=template.tax_rate,
                tax_amount=tax,
                total=subtotal + tax,
                issue_date=issue,
                due_date=due,
                status=template.initial_status,
                notes=notes,
                template_kind=template.kind,
                invoice_type=template.invoice_type,
                created_at=now,
                updated_at=now,
            )
        except PydanticValidationError as e:
            raise ValidationError("Facture invalide", errors=[err["msg"] for err in e.errors()]) from e

        log.info("Facture %s construite (%s, %s %s, total=%d)",
                 inv.number, template.kind, entity.kind, entity.id, inv.total)
        return inv
