from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .common import Amount, gen_id, utcnow
from .entity import EntityKind
from .template import InvoiceType

InvoiceStatus = Literal["draft", "pending", "paid", "cancelled"]
# "overdue" n'existe qu'à la lecture, jamais en base
DisplayStatus = Literal["draft", "pending", "overdue", "paid", "cancelled"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"paid", "cancelled"})

# arêtes autorisées du cycle de vie ; "overdue" n'est pas un état
TRANSITIONS: Dict[str, FrozenSet[str]] = {
    "draft": frozenset({"pending", "cancelled"}),
    "pending": frozenset({"paid", "cancelled"}),
    "paid": frozenset(),
    "cancelled": frozenset(),
}

# modifiables quel que soit le statut
ALWAYS_EDITABLE: frozenset[str] = frozenset({"notes", "updated_at"})


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def compute_tax(subtotal: int, tax_rate: float) -> int:
    """TVA arrondie à l'unité (FCFA), arrondi commercial."""
    raw = Decimal(int(subtotal)) * Decimal(str(tax_rate))
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class InvoiceItem(BaseModel):
    description: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    unit_price: Amount = 0
    line_total: Amount = 0  # snapshot

    @field_validator("description")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("description vide")
        return v

    @model_validator(mode="before")
    @classmethod
    def _fill_total(cls, data):
        if isinstance(data, dict) and data.get("line_total") in (None, 0):
            try:
                data = {**data, "line_total": int(data.get("quantity", 0)) * int(data.get("unit_price", 0))}
            except (TypeError, ValueError):
                pass
        return data

    @model_validator(mode="after")
    def _check_total(self) -> "InvoiceItem":
        if self.line_total != self.quantity * self.unit_price:
            raise ValueError("line_total != quantity × unit_price")
        return self


class ClientInfo(BaseModel):
    """Coordonnées du client figées au moment de la facturation."""

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    country: Optional[str] = None


class Invoice(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=gen_id)
    number: str = Field(alias="invoice_number")

    entity_id: str = Field(alias="client_id")
    entity_kind: EntityKind = Field(alias="client_type")
    client_info: ClientInfo = Field(alias="client_info_snapshot")

    items: List[InvoiceItem] = Field(min_length=1)
    subtotal: Amount = 0
    tax_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    tax_amount: Amount = Field(default=0, alias="tax")
    total: Amount = 0

    issue_date: date
    due_date: date
    status: InvoiceStatus = "draft"
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None

    template_kind: str
    invoice_type: InvoiceType = "manual"

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_invariants(self) -> "Invoice":
        if self.due_date < self.issue_date:
            raise ValueError("due_date antérieure à issue_date")
        if self.subtotal != sum(it.line_total for it in self.items):
            raise ValueError("subtotal != Σ line_total")
        if self.tax_amount != compute_tax(self.subtotal, self.tax_rate):
            raise ValueError("tax != subtotal × tax_rate")
        if self.total != self.subtotal + self.tax_amount:
            raise ValueError("total != subtotal + tax")
        if self.status == "paid" and (self.payment_date is None or not self.payment_method):
            raise ValueError("facture payée sans date ni moyen de paiement")
        return self

    # helpers
    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_record(self) -> dict:
        """Forme persistée (noms logiques)."""
        return self.model_dump(mode="json", by_alias=True)

    def touch(self, at: Optional[datetime] = None) -> None:
        object.__setattr__(self, "updated_at", at or utcnow())
