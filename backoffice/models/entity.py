from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field

from .common import Amount, gen_id

EntityKind = Literal["customer", "partner", "associate"]
ENTITY_KINDS: tuple[str, ...] = ("customer", "partner", "associate")


class Contact(BaseModel):
    email: EmailStr | None = None
    phone: str | None = None


# ---------- Enregistrements source (variante étiquetée par `kind`) ---------- #

class Customer(BaseModel):
    kind: Literal["customer"] = "customer"
    id: str = Field(default_factory=gen_id)
    name: str
    email: EmailStr | None = None
    phone: str | None = None
    company: str | None = None
    city: str | None = None
    country: str | None = None


class Partner(BaseModel):
    kind: Literal["partner"] = "partner"
    id: str = Field(default_factory=gen_id)
    name: str
    company: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    city: str | None = None
    country: str | None = None
    plan: Literal["starter", "pro", "business"] = "starter"
    status: Literal["active", "suspended", "inactive"] = "active"
    commission_rate: float = 0.0
    debt: Amount = 0


class Associate(BaseModel):
    kind: Literal["associate"] = "associate"
    id: str = Field(default_factory=gen_id)
    first_name: str
    last_name: str = ""
    email: EmailStr | None = None
    phone: str | None = None
    status: Literal["active", "inactive"] = "active"
    commission_rate: float = 0.0
    commission_due: Optional[Amount] = None
    available_balance: Amount = 0

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


EntityRecord = Annotated[Union[Customer, Partner, Associate], Field(discriminator="kind")]


# ---------- Profil normalisé ---------- #

class BillableEntity(BaseModel):
    """Cible de facturation, quelle que soit sa nature."""

    id: str
    kind: EntityKind
    display_name: str
    contact: Contact = Field(default_factory=Contact)
    company: str | None = None
    country: str | None = None
    # dette partenaire, commission due à l'associé, 0 pour un client
    outstanding_balance: Amount = 0

    model_config = {"frozen": True}
