from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from .common import Amount
from .entity import EntityKind

InvoiceType = Literal["manual", "commission", "subscription"]
InitialStatus = Literal["draft", "pending"]


class FixedAmount(BaseModel):
    rule: Literal["fixed"] = "fixed"
    amount: Amount


class FromEntityBalance(BaseModel):
    rule: Literal["from_entity_balance"] = "from_entity_balance"


class ManualAmount(BaseModel):
    rule: Literal["manual"] = "manual"


AmountRule = Annotated[Union[FixedAmount, FromEntityBalance, ManualAmount], Field(discriminator="rule")]


class InvoiceTemplate(BaseModel):
    kind: str
    label: str
    target_entity_kind: EntityKind
    default_description: str
    amount_rule: AmountRule
    tax_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    initial_status: InitialStatus = "draft"
    invoice_type: InvoiceType = "manual"

    model_config = {"frozen": True}


# Table par défaut. Règle : les factures de régularisation (dette,
# commission) et l'abonnement partent directement en "pending" sans TVA ;
# la facture manuelle client reste en brouillon avec TVA 19 %.
DEFAULT_TEMPLATES: tuple[InvoiceTemplate, ...] = (
    InvoiceTemplate(
        kind="partner_debt",
        label="Règlement de dette partenaire",
        target_entity_kind="partner",
        default_description="Règlement des dettes accumulées",
        amount_rule=FromEntityBalance(),
        tax_rate=0.0,
        initial_status="pending",
        invoice_type="manual",
    ),
    InvoiceTemplate(
        kind="commercial_commission",
        label="Commission commercial",
        target_entity_kind="associate",
        default_description="Paiement des commissions dues",
        amount_rule=FromEntityBalance(),
        tax_rate=0.0,
        initial_status="pending",
        invoice_type="commission",
    ),
    InvoiceTemplate(
        kind="partner_subscription",
        label="Abonnement partenaire",
        target_entity_kind="partner",
        default_description="Facturation mensuelle d'abonnement",
        amount_rule=FixedAmount(amount=15000),
        tax_rate=0.0,
        initial_status="pending",
        invoice_type="subscription",
    ),
    InvoiceTemplate(
        kind="manual",
        label="Facture manuelle",
        target_entity_kind="customer",
        default_description="Facture personnalisée",
        amount_rule=ManualAmount(),
        tax_rate=0.19,
        initial_status="draft",
        invoice_type="manual",
    ),
)
