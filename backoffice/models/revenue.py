from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backoffice.errors import ReconciliationWarning
from .common import gen_id

Channel = Literal["direct", "referral", "partner", "associate"]
ReconciliationSource = Literal["payments", "reported", "corrected"]


class RawRevenueTotals(BaseModel):
    """Chiffres agrégés tels que renvoyés par l'API finance (non fiables)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_revenue: float = Field(default=0, ge=0, alias="totalRevenue")
    direct_revenue: float = Field(default=0, ge=0, alias="directRevenue")
    referral_revenue: float = Field(default=0, ge=0, alias="referralRevenue")


class PaymentRecord(BaseModel):
    """
    Paiement unitaire. L'API amont ne donne parfois que ``is_direct_purchase`` :
    dans ce cas un achat non direct est rattaché au canal "referral".
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=gen_id)
    amount: float = Field(ge=0)
    channel: Optional[Channel] = None
    is_direct_purchase: Optional[bool] = Field(default=None, alias="isDirectPurchase")
    at: Optional[datetime] = None
    method: Optional[str] = None  # bank_transfer, card, cash, mobile_money…

    @model_validator(mode="after")
    def _check_channel(self) -> "PaymentRecord":
        if self.channel is None and self.is_direct_purchase is None:
            raise ValueError("paiement sans canal ni is_direct_purchase")
        return self

    @property
    def resolved_channel(self) -> Channel:
        if self.channel is not None:
            return self.channel
        return "direct" if self.is_direct_purchase else "referral"


class RevenueBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    channel: Channel
    amount: float
    percentage_of_total: float
    reliable: bool


class ReconciliationResult(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    total_revenue: float
    breakdown: List[RevenueBreakdown]
    source: ReconciliationSource
    warnings: List[ReconciliationWarning] = Field(default_factory=list)

    @property
    def reliable(self) -> bool:
        return all(b.reliable for b in self.breakdown)

    def by_channel(self, channel: str) -> RevenueBreakdown:
        for b in self.breakdown:
            if b.channel == channel:
                return b
        raise KeyError(channel)
