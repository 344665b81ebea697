"""
Répartition du chiffre d'affaires par canal.

Les agrégats de l'API finance sont connus pour être incohérents : il arrive
que ``totalRevenue > 0`` alors que ``directRevenue`` et ``referralRevenue``
valent tous deux 0. Dans ce cas le CA est attribué en totalité au canal
direct, mais le résultat est marqué ``reliable=False`` et accompagné d'un
``ReconciliationWarning`` : un chiffre estimé ne doit jamais passer pour un
chiffre mesuré.

Quand les paiements unitaires sont disponibles, ils font foi.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Any, Iterable, List, Mapping, Optional, Union

from backoffice.errors import ReconciliationWarning
from backoffice.models.revenue import (
    PaymentRecord,
    RawRevenueTotals,
    ReconciliationResult,
    RevenueBreakdown,
)

log = logging.getLogger(__name__)

# écart toléré entre total et somme des canaux (demi-unité FCFA)
EPSILON = 0.5

PAYMENT_CHANNELS = ("direct", "partner", "associate")


def percentage(amount: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return round(amount / total * 100, 1)


def _as_totals(raw: Union[RawRevenueTotals, Mapping[str, Any]]) -> RawRevenueTotals:
    if isinstance(raw, RawRevenueTotals):
        return raw
    return RawRevenueTotals.model_validate(dict(raw))


def _as_payments(payments: Iterable[Union[PaymentRecord, Mapping[str, Any]]]) -> List[PaymentRecord]:
    return [p if isinstance(p, PaymentRecord) else PaymentRecord.model_validate(dict(p)) for p in payments]


class RevenueReconciler:
    def reconcile(
        self,
        raw_totals: Union[RawRevenueTotals, Mapping[str, Any]],
        payments: Optional[Iterable[Union[PaymentRecord, Mapping[str, Any]]]] = None,
    ) -> ReconciliationResult:
        totals = _as_totals(raw_totals)
        records = _as_payments(payments) if payments is not None else []
        if records:
            return self._from_payments(totals, records)
        return self._from_totals(totals)

    # ---------- paiements (vérité terrain) ---------- #

    def _from_payments(self, totals: RawRevenueTotals, records: List[PaymentRecord]) -> ReconciliationResult:
        sums: "OrderedDict[str, float]" = OrderedDict((c, 0.0) for c in PAYMENT_CHANNELS)
        for p in records:
            ch = p.resolved_channel
            sums[ch] = sums.get(ch, 0.0) + p.amount
        total = sum(sums.values())

        warnings: List[ReconciliationWarning] = []
        if totals.total_revenue > 0 and abs(totals.total_revenue - total) > EPSILON:
            w = ReconciliationWarning(
                f"Total déclaré {totals.total_revenue:g} ≠ somme des paiements {total:g}",
                kind="total_mismatch",
                reported_total=totals.total_revenue,
                payments_total=total,
            )
            log.warning(w.message)
            warnings.append(w)

        breakdown = [
            RevenueBreakdown(channel=ch, amount=amount, percentage_of_total=percentage(amount, total), reliable=True)
            for ch, amount in sums.items()
        ]
        return ReconciliationResult(total_revenue=total, breakdown=breakdown, source="payments", warnings=warnings)

    # ---------- agrégats amont ---------- #

    def _from_totals(self, totals: RawRevenueTotals) -> ReconciliationResult:
        total = totals.total_revenue
        direct = totals.direct_revenue
        referral = totals.referral_revenue
        parts = direct + referral

        if total > 0 and parts == 0:
            w = ReconciliationWarning(
                f"Incohérence détectée: totalRevenue={total:g} mais direct+referral=0, "
                "CA attribué au canal direct (estimation)",
                kind="anomaly_corrected",
                total_revenue=total,
                direct_revenue=direct,
                referral_revenue=referral,
            )
            log.warning(w.message)
            breakdown = [
                RevenueBreakdown(channel="direct", amount=total, percentage_of_total=percentage(total, total), reliable=False),
                RevenueBreakdown(channel="referral", amount=0, percentage_of_total=0.0, reliable=False),
            ]
            return ReconciliationResult(total_revenue=total, breakdown=breakdown, source="corrected", warnings=[w])

        warnings: List[ReconciliationWarning] = []
        reliable = True
        if abs(parts - total) > EPSILON:
            # écart non nul : pas de correction possible, on signale seulement
            w = ReconciliationWarning(
                f"direct+referral={parts:g} ne correspond pas à totalRevenue={total:g}",
                kind="breakdown_mismatch",
                total_revenue=total,
                direct_revenue=direct,
                referral_revenue=referral,
            )
            log.warning(w.message)
            warnings.append(w)
            reliable = False

        breakdown = [
            RevenueBreakdown(channel="direct", amount=direct, percentage_of_total=percentage(direct, total), reliable=reliable),
            RevenueBreakdown(channel="referral", amount=referral, percentage_of_total=percentage(referral, total), reliable=reliable),
        ]
        return ReconciliationResult(total_revenue=total, breakdown=breakdown, source="reported", warnings=warnings)
