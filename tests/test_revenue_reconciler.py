import pytest

from backoffice.models.revenue import PaymentRecord, RawRevenueTotals
from backoffice.services.revenue_reconciler import RevenueReconciler, percentage


@pytest.fixture
def reconciler():
    return RevenueReconciler()


class TestReportedTotals:
    def test_zero_breakdown_is_attributed_to_direct(self, reconciler):
        res = reconciler.reconcile({"totalRevenue": 1000, "directRevenue": 0, "referralRevenue": 0})
        direct = res.by_channel("direct")
        referral = res.by_channel("referral")
        assert (direct.amount, direct.percentage_of_total) == (1000, 100.0)
        assert (referral.amount, referral.percentage_of_total) == (0, 0.0)
        assert not direct.reliable and not referral.reliable
        assert not res.reliable
        assert res.source == "corrected"
        assert len(res.warnings) == 1
        assert res.warnings[0].kind == "anomaly_corrected"
        assert res.warnings[0].figures["total_revenue"] == 1000

    def test_consistent_breakdown(self, reconciler):
        res = reconciler.reconcile(RawRevenueTotals(total_revenue=1000, direct_revenue=600, referral_revenue=400))
        assert res.by_channel("direct").percentage_of_total == 60.0
        assert res.by_channel("referral").percentage_of_total == 40.0
        assert res.reliable
        assert res.warnings == []
        assert res.source == "reported"
        assert res.total_revenue == 1000

    def test_partial_mismatch_is_flagged_not_corrected(self, reconciler):
        res = reconciler.reconcile({"totalRevenue": 1000, "directRevenue": 500, "referralRevenue": 200})
        assert res.by_channel("direct").amount == 500
        assert not res.reliable
        assert [w.kind for w in res.warnings] == ["breakdown_mismatch"]

    def test_all_zero(self, reconciler):
        res = reconciler.reconcile({})
        assert res.total_revenue == 0
        assert all(b.percentage_of_total == 0.0 for b in res.breakdown)
        assert res.reliable
        assert res.warnings == []

    def test_anomaly_is_logged(self, reconciler, caplog):
        with caplog.at_level("WARNING", logger="backoffice"):
            reconciler.reconcile({"totalRevenue": 250})
        assert "Incohérence" in caplog.text


class TestPayments:
    def test_payments_take_precedence(self, reconciler):
        payments = [
            {"amount": 600, "isDirectPurchase": True},
            {"amount": 300, "channel": "partner"},
            {"amount": 100, "channel": "associate"},
        ]
        res = reconciler.reconcile({"totalRevenue": 1000}, payments)
        assert res.source == "payments"
        assert res.total_revenue == 1000
        assert [(b.channel, b.percentage_of_total) for b in res.breakdown] == [
            ("direct", 60.0), ("partner", 30.0), ("associate", 10.0),
        ]
        assert res.reliable
        assert res.warnings == []

    def test_non_direct_purchase_goes_to_referral(self, reconciler):
        res = reconciler.reconcile({}, [PaymentRecord(amount=200, is_direct_purchase=False)])
        assert res.by_channel("referral").amount == 200
        assert res.by_channel("referral").percentage_of_total == 100.0

    def test_total_mismatch_warning(self, reconciler):
        res = reconciler.reconcile({"totalRevenue": 5000}, [{"amount": 1000, "channel": "direct"}])
        assert res.total_revenue == 1000
        assert [w.kind for w in res.warnings] == ["total_mismatch"]

    def test_empty_payments_fall_back_to_totals(self, reconciler):
        res = reconciler.reconcile({"totalRevenue": 1000, "directRevenue": 0}, [])
        assert res.source == "corrected"

    def test_payment_without_channel_is_rejected(self, reconciler):
        with pytest.raises(ValueError):
            reconciler.reconcile({}, [{"amount": 10}])


def test_inputs_are_not_mutated(reconciler):
    raw = {"totalRevenue": 1000, "directRevenue": 0, "referralRevenue": 0}
    payments = [{"amount": 10, "channel": "direct"}]
    reconciler.reconcile(raw)
    reconciler.reconcile(raw, payments)
    assert raw == {"totalRevenue": 1000, "directRevenue": 0, "referralRevenue": 0}
    assert payments == [{"amount": 10, "channel": "direct"}]


def test_unknown_channel_lookup(reconciler):
    res = reconciler.reconcile({})
    with pytest.raises(KeyError):
        res.by_channel("partner")


@pytest.mark.parametrize("amount,total,expected", [(1, 3, 33.3), (2, 3, 66.7), (5, 0, 0.0)])
def test_percentage(amount, total, expected):
    assert percentage(amount, total) == expected
