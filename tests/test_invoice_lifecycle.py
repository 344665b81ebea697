from datetime import date, datetime, timezone

import pytest

from backoffice.errors import InvalidTransitionError, ValidationError
from backoffice.models.invoice import TRANSITIONS, can_transition
from backoffice.services.invoice_lifecycle import (
    InvoiceLifecycle,
    display_status,
    is_overdue,
)


@pytest.fixture
def lifecycle(clock):
    return InvoiceLifecycle(clock)


def test_transition_table():
    assert can_transition("draft", "pending")
    assert can_transition("draft", "cancelled")
    assert can_transition("pending", "paid")
    assert can_transition("pending", "cancelled")
    assert not can_transition("draft", "paid")
    assert TRANSITIONS["paid"] == frozenset()
    assert TRANSITIONS["cancelled"] == frozenset()
    assert "overdue" not in TRANSITIONS


class TestTransitions:
    def test_send_draft(self, make_invoice, lifecycle):
        inv = make_invoice("manual", "cu1", manual_amount=10000)
        lifecycle.send(inv)
        assert inv.status == "pending"

    def test_send_pending_fails(self, make_invoice, lifecycle):
        inv = make_invoice()
        with pytest.raises(InvalidTransitionError):
            lifecycle.send(inv)

    def test_draft_cannot_be_paid(self, make_invoice, lifecycle):
        inv = make_invoice("manual", "cu1", manual_amount=10000)
        with pytest.raises(InvalidTransitionError):
            lifecycle.record_payment(inv, date(2024, 6, 20), "cash")
        assert inv.status == "draft"

    def test_record_payment(self, make_invoice, lifecycle, clock):
        inv = make_invoice()
        lifecycle.record_payment(inv, date(2024, 6, 20), " bank_transfer ")
        assert inv.status == "paid"
        assert inv.payment_date == date(2024, 6, 20)
        assert inv.payment_method == "bank_transfer"
        assert inv.updated_at == clock.now()

    def test_payment_datetime_is_truncated(self, make_invoice, lifecycle):
        inv = make_invoice()
        lifecycle.record_payment(inv, datetime(2024, 6, 20, 15, 30, tzinfo=timezone.utc), "card")
        assert inv.payment_date == date(2024, 6, 20)

    def test_second_payment_fails_and_changes_nothing(self, make_invoice, lifecycle):
        inv = make_invoice()
        lifecycle.record_payment(inv, date(2024, 6, 20), "cash")
        before = inv.model_dump()
        with pytest.raises(InvalidTransitionError):
            lifecycle.record_payment(inv, date(2024, 6, 25), "card")
        assert inv.model_dump() == before

    @pytest.mark.parametrize("pay_date,method", [(None, "cash"), (date(2024, 6, 20), ""), (date(2024, 6, 1), "cash")])
    def test_invalid_payment_data_leaves_invoice_pending(self, make_invoice, lifecycle, pay_date, method):
        inv = make_invoice()
        before = inv.model_dump()
        with pytest.raises(ValidationError):
            lifecycle.record_payment(inv, pay_date, method)
        assert inv.model_dump() == before

    @pytest.mark.parametrize("template,kwargs", [
        ("manual", {"entity_id": "cu1", "manual_amount": 1000}),
        ("partner_subscription", {"entity_id": "p1"}),
    ])
    def test_cancel_from_draft_or_pending(self, make_invoice, lifecycle, template, kwargs):
        inv = make_invoice(template, **kwargs)
        lifecycle.cancel(inv)
        assert inv.status == "cancelled"

    def test_terminal_states(self, make_invoice, lifecycle):
        paid = make_invoice()
        lifecycle.record_payment(paid, date(2024, 6, 20), "cash")
        cancelled = make_invoice()
        lifecycle.cancel(cancelled)
        for inv in (paid, cancelled):
            assert inv.is_terminal
            for op in (lifecycle.send, lifecycle.cancel):
                with pytest.raises(InvalidTransitionError):
                    op(inv)

    def test_notes_editable_after_payment(self, make_invoice, lifecycle):
        inv = make_invoice()
        lifecycle.record_payment(inv, date(2024, 6, 20), "cash")
        lifecycle.update_notes(inv, "Reçu envoyé")
        assert inv.notes == "Reçu envoyé"
        assert inv.status == "paid"


class TestOverdue:
    def test_pending_past_due(self, make_invoice):
        inv = make_invoice()  # échéance 2024-07-15
        assert not is_overdue(inv, datetime(2024, 7, 15, 23, 59, tzinfo=timezone.utc))
        assert is_overdue(inv, datetime(2024, 7, 16, 0, 1, tzinfo=timezone.utc))
        assert is_overdue(inv, date(2024, 8, 1))
        assert display_status(inv, date(2024, 8, 1)) == "overdue"
        # jamais écrit dans le statut
        assert inv.status == "pending"

    def test_only_pending_can_be_overdue(self, make_invoice, lifecycle):
        draft = make_invoice("manual", "cu1", manual_amount=1000)
        paid = make_invoice()
        lifecycle.record_payment(paid, date(2024, 6, 20), "cash")
        later = date(2025, 1, 1)
        assert not is_overdue(draft, later)
        assert not is_overdue(paid, later)
        assert display_status(paid, later) == "paid"

    def test_lifecycle_uses_its_clock(self, make_invoice, lifecycle, clock):
        inv = make_invoice()
        assert not lifecycle.is_overdue(inv)
        clock.advance_to(datetime(2024, 9, 1, tzinfo=timezone.utc))
        assert lifecycle.is_overdue(inv)
        assert lifecycle.display_status(inv) == "overdue"
