from datetime import datetime, timedelta, timezone

from app.assignments import state_machine as sm
from app.assignments.ledger import PAYMENT_TIMEOUT_REASON


def _pending(parties):
    a = parties.ledger.create_assignment(
        student_id=parties.student_id,
        tutor_id=parties.tutor_id,
        subject="Math",
        total_fee_cents=5000,
        tutor_fee_cents=4000,
    )
    parties.ledger.accept_offer(a.id, parties.tutor_id)
    parties.ledger.begin_payment(a.id, parties.student_id)
    return a


def test_stale_checkout_is_canceled(parties):
    a = _pending(parties)
    now = datetime.now(timezone.utc)
    parties.store.backdate_payment(a.id, now - timedelta(hours=3))

    expired = parties.ledger.expire_stale_payments(created_before=now - timedelta(hours=1))

    assert expired == [a.id]
    assignment = parties.store.get_assignment(a.id)
    assert assignment.status == sm.CANCELED
    assert assignment.cancel_reason == PAYMENT_TIMEOUT_REASON
    assert parties.store.get_payment_by_assignment(a.id).status == "FAILED"


def test_fresh_checkout_is_left_alone(parties):
    a = _pending(parties)
    now = datetime.now(timezone.utc)

    assert parties.ledger.expire_stale_payments(created_before=now - timedelta(hours=1)) == []
    assert parties.store.get_assignment(a.id).status == sm.PAYMENT_PENDING


def test_paid_checkout_is_never_expired(parties):
    a = _pending(parties)
    parties.ledger.confirm_payment(a.id, 5000, "pi_1")
    now = datetime.now(timezone.utc)

    assert parties.ledger.expire_stale_payments(created_before=now + timedelta(days=1)) == []
    assert parties.store.get_assignment(a.id).status == sm.IN_PROGRESS
