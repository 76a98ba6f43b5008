import uuid

import pytest

from app.assignments import state_machine as sm
from app.assignments.ledger import AssignmentLedger
from app.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError


def _new(parties, total=5000, tutor_fee=4000):
    return parties.ledger.create_assignment(
        student_id=parties.student_id,
        tutor_id=parties.tutor_id,
        subject="Math",
        total_fee_cents=total,
        tutor_fee_cents=tutor_fee,
    )


def _in_progress(parties, **kw):
    a = _new(parties, **kw)
    parties.ledger.accept_offer(a.id, parties.tutor_id)
    parties.ledger.begin_payment(a.id, parties.student_id)
    return parties.ledger.confirm_payment(a.id, a.total_fee_cents, "pi_test")


def test_create_assignment_stores_commission(parties):
    a = _new(parties, total=5000, tutor_fee=4000)
    assert a.status == sm.PENDING_OFFER
    assert a.platform_commission_cents == 1000
    assert a.total_fee_cents - a.tutor_fee_cents == a.platform_commission_cents


def test_create_assignment_rejects_bad_fees(parties):
    with pytest.raises(ValidationError):
        _new(parties, total=1000, tutor_fee=1500)
    assert parties.store.assignments == {}


def test_create_assignment_requires_subject(parties):
    with pytest.raises(ValidationError):
        parties.ledger.create_assignment(
            student_id=parties.student_id,
            tutor_id=parties.tutor_id,
            subject="   ",
            total_fee_cents=1000,
            tutor_fee_cents=500,
        )


def test_create_assignment_unknown_parties(parties):
    with pytest.raises(NotFoundError):
        parties.ledger.create_assignment(
            student_id=uuid.uuid4(),
            tutor_id=parties.tutor_id,
            subject="Math",
            total_fee_cents=1000,
            tutor_fee_cents=500,
        )
    with pytest.raises(NotFoundError):
        parties.ledger.create_assignment(
            student_id=parties.student_id,
            tutor_id=uuid.uuid4(),
            subject="Math",
            total_fee_cents=1000,
            tutor_fee_cents=500,
        )


def test_full_lifecycle_creates_one_payout(parties):
    a = _in_progress(parties)
    assert a.status == sm.IN_PROGRESS

    payment = parties.store.get_payment_by_assignment(a.id)
    assert payment.status == "SUCCEEDED"
    assert payment.platform_fee_cents == 1000
    assert payment.external_ref == "pi_test"

    done, payout = parties.ledger.complete_assignment(a.id)
    assert done.status == sm.COMPLETED
    assert payout.amount_cents == 4000
    assert payout.tutor_id == parties.tutor_id
    assert payout.status == "PENDING"


def test_complete_twice_keeps_single_payout(parties):
    a = _in_progress(parties)
    _, first = parties.ledger.complete_assignment(a.id)
    again, second = parties.ledger.complete_assignment(a.id)

    assert again.status == sm.COMPLETED
    assert second.id == first.id
    assert len(parties.store.payouts) == 1


@pytest.mark.parametrize("steps", [0, 1, 2])
def test_complete_requires_in_progress(parties, steps):
    a = _new(parties)
    if steps >= 1:
        parties.ledger.accept_offer(a.id, parties.tutor_id)
    if steps >= 2:
        parties.ledger.begin_payment(a.id, parties.student_id)

    with pytest.raises(InvalidStateError):
        parties.ledger.complete_assignment(a.id)
    assert parties.store.payouts == {}


def test_decline_is_terminal(parties):
    a = _new(parties)
    declined = parties.ledger.decline_offer(a.id, parties.tutor_id)
    assert declined.status == sm.TUTOR_DECLINED

    with pytest.raises(InvalidStateError):
        parties.ledger.accept_offer(a.id, parties.tutor_id)
    with pytest.raises(InvalidStateError):
        parties.ledger.cancel(a.id, "too late")


def test_double_accept_is_rejected(parties):
    a = _new(parties)
    parties.ledger.accept_offer(a.id, parties.tutor_id)
    with pytest.raises(InvalidStateError):
        parties.ledger.accept_offer(a.id, parties.tutor_id)


def test_other_tutor_sees_not_found(parties):
    a = _new(parties)
    with pytest.raises(NotFoundError):
        parties.ledger.accept_offer(a.id, uuid.uuid4())
    with pytest.raises(NotFoundError):
        parties.ledger.decline_offer(a.id, uuid.uuid4())
    assert parties.store.get_assignment(a.id).status == sm.PENDING_OFFER


def test_other_student_cannot_pay(parties):
    a = _new(parties)
    parties.ledger.accept_offer(a.id, parties.tutor_id)
    with pytest.raises(NotFoundError):
        parties.ledger.begin_payment(a.id, uuid.uuid4())
    assert parties.store.get_payment_by_assignment(a.id) is None


def test_begin_payment_requires_accepted_offer(parties):
    a = _new(parties)
    with pytest.raises(InvalidStateError):
        parties.ledger.begin_payment(a.id, parties.student_id)


def test_begin_payment_creates_pending_payment(parties):
    a = _new(parties)
    parties.ledger.accept_offer(a.id, parties.tutor_id)
    updated, payment = parties.ledger.begin_payment(a.id, parties.student_id)

    assert updated.status == sm.PAYMENT_PENDING
    assert payment.status == "PENDING"
    assert payment.amount_cents == 5000


def test_confirm_payment_flags_amount_mismatch(parties):
    a = _new(parties)
    parties.ledger.accept_offer(a.id, parties.tutor_id)
    parties.ledger.begin_payment(a.id, parties.student_id)

    updated = parties.ledger.confirm_payment(a.id, 4999, "pi_short")
    assert updated.status == sm.IN_PROGRESS
    payment = parties.store.get_payment_by_assignment(a.id)
    assert payment.amount_mismatch is True
    assert payment.amount_cents == 4999


def test_confirm_payment_outside_pending_is_rejected(parties):
    a = _new(parties)
    with pytest.raises(InvalidStateError):
        parties.ledger.confirm_payment(a.id, 5000, None)


@pytest.mark.parametrize("steps", [0, 1, 2, 3])
def test_cancel_from_each_live_state(parties, steps):
    a = _new(parties)
    if steps >= 1:
        parties.ledger.accept_offer(a.id, parties.tutor_id)
    if steps >= 2:
        parties.ledger.begin_payment(a.id, parties.student_id)
    if steps >= 3:
        parties.ledger.confirm_payment(a.id, 5000, None)

    canceled = parties.ledger.cancel(a.id, "student moved away")
    assert canceled.status == sm.CANCELED
    assert canceled.cancel_reason == "student moved away"


def test_cancel_while_payment_pending_fails_the_payment(parties):
    a = _new(parties)
    parties.ledger.accept_offer(a.id, parties.tutor_id)
    parties.ledger.begin_payment(a.id, parties.student_id)

    parties.ledger.cancel(a.id, "changed mind")
    payment = parties.store.get_payment_by_assignment(a.id)
    assert payment.status == "FAILED"
    assert payment.failure_reason == "changed mind"


def test_cancel_completed_is_rejected(parties):
    a = _in_progress(parties)
    parties.ledger.complete_assignment(a.id)
    with pytest.raises(InvalidStateError):
        parties.ledger.cancel(a.id, "refund please")


def test_unknown_assignment_is_not_found(parties):
    with pytest.raises(NotFoundError):
        parties.ledger.complete_assignment(uuid.uuid4())
    with pytest.raises(NotFoundError):
        parties.ledger.cancel(uuid.uuid4(), "x")


def test_lost_conditional_update_raises_conflict(parties, monkeypatch):
    a = _new(parties)
    monkeypatch.setattr(parties.store, "transition_assignment", lambda *args, **kwargs: False)

    with pytest.raises(ConflictError):
        parties.ledger.accept_offer(a.id, parties.tutor_id)
    assert parties.store.get_assignment(a.id).status == sm.PENDING_OFFER


def test_admin_actions_are_audited(parties):
    actor = uuid.uuid4()
    ledger = AssignmentLedger(parties.store, actor_user_id=actor)
    a = ledger.create_assignment(
        student_id=parties.student_id,
        tutor_id=parties.tutor_id,
        subject="Chemistry",
        total_fee_cents=3000,
        tutor_fee_cents=2000,
    )
    ledger.cancel(a.id, "duplicate")

    assert parties.store.actions() == ["ASSIGNMENT_CREATED", "ASSIGNMENT_CANCELED"]
    row = parties.store.audit_log[-1]
    assert row["actor_user_id"] == actor
    assert row["target_id"] == str(a.id)
    assert row["metadata"] == {"reason": "duplicate", "from_status": sm.PENDING_OFFER}


def test_unattributed_operations_skip_audit(parties):
    _in_progress(parties)
    assert parties.store.audit_log == []
