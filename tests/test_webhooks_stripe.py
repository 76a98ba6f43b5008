import json
import time

import pytest

from app.assignments import state_machine as sm
from conftest import _auth_headers, _create_assignment
from routes import webhooks
from routes.webhooks import _verify_signature, sign_payload

SECRET = "whsec_test_secret"


@pytest.fixture(autouse=True)
def _webhook_secret(monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", SECRET)


def _post(client, event, *, secret=SECRET, timestamp=None):
    raw = json.dumps(event).encode("utf-8")
    ts = int(time.time()) if timestamp is None else timestamp
    header = f"t={ts},v1={sign_payload(secret, raw, ts)}"
    return client.post(
        "/v1/webhooks/stripe",
        content=raw,
        headers={"Stripe-Signature": header, "Content-Type": "application/json"},
    )


def _event(event_type, assignment_id, amount_total=5000, payment_status="paid"):
    return {
        "id": "evt_123",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_1",
                "payment_intent": "pi_test_1",
                "amount_total": amount_total,
                "payment_status": payment_status,
                "metadata": {"assignment_id": assignment_id},
            }
        },
    }


@pytest.fixture()
def pending_assignment(client, store, admin, student, tutor):
    aid = _create_assignment(client, admin, student, tutor)["id"]
    client.post(f"/v1/tutor/assignments/{aid}/accept", headers=_auth_headers(tutor.token))
    r = client.post(
        "/v1/student/payments/checkout-session",
        json={"assignment_id": aid},
        headers=_auth_headers(student.token),
    )
    assert r.status_code == 200, r.text
    return aid


def test_verify_signature_rules():
    raw = b'{"id":"evt"}'
    now = 1_700_000_000
    good = f"t={now},v1={sign_payload(SECRET, raw, now)}"

    assert _verify_signature(raw=raw, signature_header=good, secret=SECRET, now=now) == (True, None)
    assert _verify_signature(raw=raw, signature_header=good, secret=None, now=now)[1] == "WEBHOOK_SECRET_NOT_CONFIGURED"
    assert _verify_signature(raw=raw, signature_header=None, secret=SECRET, now=now)[1] == "MISSING_SIGNATURE"
    assert _verify_signature(raw=raw + b" ", signature_header=good, secret=SECRET, now=now)[1] == "INVALID_SIGNATURE"
    assert _verify_signature(raw=raw, signature_header="v1=abc", secret=SECRET, now=now)[1] == "INVALID_SIGNATURE"
    assert (
        _verify_signature(raw=raw, signature_header=good, secret=SECRET, now=now + 3600)[1]
        == "SIGNATURE_TIMESTAMP_OUT_OF_TOLERANCE"
    )


def test_completed_event_starts_assignment(client, store, pending_assignment):
    r = _post(client, _event("checkout.session.completed", pending_assignment))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status_before"] == sm.PAYMENT_PENDING
    assert body["status_after"] == sm.IN_PROGRESS
    assert "ignored" not in body

    payment = next(iter(store.payments.values()))
    assert payment.status == "SUCCEEDED"
    assert payment.external_ref == "pi_test_1"


@pytest.mark.parametrize("event_type", ["checkout.session.completed", "checkout.session.expired"])
def test_reconciliation_runs_in_threadpool(client, monkeypatch, pending_assignment, event_type):
    calls = []
    real = webhooks.run_in_threadpool

    async def _spy(fn, *args, **kwargs):
        calls.append(fn.__name__)
        return await real(fn, *args, **kwargs)

    monkeypatch.setattr(webhooks, "run_in_threadpool", _spy)

    r = _post(client, _event(event_type, pending_assignment))
    assert r.status_code == 200, r.text
    assert calls == ["payment_succeeded" if event_type.endswith("completed") else "payment_failed"]


def test_replayed_event_is_ignored(client, pending_assignment):
    _post(client, _event("checkout.session.completed", pending_assignment))
    r = _post(client, _event("checkout.session.completed", pending_assignment))
    assert r.status_code == 200
    assert r.json()["ignored"] is True
    assert r.json()["reason"] == "ALREADY_IN_PROGRESS"


def test_expired_event_cancels(client, store, pending_assignment):
    r = _post(client, _event("checkout.session.expired", pending_assignment, payment_status="unpaid"))
    assert r.status_code == 200, r.text
    assert r.json()["status_after"] == sm.CANCELED
    assignment = next(iter(store.assignments.values()))
    assert assignment.cancel_reason == "CHECKOUT_EXPIRED"


def test_unpaid_completion_waits_for_async_payment(client, pending_assignment):
    r = _post(client, _event("checkout.session.completed", pending_assignment, payment_status="unpaid"))
    assert r.status_code == 200
    assert r.json()["reason"] == "AWAITING_ASYNC_PAYMENT"


def test_bad_signature_is_401_and_changes_nothing(client, store, pending_assignment):
    r = _post(client, _event("checkout.session.completed", pending_assignment), secret="whsec_wrong")
    assert r.status_code == 401
    assert r.json()["detail"] == {"error": "INVALID_SIGNATURE"}
    assert next(iter(store.assignments.values())).status == sm.PAYMENT_PENDING


def test_stale_timestamp_is_401(client, pending_assignment):
    r = _post(client, _event("checkout.session.completed", pending_assignment), timestamp=int(time.time()) - 3600)
    assert r.status_code == 401
    assert r.json()["detail"]["error"] == "SIGNATURE_TIMESTAMP_OUT_OF_TOLERANCE"


def test_missing_secret_is_500(client, monkeypatch):
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "")
    monkeypatch.setattr("routes.webhooks.settings.STRIPE_WEBHOOK_SECRET", "")
    r = client.post("/v1/webhooks/stripe", content=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})
    assert r.status_code == 500
    assert r.json()["detail"]["error"] == "WEBHOOK_SECRET_NOT_CONFIGURED"


def test_unhandled_event_type_is_acknowledged(client):
    r = _post(client, {"id": "evt_9", "type": "customer.created", "data": {"object": {}}})
    assert r.status_code == 200
    assert r.json()["reason"] == "UNHANDLED_EVENT_TYPE"


def test_event_without_assignment_id_is_acknowledged(client):
    r = _post(client, {"id": "evt_9", "type": "checkout.session.completed", "data": {"object": {"amount_total": 1}}})
    assert r.status_code == 200
    assert r.json()["reason"] == "MISSING_ASSIGNMENT_ID"


def test_invalid_json_is_400(client):
    ts = int(time.time())
    raw = b"not json"
    r = client.post(
        "/v1/webhooks/stripe",
        content=raw,
        headers={"Stripe-Signature": f"t={ts},v1={sign_payload(SECRET, raw, ts)}"},
    )
    assert r.status_code == 400


def test_missing_amount_is_400(client, pending_assignment):
    event = _event("checkout.session.completed", pending_assignment)
    del event["data"]["object"]["amount_total"]
    r = _post(client, event)
    assert r.status_code == 400
    assert r.json()["detail"]["error"] == "MISSING_AMOUNT"
