# routes/webhooks.py
from __future__ import annotations

import os
import hmac
import hashlib
import json
import logging
import time
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Request, HTTPException
from fastapi.concurrency import run_in_threadpool

from app.assignments.ledger import AssignmentLedger
from app.payments.reconciliation import PaymentReconciler, ReconcileOutcome
from app.store import Store
from deps.store import get_store
from services.metrics import increment_webhook_event
from services.redaction import redact_text
from settings import settings


router = APIRouter(prefix="/v1/webhooks", tags=["webhooks"])
logger = logging.getLogger("tutormatch.webhooks")

PROVIDER = "STRIPE"

SUCCESS_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
FAILURE_EVENTS = ("checkout.session.expired", "checkout.session.async_payment_failed")


def _get_secret() -> str | None:
    value = os.getenv("STRIPE_WEBHOOK_SECRET")
    if value and value.strip():
        return value.strip()
    return (settings.STRIPE_WEBHOOK_SECRET or "").strip() or None


def _tolerance_seconds() -> int:
    raw = os.getenv("STRIPE_WEBHOOK_TOLERANCE_S")
    try:
        return int(raw) if raw else int(settings.STRIPE_WEBHOOK_TOLERANCE_S)
    except ValueError:
        return int(settings.STRIPE_WEBHOOK_TOLERANCE_S)


def _resolve_request_id(req: Request) -> str | None:
    candidates = (
        req.headers.get("X-Request-ID"),
        req.headers.get("X-Request-Id"),
        req.headers.get("Request-Id"),
    )
    for value in candidates:
        if value and value.strip():
            return value.strip()
    return getattr(req.state, "request_id", None)


def _parse_signature_header(header: str) -> tuple[int | None, list[str]]:
    timestamp = None
    signatures: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                timestamp = None
        elif key == "v1" and value:
            signatures.append(value.strip())
    return timestamp, signatures


def sign_payload(secret: str, raw: bytes, timestamp: int) -> str:
    signed = f"{timestamp}.".encode("utf-8") + raw
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def _verify_signature(
    *,
    raw: bytes,
    signature_header: str | None,
    secret: str | None,
    now: float | None = None,
) -> tuple[bool, str | None]:
    if not secret or not secret.strip():
        return False, "WEBHOOK_SECRET_NOT_CONFIGURED"

    if not signature_header or not signature_header.strip():
        return False, "MISSING_SIGNATURE"

    timestamp, signatures = _parse_signature_header(signature_header)
    if timestamp is None or not signatures:
        return False, "INVALID_SIGNATURE"

    expected = sign_payload(secret, raw, timestamp)
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        return False, "INVALID_SIGNATURE"

    current = time.time() if now is None else now
    if abs(current - timestamp) > _tolerance_seconds():
        return False, "SIGNATURE_TIMESTAMP_OUT_OF_TOLERANCE"

    return True, None


def _extract_session(event: dict[str, Any]) -> dict[str, Any]:
    data = event.get("data")
    if isinstance(data, dict) and isinstance(data.get("object"), dict):
        return data["object"]
    return {}


def _assignment_id_from(session: dict[str, Any]) -> UUID | None:
    metadata = session.get("metadata") if isinstance(session.get("metadata"), dict) else {}
    raw = metadata.get("assignment_id") or session.get("client_reference_id")
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None


def _response(event_id, event_type, outcome: ReconcileOutcome | None = None, reason: str | None = None) -> dict:
    resp: dict[str, Any] = {
        "ok": True,
        "provider": PROVIDER,
        "event_id": event_id,
        "event_type": event_type,
    }
    if outcome is not None:
        resp["assignment_id"] = str(outcome.assignment_id) if outcome.assignment_id else None
        resp["status_before"] = outcome.status_before
        resp["status_after"] = outcome.status_after
        if not outcome.applied:
            resp["ignored"] = True
            resp["reason"] = outcome.reason
    elif reason:
        resp["ignored"] = True
        resp["reason"] = reason
    return resp


@router.post("/stripe")
async def stripe_webhook(req: Request, store: Store = Depends(get_store)):
    raw = await req.body()
    sig_header = req.headers.get("Stripe-Signature")
    request_id = _resolve_request_id(req)

    def _log_summary(signature_valid: bool, event_type: str | None, reason: str | None, assignment_id=None) -> None:
        logger.info(
            "webhook_received request_id=%s provider=%s signature_valid=%s event_type=%s assignment_id=%s reason=%s",
            request_id,
            PROVIDER,
            signature_valid,
            redact_text(event_type or ""),
            assignment_id,
            reason,
        )

    sig_ok, sig_err = _verify_signature(raw=raw, signature_header=sig_header, secret=_get_secret())

    # If secret missing, log and 500 (deployment misconfig)
    if sig_err == "WEBHOOK_SECRET_NOT_CONFIGURED":
        _log_summary(False, None, sig_err)
        increment_webhook_event(provider=PROVIDER, signature_valid=False, applied=False)
        raise HTTPException(status_code=500, detail={"error": sig_err, "provider": PROVIDER})

    # Missing/invalid signature -> 401
    if not sig_ok:
        _log_summary(False, None, sig_err)
        increment_webhook_event(provider=PROVIDER, signature_valid=False, applied=False)
        raise HTTPException(status_code=401, detail={"error": sig_err})

    try:
        event = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        event = None

    if not isinstance(event, dict):
        _log_summary(True, None, "INVALID_JSON")
        increment_webhook_event(provider=PROVIDER, signature_valid=True, applied=False)
        raise HTTPException(status_code=400, detail={"error": "INVALID_JSON"})

    event_id = event.get("id")
    event_type = str(event.get("type") or "")

    if event_type not in SUCCESS_EVENTS + FAILURE_EVENTS:
        _log_summary(True, event_type, "UNHANDLED_EVENT_TYPE")
        increment_webhook_event(provider=PROVIDER, signature_valid=True, applied=False)
        return _response(event_id, event_type, reason="UNHANDLED_EVENT_TYPE")

    session = _extract_session(event)
    assignment_id = _assignment_id_from(session)
    if assignment_id is None:
        # 200 so the processor does not retry an event we can never apply
        _log_summary(True, event_type, "MISSING_ASSIGNMENT_ID")
        increment_webhook_event(provider=PROVIDER, signature_valid=True, applied=False)
        return _response(event_id, event_type, reason="MISSING_ASSIGNMENT_ID")

    reconciler = PaymentReconciler(AssignmentLedger(store))

    if event_type == "checkout.session.completed" and session.get("payment_status") not in (None, "paid", "no_payment_required"):
        # async payment methods report completion before the money clears
        _log_summary(True, event_type, "AWAITING_ASYNC_PAYMENT", assignment_id)
        increment_webhook_event(provider=PROVIDER, signature_valid=True, applied=False)
        return _response(event_id, event_type, reason="AWAITING_ASYNC_PAYMENT")

    if event_type in SUCCESS_EVENTS:
        amount = session.get("amount_total")
        try:
            amount_cents = int(amount)
        except (TypeError, ValueError):
            _log_summary(True, event_type, "MISSING_AMOUNT", assignment_id)
            increment_webhook_event(provider=PROVIDER, signature_valid=True, applied=False)
            raise HTTPException(status_code=400, detail={"error": "MISSING_AMOUNT"})

        external_ref = session.get("payment_intent") or session.get("id")
        # psycopg2 blocks; keep it off the event loop
        outcome = await run_in_threadpool(
            reconciler.payment_succeeded,
            assignment_id,
            amount_cents=amount_cents,
            external_ref=str(external_ref) if external_ref else None,
        )
    else:
        reason = "CHECKOUT_EXPIRED" if event_type == "checkout.session.expired" else "PAYMENT_FAILED"
        outcome = await run_in_threadpool(reconciler.payment_failed, assignment_id, reason=reason)

    _log_summary(True, event_type, outcome.reason, assignment_id)
    increment_webhook_event(provider=PROVIDER, signature_valid=True, applied=outcome.applied)
    return _response(event_id, event_type, outcome)
