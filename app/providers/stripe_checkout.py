# app/providers/stripe_checkout.py
from __future__ import annotations

import logging
from typing import Optional

import httpx

from app.providers.base import CheckoutProviderError, CheckoutRequest, CheckoutSession
from app.providers.http import HttpClient, is_retryable_http
from settings import settings

logger = logging.getLogger("tutormatch.checkout")


class StripeCheckoutProvider:
    """Creates Stripe Checkout sessions through the REST API (form-encoded)."""

    name = "STRIPE"

    def __init__(
        self,
        http: Optional[HttpClient] = None,
        *,
        secret_key: Optional[str] = None,
        api_base: Optional[str] = None,
    ):
        timeout = float(getattr(settings, "CHECKOUT_HTTP_TIMEOUT_S", 20.0))
        self.http = http or HttpClient(timeout_s=timeout)
        self.secret_key = (secret_key if secret_key is not None else settings.STRIPE_SECRET_KEY).strip()
        self.api_base = (api_base or settings.STRIPE_API_BASE).rstrip("/")

    @staticmethod
    def build_form(req: CheckoutRequest) -> dict[str, str]:
        return {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": req.currency.lower(),
            "line_items[0][price_data][unit_amount]": str(int(req.amount_cents)),
            "line_items[0][price_data][product_data][name]": req.product_name,
            "line_items[0][price_data][product_data][description]": req.description,
            "metadata[assignment_id]": str(req.assignment_id),
            "metadata[platform_commission_cents]": str(int(req.platform_commission_cents)),
            "client_reference_id": str(req.assignment_id),
            "success_url": req.success_url,
            "cancel_url": req.cancel_url,
        }

    def create_checkout_session(self, req: CheckoutRequest) -> CheckoutSession:
        if not self.secret_key:
            raise CheckoutProviderError("STRIPE_SECRET_KEY not configured")
        if int(req.amount_cents) <= 0:
            raise CheckoutProviderError("Missing/invalid amount_cents")

        url = f"{self.api_base}/v1/checkout/sessions"
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            # a retried create for the same assignment must not open a second session
            "Idempotency-Key": f"checkout-{req.assignment_id}",
        }

        try:
            resp = self.http.post_form(url, headers=headers, data=self.build_form(req))
        except httpx.TimeoutException:
            raise CheckoutProviderError("Gateway timeout", retryable=True)
        except httpx.HTTPError as e:
            raise CheckoutProviderError(f"Provider error: {type(e).__name__}", retryable=True)

        if resp.status_code in (200, 201):
            body = resp.json or {}
            session_id = body.get("id")
            if not session_id:
                raise CheckoutProviderError("Stripe response missing session id", http_status=resp.status_code)
            logger.info(
                "checkout_session_created provider=STRIPE assignment_id=%s session_id=%s",
                req.assignment_id,
                session_id,
            )
            return CheckoutSession(session_id=session_id, url=body.get("url"), response=body)

        err = ""
        if isinstance(resp.json, dict):
            err = str((resp.json.get("error") or {}).get("message") or "")
        logger.warning(
            "checkout_session_failed provider=STRIPE assignment_id=%s http_status=%s error=%s",
            req.assignment_id,
            resp.status_code,
            err,
        )
        raise CheckoutProviderError(
            f"Stripe HTTP {resp.status_code}: {err}".strip().rstrip(":"),
            http_status=resp.status_code,
            retryable=is_retryable_http(resp.status_code),
        )
