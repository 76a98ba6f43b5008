# app/providers/mock.py
from __future__ import annotations

from uuid import uuid4

from app.providers.base import CheckoutProviderError, CheckoutRequest, CheckoutSession


class MockCheckoutProvider:
    """
    Sandbox/dev provider. Returns a fake hosted-checkout URL; completion is
    simulated by posting a signed event to the webhook endpoint.
    """

    name = "MOCK"

    def __init__(self, *, succeed: bool = True, base_url: str = "https://checkout.mock.local/pay"):
        self.succeed = succeed
        self.base_url = base_url.rstrip("/")
        self.requests: list[CheckoutRequest] = []

    def create_checkout_session(self, req: CheckoutRequest) -> CheckoutSession:
        self.requests.append(req)
        if not self.succeed:
            raise CheckoutProviderError("Mock checkout failure", http_status=503)

        session_id = f"cs_mock_{uuid4().hex}"
        return CheckoutSession(
            session_id=session_id,
            url=f"{self.base_url}/{session_id}",
            response={"mock": True, "amount_total": req.amount_cents, "currency": req.currency},
        )
