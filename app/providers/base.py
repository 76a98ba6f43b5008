# app/providers/base.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol
from uuid import UUID


class CheckoutProviderError(Exception):
    """The payment processor could not create a checkout session."""

    def __init__(self, message: str, *, http_status: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.http_status = http_status
        self.retryable = retryable


@dataclass(frozen=True)
class CheckoutRequest:
    assignment_id: UUID
    amount_cents: int
    currency: str
    description: str
    product_name: str
    platform_commission_cents: int
    success_url: str
    cancel_url: str


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: Optional[str]
    response: Optional[dict[str, Any]] = None


class CheckoutProvider(Protocol):
    name: str

    def create_checkout_session(self, req: CheckoutRequest) -> CheckoutSession: ...
