# app/providers/factory.py
from __future__ import annotations

from typing import Any, Dict

from settings import settings

_PROVIDER_CACHE: Dict[str, Any] = {}


def get_checkout_provider(mode: str | None = None):
    key = (mode or settings.CHECKOUT_MODE or "").strip().lower()

    if key in _PROVIDER_CACHE:
        return _PROVIDER_CACHE[key]

    if key == "stripe":
        from app.providers.stripe_checkout import StripeCheckoutProvider
        provider = StripeCheckoutProvider()

    elif key == "mock":
        from app.providers.mock import MockCheckoutProvider
        provider = MockCheckoutProvider()

    else:
        raise ValueError(f"Unknown CHECKOUT_MODE: {key!r}")

    _PROVIDER_CACHE[key] = provider
    return provider
