# deps/checkout.py
from app.providers.base import CheckoutProvider
from app.providers.factory import get_checkout_provider


def checkout_provider() -> CheckoutProvider:
    return get_checkout_provider()
