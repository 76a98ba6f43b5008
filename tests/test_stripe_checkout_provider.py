import uuid
from urllib.parse import parse_qs

import httpx
import pytest

from app.providers.base import CheckoutProviderError, CheckoutRequest
from app.providers.http import HttpClient
from app.providers.stripe_checkout import StripeCheckoutProvider


def _request(amount_cents=5000):
    return CheckoutRequest(
        assignment_id=uuid.UUID("11111111-1111-1111-1111-111111111111"),
        amount_cents=amount_cents,
        currency="USD",
        description="Tutoring session with Tara",
        product_name="Tutoring Session - Math",
        platform_commission_cents=1000,
        success_url="https://app.example/ok",
        cancel_url="https://app.example/cancel",
    )


def _provider(handler, secret_key="sk_test_abc"):
    http = HttpClient(timeout_s=1.0, transport=httpx.MockTransport(handler))
    return StripeCheckoutProvider(http, secret_key=secret_key, api_base="https://stripe.test")


def test_creates_session_with_form_and_idempotency_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"})

    session = _provider(handler).create_checkout_session(_request())

    assert session.session_id == "cs_test_1"
    assert session.url == "https://checkout.stripe.test/cs_test_1"
    assert seen["url"] == "https://stripe.test/v1/checkout/sessions"
    assert seen["headers"]["Authorization"] == "Bearer sk_test_abc"
    assert seen["headers"]["Idempotency-Key"] == "checkout-11111111-1111-1111-1111-111111111111"
    form = seen["form"]
    assert form["line_items[0][price_data][unit_amount]"] == ["5000"]
    assert form["line_items[0][price_data][currency]"] == ["usd"]
    assert form["metadata[assignment_id]"] == ["11111111-1111-1111-1111-111111111111"]
    assert form["metadata[platform_commission_cents]"] == ["1000"]


def test_error_response_raises_with_retry_hint():
    def handler(request):
        return httpx.Response(503, json={"error": {"message": "try later"}})

    with pytest.raises(CheckoutProviderError) as exc:
        _provider(handler).create_checkout_session(_request())
    assert exc.value.http_status == 503
    assert exc.value.retryable is True
    assert "try later" in str(exc.value)


def test_client_error_is_not_retryable():
    def handler(request):
        return httpx.Response(400, json={"error": {"message": "bad currency"}})

    with pytest.raises(CheckoutProviderError) as exc:
        _provider(handler).create_checkout_session(_request())
    assert exc.value.retryable is False


def test_timeout_is_retryable():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(CheckoutProviderError) as exc:
        _provider(handler).create_checkout_session(_request())
    assert exc.value.retryable is True


def test_missing_secret_key_fails_before_any_request():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(CheckoutProviderError):
        _provider(handler, secret_key="").create_checkout_session(_request())


def test_missing_session_id_is_an_error():
    def handler(request):
        return httpx.Response(200, json={"url": "x"})

    with pytest.raises(CheckoutProviderError):
        _provider(handler).create_checkout_session(_request())
