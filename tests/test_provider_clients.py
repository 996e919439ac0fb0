from urllib.parse import parse_qs

import httpx
import pytest

from marketplace.services.email import EmailMessage, ResendEmailProvider
from marketplace.services.http_client import ServiceHttpClient
from marketplace.services.stripe_client import StripeClient, StripeError


def _stripe(handler) -> StripeClient:
    http = ServiceHttpClient(
        base_url="https://api.stripe.test/v1",
        headers={"Authorization": "Bearer sk_test"},
        transport=httpx.MockTransport(handler),
    )
    return StripeClient(secret_key="sk_test", http=http)


@pytest.mark.asyncio
async def test_checkout_session_is_form_encoded_with_idempotency_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["idem"] = request.headers.get("idempotency-key")
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"id": "cs_1", "url": "https://checkout.stripe.test/cs_1"})

    stripe = _stripe(handler)
    session = await stripe.create_checkout_session(
        customer_id="cus_1",
        price_id="price_pro",
        success_url="https://app.test/ok",
        cancel_url="https://app.test/cancel",
        metadata={"agency_id": "agc_1"},
        idempotency_key="checkout:agc_1:pln_1",
    )
    await stripe.aclose()

    assert session["id"] == "cs_1"
    assert seen["url"] == "https://api.stripe.test/v1/checkout/sessions"
    assert seen["auth"] == "Bearer sk_test"
    assert seen["idem"] == "checkout:agc_1:pln_1"
    assert seen["form"]["line_items[0][price]"] == ["price_pro"]
    assert seen["form"]["subscription_data[metadata][agency_id]"] == ["agc_1"]


@pytest.mark.asyncio
async def test_stripe_errors_carry_message_and_retry_verdict():
    def declined(request):
        return httpx.Response(402, json={"error": {"message": "card_declined"}})

    def overloaded(request):
        return httpx.Response(503, text="upstream busy", headers={"content-type": "text/plain"})

    with pytest.raises(StripeError) as exc:
        await _stripe(declined).create_customer(email="a@example.com", name="A", metadata={})
    assert str(exc.value) == "card_declined"
    assert exc.value.status_code == 402
    assert exc.value.retryable is False

    with pytest.raises(StripeError) as exc:
        await _stripe(overloaded).set_cancel_at_period_end("sub_1", True)
    assert str(exc.value) == "HTTP 503"
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_network_failures_are_retryable():
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = ServiceHttpClient(base_url="https://api.resend.test", transport=httpx.MockTransport(boom))
    res = await http.send("POST", "/emails", json={})
    assert res.ok is False
    assert res.error_code == "REQUEST_ERROR"
    assert res.retryable is True


@pytest.mark.asyncio
async def test_resend_provider_maps_responses():
    bodies = []

    def handler(request):
        bodies.append(request.read())
        if len(bodies) == 1:
            return httpx.Response(200, json={"id": "re_1"})
        return httpx.Response(422, json={"message": "Invalid `to` field"})

    http = ServiceHttpClient(base_url="https://api.resend.test", transport=httpx.MockTransport(handler))
    provider = ResendEmailProvider(api_key="re_key", sender="Listify <noreply@listify.test>", http=http)
    msg = EmailMessage(to="a@example.com", subject="Hi", html="<p>Hi</p>", text="Hi", tags={"template": "welcome"})

    ok = await provider.send(msg)
    assert ok.ok and ok.message_id == "re_1"

    bad = await provider.send(msg)
    assert bad.ok is False
    assert bad.error == "Invalid `to` field"
    assert bad.retryable is False
