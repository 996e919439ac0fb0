"""
Minimal Stripe REST client over httpx.

Only the calls billing needs: customers, checkout sessions and subscription
updates. Stripe takes form-encoded bodies with bracketed keys for nesting.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from fastapi import HTTPException

from marketplace.core.config import settings
from marketplace.services.http_client import ProviderResponse, ServiceHttpClient

log = logging.getLogger(__name__)


class StripeError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


def flatten_form(params: Mapping[str, Any], prefix: str = "") -> dict[str, str]:
    """{"metadata": {"a": 1}, "items": [{"price": "p"}]} -> {"metadata[a]": "1", "items[0][price]": "p"}"""
    out: dict[str, str] = {}
    for key, value in params.items():
        full = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            out.update(flatten_form(value, full))
        elif isinstance(value, (list, tuple)):
            for i, item in enumerate(value):
                if isinstance(item, Mapping):
                    out.update(flatten_form(item, f"{full}[{i}]"))
                else:
                    out[f"{full}[{i}]"] = _form_value(item)
        else:
            out[full] = _form_value(value)
    return out


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class StripeClient:
    def __init__(self, *, secret_key: str, api_base: str = "https://api.stripe.com/v1", http: ServiceHttpClient | None = None):
        self._http = http or ServiceHttpClient(
            base_url=api_base,
            headers={"Authorization": f"Bearer {secret_key}"},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    def _unwrap(self, res: ProviderResponse, what: str) -> dict[str, Any]:
        if res.ok:
            return res.body
        log.warning("stripe: %s failed status=%s code=%s", what, res.status_code, res.error_code)
        raise StripeError(res.error_message or f"Stripe {what} failed", status_code=res.status_code, retryable=res.retryable)

    async def create_customer(self, *, email: str | None, name: str, metadata: dict[str, str]) -> dict[str, Any]:
        res = await self._http.send(
            "POST",
            "/customers",
            form=flatten_form({"email": email, "name": name, "metadata": metadata}),
        )
        return self._unwrap(res, "create customer")

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        body = {
            "mode": "subscription",
            "customer": customer_id,
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            "subscription_data": {"metadata": metadata},
        }
        res = await self._http.send("POST", "/checkout/sessions", form=flatten_form(body), idempotency_key=idempotency_key)
        return self._unwrap(res, "create checkout session")

    async def set_cancel_at_period_end(self, subscription_id: str, cancel: bool) -> dict[str, Any]:
        res = await self._http.send(
            "POST",
            f"/subscriptions/{subscription_id}",
            form=flatten_form({"cancel_at_period_end": cancel}),
        )
        return self._unwrap(res, "update subscription")


_client: StripeClient | None = None


def get_stripe_client() -> StripeClient:
    """FastAPI dependency: 503 when billing is not configured."""
    global _client
    if settings.stripe_secret_key is None:
        raise HTTPException(status_code=503, detail="Billing is not configured")
    if _client is None:
        _client = StripeClient(
            secret_key=settings.stripe_secret_key.get_secret_value(),
            api_base=settings.stripe_api_base,
        )
    return _client
