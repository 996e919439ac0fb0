from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx

# statuses a provider may answer differently on the next attempt
RETRYABLE_STATUSES = frozenset({408, 409, 429, 500, 502, 503, 504})


@dataclass(frozen=True)
class ProviderResponse:
    ok: bool
    status_code: int | None
    body: dict[str, Any] = field(default_factory=dict)
    error_code: str | None = None
    error_message: str | None = None
    retryable: bool = False
    request_id: str | None = None


def _provider_error(body: dict[str, Any]) -> str | None:
    # Stripe nests {"error": {"message"}}, Resend answers {"message"}
    err = body.get("error")
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    if body.get("message"):
        return str(body["message"])
    return None


def _decode(resp: httpx.Response, max_chars: int) -> dict[str, Any]:
    ctype = (resp.headers.get("content-type") or "").lower()
    if "json" in ctype:
        try:
            parsed = resp.json()
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        if parsed is not None:
            return {"data": parsed}
    text = resp.text
    if len(text) > max_chars:
        text = text[:max_chars] + "...(truncated)"
    return {"raw": text}


class ServiceHttpClient:
    """
    Pooled httpx client for the payment and email providers.

    Never retries on its own: the outbox worker and Stripe's redelivery own
    retries, so every failure comes back as a ProviderResponse with a
    `retryable` verdict instead of an exception.
    """

    def __init__(
        self,
        *,
        base_url: str,
        headers: Mapping[str, str] | None = None,
        timeout_seconds: float = 20.0,
        max_body_chars: int = 20_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._max_body = max_body_chars
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=dict(headers or {}),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        form: Mapping[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> ProviderResponse:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None
        try:
            resp = await self._client.request(
                method,
                path,
                headers=headers,
                json=json,
                data=dict(form) if form is not None else None,
            )
        except httpx.TimeoutException as e:
            return ProviderResponse(ok=False, status_code=None, error_code="TIMEOUT", error_message=str(e), retryable=True)
        except httpx.RequestError as e:
            # dns, refused connections, tls
            return ProviderResponse(ok=False, status_code=None, error_code="REQUEST_ERROR", error_message=str(e), retryable=True)

        body = _decode(resp, self._max_body)
        request_id = resp.headers.get("request-id")
        if resp.is_success:
            return ProviderResponse(ok=True, status_code=resp.status_code, body=body, request_id=request_id)

        return ProviderResponse(
            ok=False,
            status_code=resp.status_code,
            body=body,
            error_code=f"HTTP_{resp.status_code}",
            error_message=_provider_error(body) or f"HTTP {resp.status_code}",
            retryable=resp.status_code in RETRYABLE_STATUSES,
            request_id=request_id,
        )
