from __future__ import annotations

from typing import Any

# Stripe event fields we never keep in webhook_events.payload
STRIPE_SENSITIVE_KEYS = frozenset({
    "client_secret", "secret", "api_key", "authorization",
    "payment_method", "payment_method_details", "card", "bank_account",
    "address", "phone", "tax_ids", "shipping",
})

REDACTED = "[redacted]"


def redact_payload(value: Any, *, keys: frozenset[str] = STRIPE_SENSITIVE_KEYS) -> Any:
    """Copy of a decoded JSON document with sensitive keys masked at any depth."""
    if isinstance(value, dict):
        return {
            k: REDACTED if isinstance(k, str) and k.lower() in keys else redact_payload(v, keys=keys)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [redact_payload(item, keys=keys) for item in value]
    return value
