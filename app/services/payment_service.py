from __future__ import annotations

import json
import logging
from typing import Any

from app.core.config import pricing
from app.core.config.pricing import DiscountCode
from app.integrations.stripe_payments import PaymentError, PaymentProvider, PaymentRecord

logger = logging.getLogger(__name__)


def _lookup_code(code: str) -> DiscountCode | None:
    return pricing.discount_codes().get(code.strip().upper())


def validate_discount_code(code: Any) -> dict[str, Any]:
    if not code or not isinstance(code, str) or not code.strip():
        raise PaymentError("Please enter a discount code", status_code=400, code="missing_code")

    entry = _lookup_code(code)
    if entry is None:
        raise PaymentError("Invalid discount code", status_code=400, code="invalid_code")
    if not entry.active:
        raise PaymentError("This discount code has expired", status_code=400, code="expired_code")

    return {
        "valid": True,
        "code": entry.code,
        "percentage": entry.percentage,
        "description": entry.description,
        "discountedAmount": entry.discounted_amount(pricing.full_price_cents()),
    }


def expected_amount(discount_code: str | None) -> int:
    if not discount_code or not discount_code.strip():
        return pricing.full_price_cents()
    entry = _lookup_code(discount_code)
    if entry is None or not entry.active:
        raise PaymentError("Invalid discount code", status_code=400, code="invalid_code")
    return entry.discounted_amount(pricing.full_price_cents())


async def create_payment_intent(
    provider: PaymentProvider,
    *,
    amount: Any,
    discount_code: str | None,
    currency: str,
    workflow_session_id: str | None = None,
) -> dict[str, Any]:
    """Create an intent for the server-validated price; the client amount must match it exactly."""
    if not provider.configured:
        raise PaymentError("Server configuration error", status_code=500, code="not_configured")

    expected = expected_amount(discount_code)
    if isinstance(amount, bool) or not isinstance(amount, int) or amount != expected:
        logger.warning("invalid_payment_amount received=%s expected=%s", amount, expected)
        raise PaymentError("Invalid payment amount", status_code=400, code="invalid_amount")

    metadata: dict[str, str] = {}
    entry = _lookup_code(discount_code) if discount_code and discount_code.strip() else None
    if entry is not None:
        metadata = {
            "discount_code": entry.code,
            "original_amount": str(pricing.full_price_cents()),
            "discount_percentage": str(entry.percentage),
        }

    if workflow_session_id:
        metadata["workflow_session_id"] = workflow_session_id

    intent = await provider.create_intent(expected, currency, metadata)
    logger.info(json.dumps({"event": "payment_intent_created", "amount": intent.amount, "discounted": entry is not None}))
    return {"clientSecret": intent.client_secret, "amount": intent.amount}


def verify_paid_intent(record: PaymentRecord, workflow_session_id: str | None) -> None:
    """Accept an intent only if it succeeded, was created for this session and charged the server price."""
    if record.status != "succeeded":
        raise PaymentError(f"Payment status is '{record.status}'.", status_code=402, code="not_paid")
    if record.metadata.get("workflow_session_id") != workflow_session_id:
        logger.warning("payment_session_mismatch intent_id=%s", record.intent_id)
        raise PaymentError("This payment was made for a different session.", status_code=403, code="session_mismatch")
    expected = expected_amount(record.metadata.get("discount_code"))
    if record.amount != expected:
        logger.warning("payment_amount_mismatch intent_id=%s paid=%s expected=%s", record.intent_id, record.amount, expected)
        raise PaymentError("The payment amount does not match the price.", status_code=400, code="amount_mismatch")
