from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import stripe

logger = logging.getLogger(__name__)

RECORDED_METADATA = ("workflow_session_id", "discount_code", "original_amount", "discount_percentage")


class PaymentError(RuntimeError):
    def __init__(self, message: str, *, status_code: int = 500, code: str = "payment_error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


@dataclass(frozen=True)
class CreatedIntent:
    intent_id: str
    client_secret: str
    amount: int


@dataclass(frozen=True)
class PaymentRecord:
    intent_id: str
    status: str
    amount: int
    metadata: dict[str, str] = field(default_factory=dict)


class PaymentProvider(Protocol):
    @property
    def configured(self) -> bool: ...

    async def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> CreatedIntent: ...

    async def payment_status(self, intent_id: str) -> PaymentRecord: ...


class StripePaymentProvider:
    def __init__(self, secret_key: str | None):
        self._secret_key = (secret_key or "").strip()

    @property
    def configured(self) -> bool:
        return bool(self._secret_key)

    def _require_key(self) -> str:
        if not self._secret_key:
            raise PaymentError("Server configuration error", status_code=500, code="not_configured")
        return self._secret_key

    async def create_intent(self, amount: int, currency: str, metadata: dict[str, str]) -> CreatedIntent:
        api_key = self._require_key()
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                api_key=api_key,
                amount=amount,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            logger.warning("stripe_intent_create_failed error=%s", exc)
            raise PaymentError(exc.user_message or "Error creating payment intent", status_code=500) from exc

        return CreatedIntent(
            intent_id=str(intent["id"]),
            client_secret=str(intent["client_secret"]),
            amount=int(intent["amount"]),
        )

    async def payment_status(self, intent_id: str) -> PaymentRecord:
        api_key = self._require_key()
        try:
            intent: Any = await asyncio.to_thread(stripe.PaymentIntent.retrieve, intent_id, api_key=api_key)
        except stripe.InvalidRequestError as exc:
            raise PaymentError("Unknown payment.", status_code=400, code="unknown_payment") from exc
        except stripe.StripeError as exc:
            logger.warning("stripe_intent_retrieve_failed intent_id=%s error=%s", intent_id, exc)
            raise PaymentError(exc.user_message or "Could not verify payment.", status_code=502) from exc
        metadata = intent.get("metadata") or {}
        return PaymentRecord(
            intent_id=str(intent["id"]),
            status=str(intent["status"]),
            amount=int(intent.get("amount") or 0),
            metadata={key: str(metadata.get(key)) for key in RECORDED_METADATA if metadata.get(key)},
        )
