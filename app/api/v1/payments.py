from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, Request

from app.core.config import pricing, settings
from app.core.rate_limit import rate_limit
from app.integrations.stripe_payments import PaymentError, PaymentProvider, StripePaymentProvider
from app.schemas.payments import (
    CreatePaymentIntentRequest,
    CreatePaymentIntentResponse,
    PaymentConfigResponse,
    ValidateDiscountRequest,
    ValidateDiscountResponse,
)
from app.services import payment_service

router = APIRouter()


@lru_cache(maxsize=1)
def get_payment_provider() -> PaymentProvider:
    return StripePaymentProvider(settings.stripe_secret_key)


def _raise_payment_http_error(exc: PaymentError) -> None:
    raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.post("/payments/create-payment-intent", response_model=CreatePaymentIntentResponse)
@rate_limit("10/minute")
async def create_payment_intent(
    request: Request,
    payload: CreatePaymentIntentRequest,
    provider: PaymentProvider = Depends(get_payment_provider),
):
    _ = request
    try:
        return await payment_service.create_payment_intent(
            provider,
            amount=payload.amount,
            discount_code=payload.discountCode,
            currency=settings.payment_currency,
            workflow_session_id=payload.sessionId,
        )
    except PaymentError as exc:
        _raise_payment_http_error(exc)


@router.post("/payments/validate-discount", response_model=ValidateDiscountResponse)
@rate_limit("10/minute")
async def validate_discount(request: Request, payload: ValidateDiscountRequest):
    _ = request
    try:
        return payment_service.validate_discount_code(payload.code)
    except PaymentError as exc:
        _raise_payment_http_error(exc)


@router.get("/payments/config", response_model=PaymentConfigResponse)
async def payment_config():
    return PaymentConfigResponse(
        enabled=settings.payment_enabled,
        publishableKey=settings.stripe_publishable_key,
        currency=settings.payment_currency,
        fullPrice=pricing.full_price_cents(),
    )
