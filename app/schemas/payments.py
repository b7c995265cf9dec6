from typing import Any

from pydantic import BaseModel, Field


class CreatePaymentIntentRequest(BaseModel):
    amount: Any = None
    discountCode: str | None = Field(default=None, max_length=64)
    sessionId: str | None = Field(default=None, max_length=128)


class CreatePaymentIntentResponse(BaseModel):
    clientSecret: str
    amount: int


class ValidateDiscountRequest(BaseModel):
    code: Any = None


class ValidateDiscountResponse(BaseModel):
    valid: bool
    code: str
    percentage: int
    description: str
    discountedAmount: int


class PaymentConfigResponse(BaseModel):
    enabled: bool
    publishableKey: str | None = None
    currency: str
    fullPrice: int
