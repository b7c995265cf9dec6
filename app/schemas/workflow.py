from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class SignInRequest(BaseModel):
    credential: str = Field(min_length=1, max_length=8192)


class PaymentConfirmRequest(BaseModel):
    payment_intent_id: str = Field(min_length=1, max_length=255)


class ExportRequest(BaseModel):
    format: Literal["txt", "json"] = "txt"
    edited_text: str | None = Field(default=None, max_length=200000)


class InterviewStartRequest(BaseModel):
    microphone_granted: bool | None = None


class InterviewMessageRequest(BaseModel):
    text: str = Field(min_length=1, max_length=4000)


class InterviewContinueRequest(BaseModel):
    finish: bool = False


class WorkflowCreatedResponse(BaseModel):
    session_id: str
    step: str
    title: str
    icon: str
