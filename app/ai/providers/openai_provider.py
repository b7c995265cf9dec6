from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional, Sequence, TypeVar

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from app.ai import prompts
from app.ai.documents import resume_content_parts
from app.ai.types import ResumeAIError
from app.conversation.models import TranscriptMessage
from app.schemas.resume import InterviewReply, ParsedResume, RewriteResult, ScoreResult

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _looks_like_placeholder(value: str) -> bool:
    lower = value.strip().lower()
    return lower.startswith("your_") or lower.startswith("replace_") or lower in {"changeme", "todo"}


class OpenAIResumeClient:
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 60.0,
        max_retries: int = 2,
        temperature: float = 0.2,
    ):
        self._model = model
        self._api_key = (api_key or "").strip()
        self._base_url = base_url or None
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._temperature = temperature
        self._client: AsyncOpenAI | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._api_key) and not _looks_like_placeholder(self._api_key)

    def _get_client(self) -> AsyncOpenAI:
        if not self.enabled:
            raise ResumeAIError("OPENAI_API_KEY is missing", code="llm_disabled")
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                base_url=self._base_url,
                timeout=self._timeout_s,
                max_retries=self._max_retries,
            )
        return self._client

    async def parse(self, resume_data_uri: str) -> ParsedResume:
        content = resume_content_parts(resume_data_uri)
        return await self._json_completion(
            operation="parse",
            system_prompt=prompts.PARSE_SYSTEM_PROMPT,
            content=content,
            schema=ParsedResume,
            max_output_tokens=1500,
        )

    async def score(self, resume_data_uri: str) -> ScoreResult:
        content = resume_content_parts(resume_data_uri, preface="Resume to analyze:")
        return await self._json_completion(
            operation="score",
            system_prompt=prompts.SCORE_SYSTEM_PROMPT,
            content=content,
            schema=ScoreResult,
            max_output_tokens=1500,
        )

    async def rewrite(self, resume_data_uri: str, interview_summary: str) -> RewriteResult:
        content = [
            {"type": "text", "text": prompts.rewrite_user_prompt(interview_summary)},
            *resume_content_parts(resume_data_uri, preface="Original Resume:"),
        ]
        return await self._json_completion(
            operation="rewrite",
            system_prompt=prompts.REWRITE_SYSTEM_PROMPT,
            content=content,
            schema=RewriteResult,
            max_output_tokens=3000,
        )

    async def interview(
        self,
        parsed_resume: ParsedResume | None,
        history: Sequence[TranscriptMessage],
        user_message: str | None,
    ) -> str:
        content = [{"type": "text", "text": prompts.interview_user_prompt(parsed_resume, history, user_message)}]
        reply = await self._json_completion(
            operation="interview",
            system_prompt=prompts.INTERVIEW_SYSTEM_PROMPT,
            content=content,
            schema=InterviewReply,
            max_output_tokens=400,
        )
        return reply.ai_message.strip()

    async def _json_completion(
        self,
        *,
        operation: str,
        system_prompt: str,
        content: list[dict[str, Any]],
        schema: type[ModelT],
        max_output_tokens: int,
    ) -> ModelT:
        client = self._get_client()
        started = time.perf_counter()
        try:
            response = await client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": content},
                ],
                temperature=self._temperature,
                max_tokens=max_output_tokens,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as exc:
            logger.warning("resume_ai_request_failed operation=%s error=%s", operation, exc)
            raise ResumeAIError(str(exc), code="llm_unavailable") from exc

        latency_ms = int((time.perf_counter() - started) * 1000)
        raw = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not raw:
            raise ResumeAIError("The AI provider returned an empty response.", code="llm_empty")

        try:
            result = schema.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning("resume_ai_invalid_output operation=%s latency_ms=%s", operation, latency_ms)
            raise ResumeAIError(f"The AI provider returned invalid {operation} output.", code="llm_invalid_output") from exc

        logger.info(
            json.dumps({"event": "resume_ai_completed", "operation": operation, "model": self._model, "latency_ms": latency_ms})
        )
        return result
