from __future__ import annotations

from typing import Protocol, Sequence

from app.conversation.models import TranscriptMessage
from app.schemas.resume import ParsedResume, RewriteResult, ScoreResult


class ResumeAIError(RuntimeError):
    def __init__(self, message: str, *, code: str = "llm_unavailable"):
        super().__init__(message)
        self.message = message
        self.code = code


class ResumeAIClient(Protocol):
    async def parse(self, resume_data_uri: str) -> ParsedResume: ...

    async def score(self, resume_data_uri: str) -> ScoreResult: ...

    async def rewrite(self, resume_data_uri: str, interview_summary: str) -> RewriteResult: ...

    async def interview(
        self,
        parsed_resume: ParsedResume | None,
        history: Sequence[TranscriptMessage],
        user_message: str | None,
    ) -> str: ...
