from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.conversation.models import TranscriptMessage
from app.schemas.resume import ParsedResume, ScoreResult
from app.workflow.steps import Step, presentation_for


@dataclass
class WorkflowState:
    step: Step = Step.UPLOAD
    resume_bytes: bytes | None = None
    resume_filename: str | None = None
    resume_mime_type: str | None = None
    resume_text: str | None = None
    resume_data_uri: str | None = None
    parsed_resume: ParsedResume | None = None
    score_result: ScoreResult | None = None
    chat_transcript: tuple[TranscriptMessage, ...] = ()
    interview_summary: str | None = None
    rewritten_resume: str | None = None
    error: str | None = None
    is_loading: bool = False
    loading_message: str | None = None
    progress: int = 0
    configuration_error: str | None = None
    step_history: list[Step] = field(default_factory=lambda: [Step.UPLOAD])

    @property
    def has_resume(self) -> bool:
        return bool(self.resume_data_uri)

    def to_dict(self) -> dict[str, Any]:
        presentation = presentation_for(self.step)
        return {
            "step": self.step.value,
            "title": presentation.title,
            "icon": presentation.icon,
            "resume_filename": self.resume_filename,
            "resume_mime_type": self.resume_mime_type,
            "has_resume": self.has_resume,
            "parsed_resume": self.parsed_resume.model_dump() if self.parsed_resume else None,
            "score_result": self.score_result.model_dump() if self.score_result else None,
            "chat_transcript": [m.to_dict() for m in self.chat_transcript],
            "interview_summary": self.interview_summary,
            "rewritten_resume": self.rewritten_resume,
            "error": self.error,
            "is_loading": self.is_loading,
            "loading_message": self.loading_message,
            "progress": self.progress,
            "configuration_error": self.configuration_error,
            "step_history": [s.value for s in self.step_history],
        }
