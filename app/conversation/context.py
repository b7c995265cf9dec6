from __future__ import annotations

from typing import Iterable

from app.conversation.models import TranscriptMessage
from app.schemas.resume import ParsedResume

NOT_SPECIFIED = "Not specified"
MAX_CONTEXT_MESSAGES = 8
MAX_CONTEXT_CHARS = 150


def _truncate(text: str, limit: int = MAX_CONTEXT_CHARS) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def build_resume_context(parsed: ParsedResume | None) -> str:
    if parsed is None:
        return f"Skills: {NOT_SPECIFIED}\nWork Experience: {NOT_SPECIFIED}\nEducation: {NOT_SPECIFIED}"

    skills = ", ".join(s for s in parsed.skills if s.strip()) or NOT_SPECIFIED
    experience = (
        "; ".join(f"{e.title} at {e.company} ({e.dates})" for e in parsed.experience) or NOT_SPECIFIED
    )
    education = (
        "; ".join(f"{e.degree} from {e.institution} ({e.dates})" for e in parsed.education) or NOT_SPECIFIED
    )
    return f"Skills: {skills}\nWork Experience: {experience}\nEducation: {education}"


def build_conversation_context(transcript: Iterable[TranscriptMessage]) -> str:
    recent = [m for m in transcript if m.role != "system"][-MAX_CONTEXT_MESSAGES:]
    lines = []
    for message in recent:
        label = "Candidate" if message.role == "user" else "Interviewer"
        lines.append(f"{label}: {_truncate(message.text)}")
    return "\n".join(lines)


def build_context_variables(
    parsed: ParsedResume | None,
    transcript: Iterable[TranscriptMessage],
    *,
    is_continuation: bool,
    candidate_name: str | None = None,
) -> dict[str, str]:
    """Dynamic variables handed to the voice agent when a connection opens.

    All values are strings; the provider rejects anything else.
    """
    messages = [m for m in transcript if m.role != "system"]
    return {
        "resume_summary": build_resume_context(parsed),
        "conversation_summary": build_conversation_context(messages) or "No previous conversation.",
        "is_continuation": "true" if is_continuation else "false",
        "candidate_name": (candidate_name or "").strip() or "Candidate",
        "message_count": str(len(messages)),
    }
