from __future__ import annotations

from datetime import datetime
from typing import Iterable

from app.conversation.models import TranscriptMessage

TOPIC_KEYWORDS = ("strength", "opportunity", "improve")
RECOMMENDATION_KEYWORDS = ("recommend", "suggest", "should")
MAX_EXCERPTS = 3
EXCERPT_CHARS = 150


def _excerpt(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= EXCERPT_CHARS:
        return text
    return text[:EXCERPT_CHARS] + "..."


def _matching(messages: list[TranscriptMessage], keywords: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for message in messages:
        lowered = message.text.lower()
        if any(k in lowered for k in keywords):
            found.append(_excerpt(message.text))
        if len(found) >= MAX_EXCERPTS:
            break
    return found


def format_duration(started_at: datetime | None, now: datetime) -> str:
    if started_at is None:
        return "0m 00s"
    seconds = max(0, int((now - started_at).total_seconds()))
    minutes, seconds = divmod(seconds, 60)
    return f"{minutes}m {seconds:02d}s"


def build_completion_summary(
    transcript: Iterable[TranscriptMessage],
    started_at: datetime | None,
    now: datetime,
) -> str:
    """Text of the system message appended when an interview is finished."""
    messages = [m for m in transcript if m.role != "system"]
    assistant = [m for m in messages if m.role == "assistant"]
    turns = sum(1 for m in messages if m.role == "user")

    lines = [
        "Interview completed.",
        f"Messages exchanged: {len(messages)}",
        f"Conversation turns: {turns}",
        f"Duration: {format_duration(started_at, now)}",
    ]

    topics = _matching(assistant, TOPIC_KEYWORDS)
    if topics:
        lines.append("")
        lines.append("Key topics:")
        lines.extend(f"- {t}" for t in topics)

    recommendations = _matching(assistant, RECOMMENDATION_KEYWORDS)
    if recommendations:
        lines.append("")
        lines.append("Recommendations:")
        lines.extend(f"- {r}" for r in recommendations)

    return "\n".join(lines)
