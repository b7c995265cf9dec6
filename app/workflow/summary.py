from __future__ import annotations

from typing import Iterable

from app.conversation.models import TranscriptMessage

ROLE_LABELS = {"user": "User", "assistant": "AI"}


def build_interview_summary(transcript: Iterable[TranscriptMessage]) -> str:
    """Render the user/assistant turns of an interview as the rewrite input.

    System messages are dropped. Each turn becomes ``"<Role>: <text>"`` and
    turns are separated by a blank line.
    """
    return "\n\n".join(
        f"{ROLE_LABELS[m.role]}: {m.text}" for m in transcript if m.role in ROLE_LABELS
    )
