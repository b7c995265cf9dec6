from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Union

Role = Literal["system", "user", "assistant"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TranscriptMessage:
    id: str
    role: Role
    text: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
        }


def new_message(role: Role, text: str, timestamp: datetime | None = None) -> TranscriptMessage:
    return TranscriptMessage(
        id=uuid.uuid4().hex,
        role=role,
        text=text,
        timestamp=timestamp or utc_now(),
    )


class ConnectionState(str, Enum):
    NEW = "new"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ConversationSession:
    connection_state: ConnectionState = ConnectionState.NEW
    session_id: str | None = None
    transcript: tuple[TranscriptMessage, ...] = field(default_factory=tuple)
    last_activity: datetime | None = None
    started_at: datetime | None = None
    has_connected: bool = False
    error: str | None = None
    status_message: str | None = None
    show_finish_button: bool = False
    paused_by_user: bool = False
    awaiting_activity_decision: bool = False
    microphone_denied: bool = False


# Inbound events from the realtime channel.


@dataclass(frozen=True)
class Connected:
    session_id: str


@dataclass(frozen=True)
class Disconnected:
    user_initiated: bool = False
    reason: str = ""


@dataclass(frozen=True)
class MessageReceived:
    text: str
    source: str


@dataclass(frozen=True)
class Errored:
    reason: str


SessionEvent = Union[Connected, Disconnected, MessageReceived, Errored]


# Side effects requested by a transition; executed by the manager.


@dataclass(frozen=True)
class Notify:
    title: str
    description: str = ""
    variant: Literal["default", "destructive"] = "default"


@dataclass(frozen=True)
class RearmInactivityTimer:
    pass


@dataclass(frozen=True)
class CancelInactivityTimer:
    pass


@dataclass(frozen=True)
class ReleaseMicrophone:
    pass


Effect = Union[Notify, RearmInactivityTimer, CancelInactivityTimer, ReleaseMicrophone]
