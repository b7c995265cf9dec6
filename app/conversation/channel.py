from __future__ import annotations

from typing import Callable, Protocol

from app.conversation.models import SessionEvent

EventCallback = Callable[[SessionEvent], None]


class VoiceAgentError(RuntimeError):
    def __init__(self, message: str, code: str = "voice_agent_error", status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class RealtimeChannel(Protocol):
    async def send_user_message(self, text: str) -> None:
        ...

    async def close(self) -> None:
        ...


class VoiceAgentClient(Protocol):
    async def get_signed_url(self, agent_id: str) -> str:
        ...

    async def open_session(
        self,
        signed_url: str,
        dynamic_variables: dict[str, str],
        on_event: EventCallback,
    ) -> RealtimeChannel:
        ...
