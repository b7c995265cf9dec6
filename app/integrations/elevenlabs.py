from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from app.conversation.channel import EventCallback, VoiceAgentError
from app.conversation.models import Connected, Disconnected, Errored, MessageReceived

logger = logging.getLogger(__name__)

SIGNED_URL_PATH = "/v1/convai/conversation/get-signed-url"


def _section(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


class ElevenLabsRealtimeChannel:
    """One open ConvAI websocket, translated into session events."""

    def __init__(self, websocket: ClientConnection, on_event: EventCallback):
        self._ws = websocket
        self._on_event = on_event
        self._closing = False
        self._reader: asyncio.Task[None] | None = None

    def start(self) -> None:
        self._reader = asyncio.create_task(self._read_loop())

    async def send_user_message(self, text: str) -> None:
        try:
            await self._ws.send(json.dumps({"type": "user_message", "text": text}))
        except ConnectionClosed as exc:
            raise VoiceAgentError("The interview connection is closed.", code="connection_closed") from exc

    async def close(self) -> None:
        self._closing = True
        await self._ws.close()
        if self._reader is not None and self._reader is not asyncio.current_task():
            await self._reader

    async def _read_loop(self) -> None:
        reason = ""
        try:
            async for frame in self._ws:
                await self._handle_frame(frame)
        except ConnectionClosed as exc:
            reason = exc.rcvd.reason if exc.rcvd is not None else str(exc)
        self._on_event(Disconnected(user_initiated=self._closing, reason=reason))

    async def _handle_frame(self, frame: str | bytes) -> None:
        if isinstance(frame, bytes):
            return
        try:
            payload: Any = json.loads(frame)
        except json.JSONDecodeError:
            logger.debug("elevenlabs_frame_skipped reason=invalid_json")
            return
        if not isinstance(payload, dict):
            logger.debug("elevenlabs_frame_skipped reason=not_an_object")
            return

        kind = payload.get("type")
        if kind == "conversation_initiation_metadata":
            meta = _section(payload, "conversation_initiation_metadata_event")
            self._on_event(Connected(session_id=str(meta.get("conversation_id") or "")))
        elif kind == "agent_response":
            event = _section(payload, "agent_response_event")
            self._on_event(MessageReceived(text=str(event.get("agent_response") or ""), source="ai"))
        elif kind == "user_transcript":
            event = _section(payload, "user_transcription_event")
            self._on_event(MessageReceived(text=str(event.get("user_transcript") or ""), source="user_transcript"))
        elif kind == "ping":
            event = _section(payload, "ping_event")
            await self._ws.send(json.dumps({"type": "pong", "event_id": event.get("event_id")}))
        elif kind == "error":
            self._on_event(Errored(reason=str(payload.get("message") or payload.get("error") or "Voice agent error")))


class ElevenLabsClient:
    def __init__(
        self,
        api_key: str | None,
        api_base: str = "https://api.elevenlabs.io",
        timeout_s: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = (api_key or "").strip()
        self._api_base = api_base.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def get_signed_url(self, agent_id: str) -> str:
        if not agent_id:
            raise VoiceAgentError("agent_id is required", code="missing_agent_id", status_code=400)
        if not self._api_key:
            raise VoiceAgentError("Server configuration error", code="not_configured", status_code=500)

        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                response = await client.get(
                    f"{self._api_base}{SIGNED_URL_PATH}",
                    params={"agent_id": agent_id},
                    headers={"xi-api-key": self._api_key},
                )
        except httpx.HTTPError as exc:
            logger.warning("elevenlabs_signed_url_unreachable error=%s", exc)
            raise VoiceAgentError(f"Failed to get signed URL: {exc}", code="unreachable", status_code=502) from exc

        if not response.is_success:
            raise VoiceAgentError(
                f"Failed to get signed URL: {response.reason_phrase}",
                code="signed_url_failed",
                status_code=response.status_code,
            )
        try:
            signed_url = (response.json() or {}).get("signed_url")
        except ValueError as exc:
            raise VoiceAgentError("Failed to get signed URL: invalid response", code="signed_url_failed") from exc
        if not signed_url:
            raise VoiceAgentError("Failed to get signed URL: empty response", code="signed_url_failed")
        return str(signed_url)

    async def open_session(
        self,
        signed_url: str,
        dynamic_variables: dict[str, str],
        on_event: EventCallback,
    ) -> ElevenLabsRealtimeChannel:
        try:
            websocket = await connect(signed_url, open_timeout=self._timeout_s)
            await websocket.send(
                json.dumps(
                    {
                        "type": "conversation_initiation_client_data",
                        "dynamic_variables": dynamic_variables,
                    }
                )
            )
        except (OSError, TimeoutError, WebSocketException) as exc:
            logger.warning("elevenlabs_connect_failed error=%s", exc)
            raise VoiceAgentError(f"Could not connect to the voice agent: {exc}", code="connect_failed") from exc

        channel = ElevenLabsRealtimeChannel(websocket, on_event)
        channel.start()
        return channel
