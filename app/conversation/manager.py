from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Sequence

from app.ai.types import ResumeAIClient, ResumeAIError
from app.conversation import machine
from app.conversation.channel import RealtimeChannel, VoiceAgentClient, VoiceAgentError
from app.conversation.context import build_context_variables
from app.conversation.microphone import ClientMicrophoneGate, MicrophonePermissionDenied
from app.conversation.models import (
    CancelInactivityTimer,
    ConnectionState,
    ConversationSession,
    Disconnected,
    Effect,
    Errored,
    Notify,
    RearmInactivityTimer,
    ReleaseMicrophone,
    SessionEvent,
    TranscriptMessage,
    utc_now,
)
from app.conversation.summary import build_completion_summary
from app.core.notifications import Notification, NotifyCallback
from app.schemas.resume import ParsedResume

logger = logging.getLogger(__name__)

AutoFinishCallback = Callable[[tuple[TranscriptMessage, ...]], Awaitable[Any]]


class ConversationStateError(RuntimeError):
    pass


class ConversationSessionManager:
    """Owns one logical voice interview and its realtime connection.

    Every connection attempt gets a generation number. Events, timer callbacks
    and late connection results carrying an older generation are discarded, so
    a paused, finished or closed session is never touched by a stale channel.
    """

    def __init__(
        self,
        *,
        voice_client: VoiceAgentClient,
        agent_id: str,
        microphone: ClientMicrophoneGate | None = None,
        inactivity_timeout_s: float = 120.0,
        parsed_resume: ParsedResume | None = None,
        candidate_name: str | None = None,
        on_auto_finish: AutoFinishCallback | None = None,
        notify: NotifyCallback | None = None,
        clock: Callable[[], datetime] = utc_now,
        text_interviewer: ResumeAIClient | None = None,
        voice_available: bool = True,
    ):
        self._voice = voice_client
        self._agent_id = agent_id
        self._microphone = microphone or ClientMicrophoneGate()
        self._timeout_s = inactivity_timeout_s
        self._parsed_resume = parsed_resume
        self._candidate_name = candidate_name
        self._on_auto_finish = on_auto_finish
        self._notify = notify
        self._clock = clock
        self._interviewer = text_interviewer
        self._voice_available = voice_available

        self._session = ConversationSession()
        self._channel: RealtimeChannel | None = None
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._closed = False
        self._reply_pending = False

    @property
    def session(self) -> ConversationSession:
        return self._session

    @property
    def state(self) -> ConnectionState:
        return self._session.connection_state

    @property
    def transcript(self) -> tuple[TranscriptMessage, ...]:
        return self._session.transcript

    @property
    def microphone(self) -> ClientMicrophoneGate:
        return self._microphone

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        if self._closed:
            raise ConversationStateError("The interview session is closed.")
        if not self._voice_available:
            raise ConversationStateError("Voice interview is unavailable. Type your answers instead.")
        state = self._session.connection_state
        if state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return
        if state is ConnectionState.COMPLETED:
            raise ConversationStateError("The interview has already finished.")

        is_continuation = self._session.has_connected or bool(self._session.transcript)
        # Entering CONNECTING before the first await keeps overlapping calls out.
        self._session = machine.begin_connecting(self._session)
        self._generation += 1
        generation = self._generation
        logger.info("interview_connecting generation=%s continuation=%s", generation, is_continuation)

        try:
            await self._microphone.acquire()
        except MicrophonePermissionDenied as exc:
            if self._is_current(generation):
                self._apply(machine.microphone_refused(self._session, str(exc)))
                await self.open_text_interview()
            return

        if not self._is_current(generation):
            self._microphone.release()
            return

        try:
            signed_url = await self._voice.get_signed_url(self._agent_id)
            if not self._is_current(generation):
                self._microphone.release()
                return
            variables = build_context_variables(
                self._parsed_resume,
                self._session.transcript,
                is_continuation=is_continuation,
                candidate_name=self._candidate_name,
            )
            channel = await self._voice.open_session(
                signed_url,
                variables,
                lambda event: self._dispatch(event, generation),
            )
        except VoiceAgentError as exc:
            logger.warning("interview_connect_failed code=%s error=%s", exc.code, exc.message)
            if self._is_current(generation):
                self._apply(machine.connection_failed(self._session, exc.message))
            return

        if not self._is_current(generation):
            await channel.close()
            return
        self._channel = channel

    async def resume(self) -> None:
        await self.start()

    async def pause(self) -> None:
        state = self._session.connection_state
        if state not in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return
        self._generation += 1
        self._apply(machine.handle(self._session, Disconnected(user_initiated=True), self._clock()))
        await self._close_channel()
        logger.info("interview_paused messages=%s", len(self._session.transcript))

    async def finish(self) -> tuple[TranscriptMessage, ...]:
        if self._session.connection_state is ConnectionState.COMPLETED:
            return self._session.transcript
        self._generation += 1
        await self._close_channel()
        now = self._clock()
        summary = build_completion_summary(self._session.transcript, self._session.started_at, now)
        self._apply(machine.complete(self._session, summary, now))
        logger.info("interview_finished messages=%s", len(self._session.transcript))
        return self._session.transcript

    async def send_text(self, text: str) -> None:
        """Send a typed answer over the voice channel, or to the text interviewer when no call is open."""
        if self._closed:
            raise ConversationStateError("The interview session is closed.")
        if self._session.connection_state is ConnectionState.CONNECTED and self._channel is not None:
            await self._send_over_channel(self._channel, text)
            return
        if self._interviewer is None or not machine.can_type(self._session):
            raise ConversationStateError("The interview is not connected.")
        if self._reply_pending:
            raise ConversationStateError("The interviewer is still replying.")

        history = self._session.transcript
        next_session, effects = machine.record_typed_turn(self._session, "user", text, self._clock())
        if next_session is self._session:
            return
        self._apply((next_session, effects))
        await self._typed_reply(self._interviewer, history, text.strip())

    async def open_text_interview(self) -> None:
        if self._closed:
            raise ConversationStateError("The interview session is closed.")
        if self._interviewer is None or self._reply_pending or self._session.transcript:
            return
        if not machine.can_type(self._session):
            return
        await self._typed_reply(self._interviewer, (), None)

    async def _typed_reply(
        self,
        interviewer: ResumeAIClient,
        history: Sequence[TranscriptMessage],
        user_message: str | None,
    ) -> None:
        generation = self._generation
        self._reply_pending = True
        try:
            reply = await interviewer.interview(self._parsed_resume, history, user_message)
        except ResumeAIError as exc:
            logger.warning("interview_text_reply_failed code=%s error=%s", exc.code, exc.message)
            if self._is_current(generation):
                self._apply(machine.typed_reply_failed(self._session, exc.message))
            return
        finally:
            self._reply_pending = False
        if not self._is_current(generation):
            logger.debug("interview_text_reply_discarded generation=%s", generation)
            return
        self._apply(machine.record_typed_turn(self._session, "assistant", reply, self._clock()))

    async def _send_over_channel(self, channel: RealtimeChannel, text: str) -> None:
        next_session, effects = machine.record_outbound(self._session, text, self._clock())
        if next_session is self._session:
            return
        self._apply((next_session, effects))
        try:
            await channel.send_user_message(text.strip())
        except VoiceAgentError as exc:
            logger.warning("interview_send_failed code=%s error=%s", exc.code, exc.message)
            self._apply(machine.handle(self._session, Errored(reason=exc.message), self._clock()))

    def continue_after_inactivity(self) -> None:
        self._apply(machine.acknowledge_activity_prompt(self._session, self._clock()))

    async def resolve_inactivity_prompt(self, finish: bool) -> tuple[TranscriptMessage, ...] | None:
        if not self._session.awaiting_activity_decision:
            return None
        if not finish:
            self.continue_after_inactivity()
            return None
        transcript = await self.finish()
        if self._on_auto_finish is not None:
            await self._on_auto_finish(transcript)
        return transcript

    def check_inactivity(self, now: datetime | None = None) -> bool:
        session = self._session
        if session.connection_state is not ConnectionState.CONNECTED or session.last_activity is None:
            return False
        now = now or self._clock()
        if (now - session.last_activity).total_seconds() < self._timeout_s:
            return False
        self._apply(machine.inactivity_elapsed(session))
        return self._session.awaiting_activity_decision

    def handle_event(self, event: SessionEvent) -> None:
        self._dispatch(event, self._generation)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self._cancel_timer()
        await self._close_channel()
        self._microphone.release()
        logger.info("interview_session_closed state=%s", self._session.connection_state.value)

    def snapshot(self) -> dict[str, Any]:
        session = self._session
        return {
            "connection_state": session.connection_state.value,
            "session_id": session.session_id,
            "transcript": [m.to_dict() for m in session.transcript],
            "last_activity": session.last_activity.isoformat() if session.last_activity else None,
            "error": session.error,
            "status_message": session.status_message,
            "show_finish_button": session.show_finish_button,
            "paused_by_user": session.paused_by_user,
            "awaiting_activity_decision": session.awaiting_activity_decision,
            "microphone_denied": session.microphone_denied,
            "voice_available": self._voice_available,
            "awaiting_reply": self._reply_pending,
        }

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _dispatch(self, event: SessionEvent, generation: int) -> None:
        if not self._is_current(generation):
            logger.debug("interview_event_discarded event=%s generation=%s", type(event).__name__, generation)
            return
        self._apply(machine.handle(self._session, event, self._clock()))
        if isinstance(event, Disconnected):
            self._channel = None

    def _apply(self, transition: tuple[ConversationSession, list[Effect]]) -> None:
        self._session, effects = transition
        for effect in effects:
            if isinstance(effect, Notify):
                self._emit(effect)
            elif isinstance(effect, RearmInactivityTimer):
                self._rearm_timer()
            elif isinstance(effect, CancelInactivityTimer):
                self._cancel_timer()
            elif isinstance(effect, ReleaseMicrophone):
                self._microphone.release()

    def _emit(self, effect: Notify) -> None:
        if self._notify is None:
            logger.info("interview_notice title=%s", effect.title)
            return
        self._notify(Notification(title=effect.title, description=effect.description, variant=effect.variant))

    def _rearm_timer(self) -> None:
        self._cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Driven synchronously; check_inactivity() still applies.
            return
        self._timer = loop.call_later(self._timeout_s, self._on_timer, self._generation)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self, generation: int) -> None:
        self._timer = None
        if not self._is_current(generation):
            return
        self._apply(machine.inactivity_elapsed(self._session))

    async def _close_channel(self) -> None:
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            await channel.close()
        except VoiceAgentError as exc:
            logger.warning("interview_channel_close_failed error=%s", exc.message)
