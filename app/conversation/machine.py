"""Pure transition logic for a single voice-interview session.

Every function takes the current :class:`ConversationSession` and returns the
next one together with the side effects the caller has to perform. Nothing in
here touches the network, timers or the microphone.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from app.conversation.models import (
    CancelInactivityTimer,
    Connected,
    ConnectionState,
    ConversationSession,
    Disconnected,
    Effect,
    Errored,
    MessageReceived,
    Notify,
    RearmInactivityTimer,
    ReleaseMicrophone,
    Role,
    SessionEvent,
    TranscriptMessage,
    new_message,
)

USER_SOURCES = frozenset({"user", "user_transcript", "user_message", "human", "caller"})

PAUSED_BY_USER_MESSAGE = "Interview paused. Resume whenever you're ready, or finish now."
DISCONNECTED_MESSAGE = "The interview connection was lost. Resume to continue, or finish now."
INACTIVITY_PROMPT = "Are you still there? Continue the interview or finish it now."

Transition = tuple[ConversationSession, list[Effect]]


def normalize_role(source: str | None) -> Role:
    if (source or "").strip().lower() in USER_SOURCES:
        return "user"
    return "assistant"


def handle(session: ConversationSession, event: SessionEvent, now: datetime) -> Transition:
    if session.connection_state is ConnectionState.COMPLETED:
        return session, []
    if isinstance(event, Connected):
        return _on_connected(session, event, now)
    if isinstance(event, Disconnected):
        return _on_disconnected(session, event, now)
    if isinstance(event, MessageReceived):
        return _on_message(session, event, now)
    if isinstance(event, Errored):
        return _on_error(session, event)
    raise TypeError(f"Unsupported session event: {event!r}")


def _on_connected(session: ConversationSession, event: Connected, now: datetime) -> Transition:
    if session.connection_state is not ConnectionState.CONNECTING:
        return session, []
    resumed = session.has_connected
    next_session = replace(
        session,
        connection_state=ConnectionState.CONNECTED,
        session_id=event.session_id or None,
        has_connected=True,
        started_at=session.started_at or now,
        last_activity=now,
        error=None,
        status_message=None,
        show_finish_button=True,
        paused_by_user=False,
        awaiting_activity_decision=False,
    )
    notice = Notify(
        title="Interview resumed" if resumed else "Interview connected",
        description="Pick up where you left off." if resumed else "Say hello to start the conversation.",
    )
    return next_session, [RearmInactivityTimer(), notice]


def _on_disconnected(session: ConversationSession, event: Disconnected, now: datetime) -> Transition:
    state = session.connection_state
    if state is ConnectionState.CONNECTING:
        if event.user_initiated:
            return _revert_connecting(session, error=None), [ReleaseMicrophone()]
        reason = event.reason or "The voice agent closed the connection."
        return connection_failed(session, reason)
    if state is not ConnectionState.CONNECTED:
        return session, []

    next_session = replace(
        session,
        connection_state=ConnectionState.PAUSED,
        session_id=None,
        show_finish_button=True,
        paused_by_user=event.user_initiated,
        awaiting_activity_decision=False,
        status_message=PAUSED_BY_USER_MESSAGE if event.user_initiated else DISCONNECTED_MESSAGE,
    )
    effects: list[Effect] = [CancelInactivityTimer(), ReleaseMicrophone()]
    if not event.user_initiated:
        reason = event.reason or DISCONNECTED_MESSAGE
        # Only dropped connections are recorded; a user pause leaves the transcript untouched.
        notice = new_message("system", f"Interview disconnected: {reason}", now)
        next_session = replace(next_session, transcript=next_session.transcript + (notice,))
        effects.append(Notify(title="Interview disconnected", description=reason, variant="destructive"))
    return next_session, effects


def _on_message(session: ConversationSession, event: MessageReceived, now: datetime) -> Transition:
    if session.connection_state not in {ConnectionState.CONNECTING, ConnectionState.CONNECTED}:
        return session, []
    text = (event.text or "").strip()
    if not text:
        return session, []
    message = new_message(normalize_role(event.source), text, now)
    return _append(session, message, now), [RearmInactivityTimer()]


def _on_error(session: ConversationSession, event: Errored) -> Transition:
    if session.connection_state is ConnectionState.CONNECTING:
        return connection_failed(session, event.reason)
    next_session = replace(session, error=f"Connection error: {event.reason}")
    return next_session, [Notify(title="AI interview error", description=event.reason, variant="destructive")]


def _append(session: ConversationSession, message: TranscriptMessage, now: datetime) -> ConversationSession:
    return replace(
        session,
        transcript=session.transcript + (message,),
        last_activity=now,
        awaiting_activity_decision=False,
    )


def _revert_connecting(session: ConversationSession, error: str | None) -> ConversationSession:
    fallback = ConnectionState.PAUSED if session.has_connected else ConnectionState.NEW
    return replace(
        session,
        connection_state=fallback,
        session_id=None,
        error=error,
        show_finish_button=session.has_connected or bool(session.transcript),
    )


def begin_connecting(session: ConversationSession) -> ConversationSession:
    return replace(
        session,
        connection_state=ConnectionState.CONNECTING,
        error=None,
        microphone_denied=False,
        awaiting_activity_decision=False,
        status_message="Connecting to the AI interviewer...",
    )


def connection_failed(session: ConversationSession, reason: str) -> Transition:
    next_session = replace(_revert_connecting(session, error=reason), status_message=None)
    return next_session, [
        ReleaseMicrophone(),
        Notify(title="Could not connect to the AI interviewer", description=reason, variant="destructive"),
    ]


def microphone_refused(session: ConversationSession, reason: str) -> Transition:
    next_session = replace(
        _revert_connecting(session, error=reason),
        microphone_denied=True,
        status_message=None,
    )
    return next_session, [
        Notify(
            title="Microphone Access Denied",
            description="Please enable microphone permissions to use voice chat.",
            variant="destructive",
        )
    ]


def record_outbound(session: ConversationSession, text: str, now: datetime) -> Transition:
    if session.connection_state is not ConnectionState.CONNECTED:
        return session, []
    cleaned = (text or "").strip()
    if not cleaned:
        return session, []
    return _append(session, new_message("user", cleaned, now), now), [RearmInactivityTimer()]


def can_type(session: ConversationSession) -> bool:
    return session.connection_state in (ConnectionState.NEW, ConnectionState.PAUSED)


def record_typed_turn(session: ConversationSession, role: Role, text: str, now: datetime) -> Transition:
    """Append a typed interview turn while no voice connection is open."""
    if not can_type(session):
        return session, []
    cleaned = (text or "").strip()
    if not cleaned:
        return session, []
    next_session = replace(
        _append(session, new_message(role, cleaned, now), now),
        started_at=session.started_at or now,
        show_finish_button=True,
        error=session.error if session.microphone_denied else None,
    )
    return next_session, []


def typed_reply_failed(session: ConversationSession, reason: str) -> Transition:
    next_session = replace(session, error=reason)
    return next_session, [Notify(title="AI interview error", description=reason, variant="destructive")]


def inactivity_elapsed(session: ConversationSession) -> Transition:
    if session.connection_state is not ConnectionState.CONNECTED or session.awaiting_activity_decision:
        return session, []
    next_session = replace(session, awaiting_activity_decision=True, status_message=INACTIVITY_PROMPT)
    return next_session, [Notify(title="Still there?", description=INACTIVITY_PROMPT)]


def acknowledge_activity_prompt(session: ConversationSession, now: datetime) -> Transition:
    if not session.awaiting_activity_decision:
        return session, []
    next_session = replace(session, awaiting_activity_decision=False, status_message=None, last_activity=now)
    if next_session.connection_state is ConnectionState.CONNECTED:
        return next_session, [RearmInactivityTimer()]
    return next_session, []


def complete(session: ConversationSession, summary: str, now: datetime) -> Transition:
    if session.connection_state is ConnectionState.COMPLETED:
        return session, []
    next_session = replace(
        session,
        connection_state=ConnectionState.COMPLETED,
        session_id=None,
        transcript=session.transcript + (new_message("system", summary, now),),
        awaiting_activity_decision=False,
        show_finish_button=False,
        status_message="Interview complete.",
    )
    return next_session, [CancelInactivityTimer(), ReleaseMicrophone()]
