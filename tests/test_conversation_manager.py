import asyncio
import os
import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

from app.ai.types import ResumeAIError  # noqa: E402
from app.conversation.channel import VoiceAgentError  # noqa: E402
from app.conversation.manager import ConversationSessionManager, ConversationStateError  # noqa: E402
from app.conversation.microphone import ClientMicrophoneGate  # noqa: E402
from app.conversation.models import (  # noqa: E402
    Connected,
    ConnectionState,
    Disconnected,
    Errored,
    MessageReceived,
)
from tests.fakes import PARSED, FakeAIClient, FakeClock, FakeVoiceClient  # noqa: E402


class ConversationSessionManagerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.voice = FakeVoiceClient()
        self.notices = []
        self.finished = []

        async def on_auto_finish(transcript):
            self.finished.append(transcript)

        self.on_auto_finish = on_auto_finish

    def _manager(self, **overrides):
        values = {
            "voice_client": self.voice,
            "agent_id": "agent-123",
            "parsed_resume": PARSED,
            "candidate_name": "Jane",
            "on_auto_finish": self.on_auto_finish,
            "notify": self.notices.append,
            "clock": self.clock,
        }
        values.update(overrides)
        return ConversationSessionManager(**values)

    async def test_pause_resume_finish_keeps_transcript(self):
        manager = self._manager()
        await manager.start()
        self.assertIs(manager.state, ConnectionState.CONNECTED)

        self.voice.emit(MessageReceived(text="Hi, tell me about Acme.", source="ai"))
        self.voice.emit(MessageReceived(text="I built billing APIs.", source="user"))
        await manager.pause()

        self.assertIs(manager.state, ConnectionState.PAUSED)
        self.assertTrue(manager.session.paused_by_user)
        self.assertTrue(manager.session.show_finish_button)
        self.assertEqual(len(manager.transcript), 2)
        self.assertTrue(self.voice.channels[0].closed)

        await manager.resume()
        self.assertIs(manager.state, ConnectionState.CONNECTED)
        self.assertEqual(self.voice.open_calls[1]["is_continuation"], "true")
        self.assertEqual(self.voice.open_calls[1]["message_count"], "2")
        self.assertIn("Candidate: I built billing APIs.", self.voice.open_calls[1]["conversation_summary"])

        transcript = await manager.finish()
        self.assertEqual(len(transcript), 3)
        self.assertEqual(transcript[-1].role, "system")
        self.assertTrue(transcript[-1].text.startswith("Interview completed."))
        self.assertIs(manager.state, ConnectionState.COMPLETED)
        self.assertFalse(manager.microphone.is_open)

    async def test_resume_appends_after_existing_messages(self):
        manager = self._manager()
        await manager.start()
        self.voice.emit(MessageReceived(text="first", source="ai"))
        self.voice.emit(MessageReceived(text="second", source="user_transcript"))
        await manager.pause()
        await manager.resume()
        self.voice.emit(MessageReceived(text="third", source="ai"))

        self.assertEqual([m.text for m in manager.transcript], ["first", "second", "third"])
        self.assertEqual([m.role for m in manager.transcript], ["assistant", "user", "assistant"])

    async def test_first_connection_sends_resume_context(self):
        manager = self._manager()
        await manager.start()

        variables = self.voice.open_calls[0]
        self.assertEqual(variables["is_continuation"], "false")
        self.assertEqual(variables["candidate_name"], "Jane")
        self.assertEqual(variables["message_count"], "0")
        self.assertIn("Skills: Python, FastAPI, PostgreSQL", variables["resume_summary"])
        self.assertEqual(self.voice.signed_url_calls, ["agent-123"])
        self.assertEqual(self.notices[-1].title, "Interview connected")

    async def test_concurrent_start_opens_single_connection(self):
        self.voice.signed_url_gate = asyncio.Event()
        manager = self._manager()

        first = asyncio.create_task(manager.start())
        second = asyncio.create_task(manager.start())
        await asyncio.sleep(0)
        self.assertIs(manager.state, ConnectionState.CONNECTING)

        self.voice.signed_url_gate.set()
        await asyncio.gather(first, second)

        self.assertEqual(len(self.voice.signed_url_calls), 1)
        self.assertEqual(len(self.voice.open_calls), 1)
        self.assertIs(manager.state, ConnectionState.CONNECTED)

    async def test_inactivity_prompt_continue(self):
        manager = self._manager()
        await manager.start()
        self.voice.emit(MessageReceived(text="Anything else?", source="ai"))

        self.clock.advance(119)
        self.assertFalse(manager.check_inactivity())
        self.clock.advance(2)
        self.assertTrue(manager.check_inactivity())
        self.assertEqual(self.notices[-1].title, "Still there?")

        await manager.resolve_inactivity_prompt(finish=False)
        self.assertFalse(manager.session.awaiting_activity_decision)
        self.assertIs(manager.state, ConnectionState.CONNECTED)
        self.assertEqual(manager.session.last_activity, self.clock())
        self.assertEqual(self.finished, [])

    async def test_inactivity_prompt_finish_triggers_auto_finish(self):
        manager = self._manager()
        await manager.start()
        self.voice.emit(MessageReceived(text="What are your strengths?", source="ai"))
        self.clock.advance(130)
        manager.check_inactivity()

        transcript = await manager.resolve_inactivity_prompt(finish=True)

        self.assertIs(manager.state, ConnectionState.COMPLETED)
        self.assertEqual(self.finished, [transcript])
        self.assertIn("Key topics:", transcript[-1].text)

    async def test_inactivity_is_not_checked_while_paused(self):
        manager = self._manager()
        await manager.start()
        await manager.pause()
        self.clock.advance(600)
        self.assertFalse(manager.check_inactivity())

    async def test_stale_events_after_pause_are_discarded(self):
        manager = self._manager()
        await manager.start()
        stale = self.voice.callbacks[0]
        await manager.pause()

        stale(MessageReceived(text="late agent reply", source="ai"))
        stale(Connected(session_id="zombie"))

        self.assertEqual(manager.transcript, ())
        self.assertIs(manager.state, ConnectionState.PAUSED)

    async def test_events_after_finish_do_not_change_transcript(self):
        manager = self._manager()
        await manager.start()
        callback = self.voice.callbacks[0]
        transcript = await manager.finish()

        callback(MessageReceived(text="too late", source="ai"))
        manager.handle_event(MessageReceived(text="also too late", source="ai"))

        self.assertEqual(manager.transcript, transcript)
        self.assertEqual(await manager.finish(), transcript)
        with self.assertRaises(ConversationStateError):
            await manager.start()

    async def test_microphone_denied_leaves_session_disconnected(self):
        manager = self._manager(microphone=ClientMicrophoneGate(granted=False))
        await manager.start()

        self.assertIs(manager.state, ConnectionState.NEW)
        self.assertTrue(manager.session.microphone_denied)
        self.assertEqual(self.voice.signed_url_calls, [])
        self.assertEqual(self.notices[-1].title, "Microphone Access Denied")

    async def test_signed_url_failure_reports_error(self):
        self.voice.signed_url_error = VoiceAgentError("Failed to get signed URL: Unauthorized", status_code=401)
        manager = self._manager()
        await manager.start()

        self.assertIs(manager.state, ConnectionState.NEW)
        self.assertEqual(manager.session.error, "Failed to get signed URL: Unauthorized")
        self.assertEqual(self.notices[-1].variant, "destructive")
        self.assertFalse(manager.microphone.is_open)

    async def test_unexpected_disconnect_pauses_with_notice(self):
        manager = self._manager()
        await manager.start()
        self.voice.emit(MessageReceived(text="Hello", source="ai"))
        self.voice.emit(Disconnected(user_initiated=False, reason="network"))

        self.assertIs(manager.state, ConnectionState.PAUSED)
        self.assertFalse(manager.session.paused_by_user)
        self.assertEqual(len(manager.transcript), 2)
        self.assertEqual(manager.transcript[-1].role, "system")
        self.assertEqual(manager.transcript[-1].text, "Interview disconnected: network")
        self.assertEqual(self.notices[-1].title, "Interview disconnected")

    async def test_send_text_records_user_message(self):
        manager = self._manager()
        await manager.start()
        await manager.send_text("  I also mentor juniors.  ")

        self.assertEqual(self.voice.channels[0].sent, ["I also mentor juniors."])
        self.assertEqual(manager.transcript[-1].role, "user")
        self.assertEqual(manager.transcript[-1].text, "I also mentor juniors.")

        await manager.send_text("   ")
        self.assertEqual(len(manager.transcript), 1)

    async def test_send_text_requires_connection(self):
        manager = self._manager()
        with self.assertRaises(ConversationStateError):
            await manager.send_text("hello")

    async def test_microphone_denied_falls_back_to_typed_interview(self):
        ai = FakeAIClient()
        manager = self._manager(microphone=ClientMicrophoneGate(granted=False), text_interviewer=ai)
        await manager.start()

        self.assertTrue(manager.session.microphone_denied)
        self.assertEqual(manager.transcript[0].role, "assistant")
        self.assertEqual(manager.transcript[0].text, "What did you build at Acme Corp?")

        await manager.send_text("  Billing APIs for 2M users.  ")

        self.assertEqual(
            [(m.role, m.text) for m in manager.transcript],
            [
                ("assistant", "What did you build at Acme Corp?"),
                ("user", "Billing APIs for 2M users."),
                ("assistant", "Thanks. Question 2?"),
            ],
        )
        self.assertEqual(ai.interview_inputs, [(0, None), (1, "Billing APIs for 2M users.")])
        self.assertIs(manager.state, ConnectionState.NEW)
        self.assertEqual(self.voice.signed_url_calls, [])

        transcript = await manager.finish()
        self.assertEqual(transcript[-1].role, "system")
        self.assertIn("Messages exchanged: 3", transcript[-1].text)

    async def test_typed_answers_continue_while_paused(self):
        ai = FakeAIClient()
        manager = self._manager(text_interviewer=ai)
        await manager.start()
        self.voice.emit(MessageReceived(text="Tell me about Acme.", source="ai"))
        await manager.pause()

        await manager.send_text("I owned payments.")

        self.assertEqual([m.role for m in manager.transcript], ["assistant", "user", "assistant"])
        self.assertEqual(self.voice.channels[0].sent, [])
        self.assertIs(manager.state, ConnectionState.PAUSED)

    async def test_voice_unavailable_session_is_typed_only(self):
        ai = FakeAIClient()
        manager = self._manager(text_interviewer=ai, voice_available=False)
        with self.assertRaises(ConversationStateError):
            await manager.start()

        await manager.open_text_interview()
        await manager.open_text_interview()
        self.assertEqual(len(manager.transcript), 1)
        self.assertFalse(manager.snapshot()["voice_available"])
        self.assertEqual(self.voice.signed_url_calls, [])

    async def test_typed_reply_failure_is_reported(self):
        ai = FakeAIClient()
        ai.interview_error = ResumeAIError("rate limited")
        manager = self._manager(text_interviewer=ai)

        await manager.send_text("hello")

        self.assertEqual([m.role for m in manager.transcript], ["user"])
        self.assertEqual(manager.session.error, "rate limited")
        self.assertEqual(self.notices[-1].title, "AI interview error")

    async def test_overlapping_typed_answer_is_refused(self):
        ai = FakeAIClient()
        ai.interview_gate = asyncio.Event()
        manager = self._manager(text_interviewer=ai)

        pending = asyncio.create_task(manager.send_text("first"))
        await asyncio.sleep(0)
        self.assertTrue(manager.snapshot()["awaiting_reply"])
        with self.assertRaises(ConversationStateError):
            await manager.send_text("second")

        ai.interview_gate.set()
        await pending
        self.assertEqual([m.text for m in manager.transcript], ["first", "Thanks. Question 1?"])

    async def test_late_typed_reply_after_finish_is_discarded(self):
        ai = FakeAIClient()
        ai.interview_gate = asyncio.Event()
        manager = self._manager(text_interviewer=ai)

        pending = asyncio.create_task(manager.send_text("first"))
        await asyncio.sleep(0)
        transcript = await manager.finish()
        ai.interview_gate.set()
        await pending

        self.assertEqual(manager.transcript, transcript)
        self.assertEqual([m.role for m in transcript], ["user", "system"])

    async def test_error_event_is_surfaced(self):
        manager = self._manager()
        await manager.start()
        self.voice.emit(Errored(reason="quota"))

        self.assertEqual(manager.session.error, "Connection error: quota")
        self.assertIs(manager.state, ConnectionState.CONNECTED)

    async def test_close_releases_everything(self):
        manager = self._manager()
        await manager.start()
        await manager.close()

        self.assertTrue(manager.closed)
        self.assertTrue(self.voice.channels[0].closed)
        self.assertFalse(manager.microphone.is_open)
        with self.assertRaises(ConversationStateError):
            await manager.start()

    async def test_snapshot_reports_session(self):
        manager = self._manager()
        await manager.start()
        snapshot = manager.snapshot()

        self.assertEqual(snapshot["connection_state"], "connected")
        self.assertEqual(snapshot["session_id"], "conv-1")
        self.assertTrue(snapshot["show_finish_button"])


if __name__ == "__main__":
    unittest.main()
