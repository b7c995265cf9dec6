import os
import unittest

os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

from fastapi.testclient import TestClient

from app.api.v1.payments import get_payment_provider
from app.main import app
from app.services.workflow_registry import WorkflowRegistry, get_registry
from tests.fakes import (
    RESUME_TEXT,
    REWRITTEN,
    FakeAIClient,
    FakeIdentity,
    FakePayments,
    FakeVoiceClient,
    make_controller,
)


class WorkflowApiTests(unittest.TestCase):
    def setUp(self):
        self.ai = FakeAIClient()
        self.identity = FakeIdentity()
        self.voice = FakeVoiceClient()
        self.payments = FakePayments(session_id=None)
        self.registry = WorkflowRegistry(
            lambda: make_controller(ai=self.ai, identity=self.identity, voice=self.voice, payments=self.payments)
        )
        app.dependency_overrides[get_registry] = lambda: self.registry
        app.dependency_overrides[get_payment_provider] = lambda: self.payments
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def _create(self) -> str:
        response = self.client.post("/v1/workflow")
        self.assertEqual(response.status_code, 201)
        return response.json()["session_id"]

    def _upload(self, session_id: str, name: str = "resume.txt", content: bytes = RESUME_TEXT.encode("utf-8")):
        return self.client.post(
            f"/v1/workflow/{session_id}/upload",
            files={"file": (name, content, "text/plain")},
        )

    def _reach_payment(self) -> str:
        session_id = self._create()
        self.assertEqual(self._upload(session_id).status_code, 200)
        self.assertEqual(
            self.client.post(f"/v1/workflow/{session_id}/sign-in", json={"credential": "google-token"}).status_code,
            200,
        )
        return session_id

    def _pay(self, session_id: str) -> None:
        response = self.client.post(
            "/v1/payments/create-payment-intent",
            json={"amount": 5000, "sessionId": session_id},
        )
        self.assertEqual(response.status_code, 200)

    def _advance_to_interview(self) -> str:
        session_id = self._reach_payment()
        self._pay(session_id)
        response = self.client.post(f"/v1/workflow/{session_id}/payment/confirm", json={"payment_intent_id": "pi_test"})
        self.assertEqual(response.json()["step"], "interview")
        return session_id

    def test_payment_from_another_session_is_rejected(self):
        paid_session = self._reach_payment()
        self._pay(paid_session)
        other_session = self._reach_payment()

        response = self.client.post(
            f"/v1/workflow/{other_session}/payment/confirm", json={"payment_intent_id": "pi_test"}
        )
        body = response.json()
        self.assertEqual(body["step"], "payment")
        self.assertIn("different session", body["error"])

        response = self.client.post(
            f"/v1/workflow/{paid_session}/payment/confirm", json={"payment_intent_id": "pi_test"}
        )
        self.assertEqual(response.json()["step"], "interview")

    def test_create_returns_upload_step(self):
        response = self.client.post("/v1/workflow")
        body = response.json()
        self.assertEqual(body["step"], "upload")
        self.assertEqual(body["title"], "Upload Your Resume")
        self.assertEqual(body["icon"], "rocket")
        self.assertEqual(len(self.registry), 1)

    def test_upload_and_sign_in_reach_payment(self):
        session_id = self._create()
        response = self._upload(session_id)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["step"], "auth")
        self.assertEqual(body["notifications"][0]["title"], "Resume Uploaded Successfully!")

        response = self.client.post(f"/v1/workflow/{session_id}/sign-in", json={"credential": "google-token"})
        body = response.json()
        self.assertEqual(body["step"], "payment")
        self.assertEqual(body["user"]["display_name"], "Jane")
        self.assertEqual(body["score_result"]["overall_score"], 72)
        self.assertEqual(self.identity.credentials, ["google-token"])
        self.assertEqual(
            [n["title"] for n in body["notifications"]],
            ["Welcome Jane!", "Resume Parsed!", "Resume Analyzed!"],
        )

        # Notifications are delivered once.
        self.assertEqual(self.client.get(f"/v1/workflow/{session_id}").json()["notifications"], [])

    def test_rejected_upload(self):
        session_id = self._create()
        response = self._upload(session_id, name="resume.exe", content=b"MZ\x00")
        self.assertEqual(response.status_code, 400)
        self.assertIn("Invalid file type", response.json()["detail"])
        self.assertEqual(self.client.get(f"/v1/workflow/{session_id}").json()["step"], "upload")

    def test_operation_on_wrong_step_conflicts(self):
        session_id = self._create()
        response = self.client.post(f"/v1/workflow/{session_id}/sign-in", json={"credential": "token"})
        self.assertEqual(response.status_code, 409)

    def test_unknown_session(self):
        self.assertEqual(self.client.get("/v1/workflow/missing").status_code, 404)
        self.assertEqual(self.client.delete("/v1/workflow/missing").status_code, 404)

    def test_interview_to_review_and_export(self):
        session_id = self._advance_to_interview()

        response = self.client.post(f"/v1/workflow/{session_id}/interview/start", json={"microphone_granted": True})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["connection_state"], "connected")

        response = self.client.post(f"/v1/workflow/{session_id}/interview/message", json={"text": "I shipped billing."})
        self.assertEqual(response.json()["transcript"][-1]["text"], "I shipped billing.")
        self.assertEqual(self.voice.channels[0].sent, ["I shipped billing."])

        response = self.client.post(f"/v1/workflow/{session_id}/interview/pause")
        self.assertEqual(response.json()["connection_state"], "paused")

        response = self.client.post(f"/v1/workflow/{session_id}/interview/finish")
        body = response.json()
        self.assertEqual(body["step"], "review")
        self.assertEqual(body["rewritten_resume"], REWRITTEN)
        self.assertEqual(self.ai.rewrite_inputs, ["User: I shipped billing."])

        response = self.client.post(f"/v1/workflow/{session_id}/export", json={"format": "txt", "edited_text": "Edited"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.text, "Edited")
        self.assertIn('filename="rewritten_resume.txt"', response.headers["content-disposition"])

        response = self.client.post(f"/v1/workflow/{session_id}/export", json={"format": "json"})
        self.assertEqual(response.json(), {"rewrittenResume": REWRITTEN})

    def test_microphone_denied_is_reported(self):
        session_id = self._advance_to_interview()
        response = self.client.post(f"/v1/workflow/{session_id}/interview/start", json={"microphone_granted": False})
        body = response.json()
        self.assertEqual(body["connection_state"], "new")
        self.assertTrue(body["microphone_denied"])
        self.assertEqual(self.voice.signed_url_calls, [])

    def test_typed_interview_without_voice_connection(self):
        session_id = self._advance_to_interview()
        response = self.client.post(f"/v1/workflow/{session_id}/interview/text/start")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["transcript"][0]["text"], "What did you build at Acme Corp?")

        response = self.client.post(f"/v1/workflow/{session_id}/interview/message", json={"text": "hello"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["connection_state"], "new")
        self.assertEqual([m["role"] for m in body["transcript"]], ["assistant", "user", "assistant"])
        self.assertEqual(self.voice.signed_url_calls, [])

        response = self.client.post(f"/v1/workflow/{session_id}/interview/finish")
        self.assertEqual(response.json()["step"], "review")
        self.assertIn("User: hello", self.ai.rewrite_inputs[-1])

    def test_interview_unavailable_before_interview_step(self):
        session_id = self._create()
        response = self.client.get(f"/v1/workflow/{session_id}/interview")
        self.assertEqual(response.status_code, 409)

    def test_start_over_and_delete(self):
        session_id = self._advance_to_interview()
        body = self.client.post(f"/v1/workflow/{session_id}/start-over").json()
        self.assertEqual(body["step"], "upload")
        self.assertIsNone(body["parsed_resume"])
        self.assertIsNotNone(body["user"])

        self.assertEqual(self.client.delete(f"/v1/workflow/{session_id}").status_code, 204)
        self.assertEqual(self.client.get(f"/v1/workflow/{session_id}").status_code, 404)
        self.assertEqual(len(self.registry), 0)

    def test_health_reports_sessions(self):
        self._create()
        body = self.client.get("/v1/health").json()
        self.assertEqual(body["status"], "healthy")
        self.assertEqual(body["active_sessions"], 1)


if __name__ == "__main__":
    unittest.main()
