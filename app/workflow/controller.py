from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal

from app.ai.types import ResumeAIClient, ResumeAIError
from app.conversation.manager import ConversationSessionManager
from app.conversation.models import TranscriptMessage
from app.core.notifications import Notification, NotificationLog
from app.integrations.google_identity import IdentityError, IdentityProvider, UserIdentity
from app.integrations.stripe_payments import PaymentError, PaymentProvider
from app.services.payment_service import verify_paid_intent
from app.services.resume_files import load_resume_document
from app.workflow.config import WorkflowConfig
from app.workflow.errors import InvalidStepTransition, WorkflowBusy, WorkflowConfigurationError, WorkflowError
from app.workflow.state import WorkflowState
from app.workflow.steps import Step
from app.workflow.summary import build_interview_summary

logger = logging.getLogger(__name__)

PARSE_ERROR_PREFIX = "Failed to parse resume. Please try again. "
SCORE_ERROR_PREFIX = "Failed to analyze resume. Please try again. "
REWRITE_ERROR_PREFIX = "Failed to rewrite resume. Please try again. "
SIGN_IN_ERROR_PREFIX = "Failed to create account. Please try again. "
PAYMENT_ERROR_PREFIX = "Payment could not be confirmed. "
MISSING_RESUME_MESSAGE = "Original resume data not found. Please re-upload."

SessionFactory = Callable[..., ConversationSessionManager]
ExportFormat = Literal["txt", "json"]


@dataclass(frozen=True)
class ExportedResume:
    filename: str
    media_type: str
    content: str


def _collaborator_message(exc: Exception) -> str:
    message = getattr(exc, "message", None) or str(exc)
    return message or "An unknown error occurred."


class ResumeWorkflowController:
    """Drives one user's resume session from upload to the rewritten resume.

    Collaborator results are applied only while the controller is active and
    its epoch is unchanged; ``start_over`` and ``close`` bump the epoch so a
    result that arrives late is dropped instead of landing on fresh state.
    """

    def __init__(
        self,
        *,
        config: WorkflowConfig,
        ai_client: ResumeAIClient,
        identity: IdentityProvider,
        payments: PaymentProvider | None = None,
        session_factory: SessionFactory | None = None,
        notifications: NotificationLog | None = None,
        upload_max_bytes: int = 5 * 1024 * 1024,
        session_id: str | None = None,
    ):
        self.config = config
        self.session_id = session_id
        self.state = WorkflowState()
        self.user: UserIdentity | None = None
        self.notifications = notifications or NotificationLog()
        self._ai = ai_client
        self._identity = identity
        self._payments = payments
        self._session_factory = session_factory
        self._upload_max_bytes = upload_max_bytes
        self._session_manager: ConversationSessionManager | None = None
        self._epoch = 0
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def session_manager(self) -> ConversationSessionManager | None:
        return self._session_manager

    # Guards

    def _require_active(self) -> None:
        if not self._active:
            raise WorkflowError("This workflow session has been closed.", code="closed")

    def _require_step(self, operation: str, *steps: Step) -> None:
        self._require_active()
        if self.state.step not in steps:
            raise InvalidStepTransition(operation, self.state.step)

    def _require_idle(self, operation: str) -> None:
        if self.state.is_loading:
            raise WorkflowBusy(operation)

    def _is_current(self, epoch: int) -> bool:
        return self._active and epoch == self._epoch

    # State helpers

    def _notify(self, title: str, description: str = "", destructive: bool = False) -> None:
        self.notifications.emit(title, description, "destructive" if destructive else "default")

    def _begin_loading(self, message: str) -> int:
        self.state.error = None
        self.state.is_loading = True
        self.state.loading_message = message
        self.state.progress = 0
        return self._epoch

    def _end_loading(self) -> None:
        self.state.is_loading = False
        self.state.loading_message = None
        self.state.progress = 100

    def _fail(self, prefix: str, title: str, exc: Exception) -> None:
        message = _collaborator_message(exc)
        self._end_loading()
        self.state.error = prefix + message
        self._notify(title, message, destructive=True)

    def _goto(self, step: Step) -> None:
        if step is not self.state.step:
            logger.info("workflow_step from=%s to=%s", self.state.step.value, step.value)
        self.state.step = step
        self.state.step_history.append(step)

    # Upload and sign-in

    async def upload(self, filename: str | None, content_type: str | None, content: bytes) -> None:
        self._require_step("upload", Step.UPLOAD)
        self._require_idle("upload")
        document = load_resume_document(filename=filename, content=content, max_bytes=self._upload_max_bytes)
        if content_type and content_type.split(";")[0].strip().lower() != document.mime_type:
            logger.debug("upload_content_type_mismatch declared=%s detected=%s", content_type, document.mime_type)

        self.state.resume_bytes = document.content
        self.state.resume_filename = document.filename
        self.state.resume_mime_type = document.mime_type
        self.state.resume_text = document.text
        self.state.resume_data_uri = document.data_uri
        self.state.error = None
        self._notify("Resume Uploaded Successfully!", "Please sign in to continue with AI analysis.")
        self._goto(Step.AUTH)

        if self.user is not None:
            await self._proceed_after_sign_in()

    async def sign_in(self, credential: str) -> UserIdentity | None:
        self._require_step("sign_in", Step.AUTH)
        self._require_idle("sign_in")
        epoch = self._begin_loading("Creating your account...")
        try:
            user = await self._identity.verify(credential)
        except IdentityError as exc:
            if self._is_current(epoch):
                self._fail(SIGN_IN_ERROR_PREFIX, "Sign Up Failed", exc)
            return None
        if not self._is_current(epoch):
            return None

        self.user = user
        self._end_loading()
        logger.info("workflow_signed_in uid=%s", user.uid)
        await self._proceed_after_sign_in()
        return user

    async def _proceed_after_sign_in(self) -> None:
        if self.user is None or self.state.step is not Step.AUTH or not self.state.has_resume:
            return
        self._notify(f"Welcome {self.user.display_name}!", "Now let's analyze your resume with AI.")
        await self._run_parse()

    # Parse and score

    async def retry_parse(self) -> None:
        self._require_step("retry_parse", Step.AUTH)
        self._require_idle("retry_parse")
        if self.user is None:
            raise WorkflowError("Please sign in to continue.", code="not_signed_in")
        if not self.state.has_resume:
            raise WorkflowError(MISSING_RESUME_MESSAGE, code="missing_resume")
        await self._run_parse()

    async def _run_parse(self) -> None:
        self._goto(Step.PARSE)
        epoch = self._begin_loading("Parsing your resume with AI...")
        try:
            parsed = await self._ai.parse(self.state.resume_data_uri or "")
        except (ResumeAIError, ValueError) as exc:
            if self._is_current(epoch):
                logger.warning("workflow_parse_failed error=%s", exc)
                self._fail(PARSE_ERROR_PREFIX, "Parsing Failed", exc)
                self._goto(Step.AUTH)
            return
        if not self._is_current(epoch):
            return

        self.state.parsed_resume = parsed
        self._end_loading()
        self._goto(Step.SCORE)
        self._notify("Resume Parsed!", "Key information extracted. Now analyzing your resume...")
        await self._run_score()

    async def retry_score(self) -> None:
        self._require_step("retry_score", Step.SCORE)
        self._require_idle("retry_score")
        if self.state.parsed_resume is None:
            raise WorkflowError("The resume has not been parsed yet.", code="missing_parse")
        await self._run_score()

    async def _run_score(self) -> None:
        epoch = self._begin_loading("Analyzing and scoring your resume with AI...")
        try:
            result = await self._ai.score(self.state.resume_data_uri or "")
        except (ResumeAIError, ValueError) as exc:
            if self._is_current(epoch):
                logger.warning("workflow_score_failed error=%s", exc)
                self._fail(SCORE_ERROR_PREFIX, "Analysis Failed", exc)
            return
        if not self._is_current(epoch):
            return

        self.state.score_result = result
        self._end_loading()
        self._notify("Resume Analyzed!", f"Your resume scored {result.overall_score}/100. Review the analysis below.")
        self._goto(Step.PAYMENT)
        self._enter_payment()

    # Payment

    def _enter_payment(self) -> None:
        if not self.config.payment_enabled:
            logger.info("workflow_payment_skipped reason=disabled")
            self._goto(Step.INTERVIEW)
            self._enter_interview()
            return
        self.state.configuration_error = self.config.payment_configuration_error()

    async def confirm_payment(self, payment_intent_id: str) -> None:
        self._require_step("confirm_payment", Step.PAYMENT)
        self._require_idle("confirm_payment")
        if self.state.configuration_error or self._payments is None:
            raise WorkflowConfigurationError(
                self.state.configuration_error or "Payments are not configured on this server."
            )
        intent_id = (payment_intent_id or "").strip()
        if not intent_id:
            raise WorkflowError("A payment reference is required.", code="missing_payment")

        epoch = self._begin_loading("Confirming your payment...")
        try:
            record = await self._payments.payment_status(intent_id)
            if self._is_current(epoch):
                verify_paid_intent(record, self.session_id)
        except PaymentError as exc:
            if self._is_current(epoch):
                self._fail(PAYMENT_ERROR_PREFIX, "Payment Failed", exc)
            return
        if not self._is_current(epoch):
            return

        self._end_loading()
        self._notify("Payment Successful!", "You can now proceed with the AI interview.")
        self._goto(Step.INTERVIEW)
        self._enter_interview()

    # Interview

    def _enter_interview(self) -> None:
        self.state.configuration_error = self.config.voice_configuration_error()

    def interview_session(self, *, voice: bool = True) -> ConversationSessionManager:
        """The interview session; with ``voice=False`` it is returned for typed turns even if voice is misconfigured."""
        self._require_step("interview", Step.INTERVIEW)
        if voice and self.state.configuration_error:
            raise WorkflowConfigurationError(self.state.configuration_error)
        if self._session_factory is None:
            raise WorkflowConfigurationError("The AI interview is not available on this server.")
        if self._session_manager is None:
            self._session_manager = self._session_factory(
                parsed_resume=self.state.parsed_resume,
                candidate_name=self.user.display_name if self.user else None,
                on_auto_finish=self._on_interview_auto_finished,
                notify=self._forward_notification,
                text_interviewer=self._ai,
                voice_available=self.state.configuration_error is None,
            )
        return self._session_manager

    def _forward_notification(self, notification: Notification) -> None:
        self.notifications.publish(notification)

    async def _on_interview_auto_finished(self, transcript: tuple[TranscriptMessage, ...]) -> None:
        if not self._active or self.state.step is not Step.INTERVIEW or self.state.is_loading:
            return
        logger.info("workflow_interview_auto_finished messages=%s", len(transcript))
        await self.finish_interview(transcript)

    async def finish_interview(self, transcript: Iterable[TranscriptMessage] | None = None) -> None:
        self._require_step("finish_interview", Step.INTERVIEW)
        self._require_idle("finish_interview")
        # Busy before the first await; an overlapping finish gets WorkflowBusy.
        epoch = self._begin_loading("Finishing interview...")
        if transcript is None:
            manager = self._session_manager
            transcript = await manager.finish() if manager is not None else ()
        if not self._is_current(epoch):
            return

        self.state.chat_transcript = tuple(transcript)
        self.state.interview_summary = build_interview_summary(self.state.chat_transcript)
        self._goto(Step.REWRITE)
        await self._run_rewrite()

    # Rewrite and review

    async def retry_rewrite(self) -> None:
        self._require_step("retry_rewrite", Step.REWRITE)
        self._require_idle("retry_rewrite")
        await self._run_rewrite()

    async def _run_rewrite(self) -> None:
        if not self.state.resume_data_uri:
            self._end_loading()
            self.state.error = MISSING_RESUME_MESSAGE
            self._notify("Error", MISSING_RESUME_MESSAGE, destructive=True)
            self._goto(Step.UPLOAD)
            return

        epoch = self._begin_loading("Rewriting your resume based on insights...")
        try:
            result = await self._ai.rewrite(self.state.resume_data_uri, self.state.interview_summary or "")
        except (ResumeAIError, ValueError) as exc:
            if self._is_current(epoch):
                logger.warning("workflow_rewrite_failed error=%s", exc)
                self._fail(REWRITE_ERROR_PREFIX, "Rewrite Failed", exc)
            return
        if not self._is_current(epoch):
            return

        self.state.rewritten_resume = result.rewritten_resume
        self._end_loading()
        self._goto(Step.REVIEW)
        self._notify("Resume Rewritten!", "Your new resume is ready for review.")

    def export_resume(self, fmt: ExportFormat, edited_text: str | None = None) -> ExportedResume:
        self._require_step("export", Step.REVIEW)
        if self.state.rewritten_resume is None:
            raise WorkflowError("There is no rewritten resume to export.", code="missing_rewrite")

        if fmt == "txt":
            content = edited_text if edited_text is not None else self.state.rewritten_resume
            exported = ExportedResume("rewritten_resume.txt", "text/plain", content)
        elif fmt == "json":
            content = json.dumps({"rewrittenResume": self.state.rewritten_resume}, indent=2)
            exported = ExportedResume("rewritten_resume_data.json", "application/json", content)
        else:
            raise WorkflowError(f"Unsupported export format '{fmt}'.", code="invalid_format")

        self._notify("Download Started", f"{exported.filename} is downloading.")
        return exported

    # Lifecycle

    async def start_over(self) -> None:
        self._require_active()
        self._epoch += 1
        await self._teardown_session()
        self.state = WorkflowState()
        logger.info("workflow_start_over")

    async def close(self) -> None:
        if not self._active:
            return
        self._active = False
        self._epoch += 1
        await self._teardown_session()

    async def _teardown_session(self) -> None:
        manager, self._session_manager = self._session_manager, None
        if manager is not None:
            await manager.close()

    def snapshot(self) -> dict[str, Any]:
        data = self.state.to_dict()
        data["user"] = self.user.to_dict() if self.user else None
        data["interview"] = self._session_manager.snapshot() if self._session_manager else None
        return data


