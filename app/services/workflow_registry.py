from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Callable

from app.ai.factory import get_ai_client
from app.conversation.manager import ConversationSessionManager
from app.core.config import Settings, settings
from app.integrations.elevenlabs import ElevenLabsClient
from app.integrations.google_identity import GoogleIdentityProvider
from app.integrations.stripe_payments import StripePaymentProvider
from app.workflow.config import WorkflowConfig
from app.workflow.controller import ResumeWorkflowController

logger = logging.getLogger(__name__)

ControllerFactory = Callable[[], ResumeWorkflowController]


@dataclass
class _Entry:
    controller: ResumeWorkflowController
    last_seen: float = field(default_factory=time.monotonic)


class UnknownWorkflowSession(KeyError):
    pass


class WorkflowRegistry:
    """In-memory map of browser sessions to their workflow controllers."""

    def __init__(self, factory: ControllerFactory, ttl_s: float = 6 * 3600, clock: Callable[[], float] = time.monotonic):
        self._factory = factory
        self._ttl_s = ttl_s
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def create(self) -> tuple[str, ResumeWorkflowController]:
        session_id = secrets.token_urlsafe(18)
        controller = self._factory()
        controller.session_id = session_id
        self._entries[session_id] = _Entry(controller=controller, last_seen=self._clock())
        logger.info("workflow_session_created session_id=%s active=%s", session_id, len(self._entries))
        return session_id, controller

    def get(self, session_id: str) -> ResumeWorkflowController:
        entry = self._entries.get(session_id)
        if entry is None or not entry.controller.active:
            raise UnknownWorkflowSession(session_id)
        entry.last_seen = self._clock()
        return entry.controller

    async def remove(self, session_id: str) -> bool:
        entry = self._entries.pop(session_id, None)
        if entry is None:
            return False
        await entry.controller.close()
        logger.info("workflow_session_closed session_id=%s", session_id)
        return True

    async def purge_expired(self) -> int:
        cutoff = self._clock() - self._ttl_s
        expired = [sid for sid, entry in self._entries.items() if entry.last_seen < cutoff]
        for session_id in expired:
            await self.remove(session_id)
        return len(expired)

    async def close_all(self) -> None:
        for session_id in list(self._entries):
            await self.remove(session_id)


def build_controller_factory(cfg: Settings) -> ControllerFactory:
    workflow_config = WorkflowConfig.from_settings(cfg)
    voice_client = ElevenLabsClient(cfg.elevenlabs_api_key, api_base=cfg.elevenlabs_api_base)
    identity = GoogleIdentityProvider(cfg.google_client_id)
    payments = StripePaymentProvider(cfg.stripe_secret_key)

    def session_factory(**kwargs: Any) -> ConversationSessionManager:
        return ConversationSessionManager(
            voice_client=voice_client,
            agent_id=workflow_config.agent_id or "",
            inactivity_timeout_s=workflow_config.inactivity_timeout_s,
            **kwargs,
        )

    def factory() -> ResumeWorkflowController:
        return ResumeWorkflowController(
            config=workflow_config,
            ai_client=get_ai_client(),
            identity=identity,
            payments=payments,
            session_factory=session_factory,
            upload_max_bytes=cfg.upload_max_bytes,
        )

    return factory


@lru_cache(maxsize=1)
def get_registry() -> WorkflowRegistry:
    return WorkflowRegistry(build_controller_factory(settings), ttl_s=settings.workflow_session_ttl_s)
