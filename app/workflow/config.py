from __future__ import annotations

from dataclasses import dataclass

from app.core.config import Settings


@dataclass(frozen=True)
class WorkflowConfig:
    """Everything the controller and interview session need from configuration."""

    agent_id: str | None = None
    voice_enabled: bool = True
    voice_api_key_present: bool = False
    payment_enabled: bool = True
    payment_key_present: bool = False
    inactivity_timeout_s: float = 120.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "WorkflowConfig":
        return cls(
            agent_id=(settings.elevenlabs_agent_id or "").strip() or None,
            voice_enabled=settings.voice_enabled,
            voice_api_key_present=bool((settings.elevenlabs_api_key or "").strip()),
            payment_enabled=settings.payment_enabled,
            payment_key_present=bool((settings.stripe_secret_key or "").strip()),
            inactivity_timeout_s=settings.interview_inactivity_timeout_s,
        )

    def voice_configuration_error(self) -> str | None:
        if not self.voice_enabled:
            return "The AI interview is disabled on this server."
        if not self.voice_api_key_present:
            return "Interview disabled: ElevenLabs API Key missing. Set ELEVENLABS_API_KEY to enable it."
        if not self.agent_id:
            return "Interview disabled: ElevenLabs agent is not configured. Set ELEVENLABS_AGENT_ID to enable it."
        return None

    def payment_configuration_error(self) -> str | None:
        if not self.payment_enabled:
            return None
        if not self.payment_key_present:
            return "Payments are not configured. Set STRIPE_SECRET_KEY to enable checkout."
        return None
