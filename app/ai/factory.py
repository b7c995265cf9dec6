from app.ai.config import load_ai_config
from app.ai.types import ResumeAIClient

from app.ai.providers.openai_provider import OpenAIResumeClient


def get_ai_client() -> ResumeAIClient:
    cfg = load_ai_config()

    if cfg.provider == "openai":
        return OpenAIResumeClient(
            model=cfg.model,
            api_key=cfg.api_key,
            base_url=cfg.base_url,
            timeout_s=cfg.timeout_s,
            max_retries=cfg.max_retries,
        )

    raise ValueError(f"Unsupported AI_PROVIDER='{cfg.provider}'")
