from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, Request

from app.conversation.channel import VoiceAgentClient, VoiceAgentError
from app.core.config import settings
from app.core.rate_limit import rate_limit
from app.integrations.elevenlabs import ElevenLabsClient

router = APIRouter()


@lru_cache(maxsize=1)
def get_voice_client() -> VoiceAgentClient:
    return ElevenLabsClient(settings.elevenlabs_api_key, api_base=settings.elevenlabs_api_base)


@router.get("/voice/signed-url")
@rate_limit()
async def get_signed_url(
    request: Request,
    agent_id: str | None = None,
    client: VoiceAgentClient = Depends(get_voice_client),
):
    _ = request
    try:
        signed_url = await client.get_signed_url((agent_id or "").strip())
    except VoiceAgentError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return {"signedUrl": signed_url}
