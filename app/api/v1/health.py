from fastapi import APIRouter, Depends

from app.core.config import settings
from app.services.workflow_registry import WorkflowRegistry, get_registry

router = APIRouter()


@router.get("/health", summary="Health Check", description="Check the health status of the application.")
async def health_check(registry: WorkflowRegistry = Depends(get_registry)):
    return {
        "status": "healthy",
        "active_sessions": len(registry),
        "voice_enabled": settings.voice_enabled,
        "payment_enabled": settings.payment_enabled,
    }
