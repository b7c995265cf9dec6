import contextlib
from contextlib import asynccontextmanager
import asyncio
import logging

from app.services.workflow_registry import get_registry

logger = logging.getLogger(__name__)

PURGE_INTERVAL_S = 300


@asynccontextmanager
async def lifespan(app):
    registry = get_registry()
    stop_event = asyncio.Event()

    async def periodic_purge() -> None:
        while not stop_event.is_set():
            expired = await registry.purge_expired()
            if expired:
                logger.info("workflow_session_purge expired=%s active=%s", expired, len(registry))
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=PURGE_INTERVAL_S)
            except asyncio.TimeoutError:
                continue

    purge_task = asyncio.create_task(periodic_purge())
    yield
    stop_event.set()
    if not purge_task.done():
        purge_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await purge_task
    await registry.close_all()
