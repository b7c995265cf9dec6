from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class MicrophonePermissionDenied(PermissionError):
    pass


class ClientMicrophoneGate:
    """Tracks the browser's microphone grant for one interview session.

    Audio is captured by the client, so the server only records whether the
    permission was granted and how many capture sessions are open.
    """

    def __init__(self, granted: bool | None = None):
        self._granted = granted
        self._open = 0

    @property
    def granted(self) -> bool | None:
        return self._granted

    @property
    def is_open(self) -> bool:
        return self._open > 0

    def report(self, granted: bool) -> None:
        self._granted = bool(granted)
        logger.info("microphone_permission granted=%s", self._granted)

    async def acquire(self) -> None:
        if self._granted is False:
            raise MicrophonePermissionDenied("Microphone permission was denied.")
        # At most one capture session is open at a time.
        self._open = 1

    def release(self) -> None:
        self._open = 0
