# core/guards.py
from contextlib import asynccontextmanager
from typing import AsyncIterator, Set

from core.config import logger as core_logger
from core.errors import BusyError

logger = core_logger.getChild("Guards")


class ActionGuard:
    """
    Tracks which actions are in flight so the same action cannot be submitted
    twice concurrently. Different keys never block each other.

    All callers run on one event loop, so a plain set is enough.
    """

    def __init__(self):
        self._active: Set[str] = set()

    def is_busy(self, key: str) -> bool:
        return key in self._active

    @asynccontextmanager
    async def claim(self, key: str) -> AsyncIterator[None]:
        if key in self._active:
            logger.warning(f"Rejected duplicate submission for action '{key}'.")
            raise BusyError(f"'{key}' is already in progress. Please wait for it to finish.")
        self._active.add(key)
        try:
            yield
        finally:
            self._active.discard(key)
