"""
Attempt stores: abstract async contract and the in-memory reference store.

Every operation is a coroutine that yields to the event loop before completing,
so callers never observe a result before their own call has returned.
"""
import asyncio
import logging
from abc import ABC, abstractmethod

from bruteguard.schemas import AttemptRecord

logger = logging.getLogger("bruteguard.store")


class StoreAdapter(ABC):
    """Key -> AttemptRecord with per-key expiry. Implementations raise on backend failure."""

    @abstractmethod
    async def get(self, key: str) -> AttemptRecord | None:
        """Return the record for key, or None when absent or expired."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: AttemptRecord, lifetime: float) -> None:
        """Store value under key. lifetime is seconds until expiry; 0 means never expire."""
        raise NotImplementedError

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Remove key. Removing an absent key is not an error."""
        raise NotImplementedError


class MemoryStore(StoreAdapter):
    """
    Process-local store. Not shared between workers.
    Each key holds its record and a pending expiry timer; set() replaces the timer, reset() cancels it.
    """

    def __init__(self) -> None:
        self._data: dict[str, tuple[AttemptRecord, asyncio.TimerHandle | None]] = {}

    async def get(self, key: str) -> AttemptRecord | None:
        await asyncio.sleep(0)
        entry = self._data.get(key)
        if entry is None:
            return None
        return entry[0].model_copy()

    async def set(self, key: str, value: AttemptRecord, lifetime: float) -> None:
        await asyncio.sleep(0)
        self._cancel_timer(key)
        timer = None
        if lifetime and lifetime > 0:
            timer = asyncio.get_running_loop().call_later(lifetime, self._expire, key)
        self._data[key] = (value.model_copy(), timer)

    async def reset(self, key: str) -> None:
        await asyncio.sleep(0)
        self._cancel_timer(key)
        self._data.pop(key, None)

    def _cancel_timer(self, key: str) -> None:
        entry = self._data.get(key)
        if entry is not None and entry[1] is not None:
            entry[1].cancel()

    def _expire(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            logger.debug("action=expire key=%s", key)

    def __len__(self) -> int:
        return len(self._data)
