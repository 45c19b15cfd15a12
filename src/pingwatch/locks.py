import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager


class CheckLocks:
    """One asyncio lock per check id, so ping writes and sweep writes never interleave."""

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def lock(self, check_id: str):
        async with self._locks[check_id]:
            yield

    def discard(self, check_id: str) -> None:
        lock = self._locks.get(check_id)
        if lock is not None and not lock.locked():
            del self._locks[check_id]


check_locks = CheckLocks()
