from contextlib import asynccontextmanager
from typing import Dict, Hashable, List
import asyncio


class KeyedLock:
    """One asyncio.Lock per key, kept only while a task holds or awaits it.

    Usage::

        locks = KeyedLock()
        async with locks.hold(("math", 3)):
            ...
    """

    def __init__(self):
        # key -> [lock, number of tasks holding or waiting]
        self._entries: Dict[Hashable, List] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, key: Hashable):
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]
