from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import anyio


class KeyedLock:
    """One ``anyio.Lock`` per key, created on demand.

    同じ単語に対する操作だけを直列化し、別の単語は並行に進める。
    待機者がいなくなった時点でロックを破棄するため、辞書は保存語数に比例して
    肥大化しない。イベントループ内からのみ使うこと（スレッド安全ではない）。
    """

    def __init__(self) -> None:
        self._locks: dict[str, anyio.Lock] = {}
        self._holders: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = anyio.Lock()
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._holders[key] - 1
            if remaining:
                self._holders[key] = remaining
            else:
                del self._holders[key]
                del self._locks[key]
