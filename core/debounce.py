import asyncio
import logging
from typing import Awaitable, Callable, Dict, Hashable, Set, Tuple

logger = logging.getLogger(__name__)

CATEGORY_SCOPE = "category"
GLOBAL_SCOPE = "global"
SCOPES = (CATEGORY_SCOPE, GLOBAL_SCOPE)

_GLOBAL_KEY = "*"

CallFactory = Callable[[], Awaitable[None]]


class Debouncer:
    """Trailing-edge debounce for async calls.

    schedule(key, factory) starts a quiet-period timer for the key; calling
    it again before the timer fires replaces the factory and restarts the
    timer, so only the last call made for a key ever runs. With the
    "global" scope every key shares a single timer.
    """

    def __init__(self, delay: float, scope: str = CATEGORY_SCOPE):
        if scope not in SCOPES:
            raise ValueError(f"scope must be one of {SCOPES}, got {scope!r}")
        self.delay = delay
        self.scope = scope
        self._pending: Dict[Hashable, Tuple[asyncio.Task, CallFactory]] = {}
        self._running: Set[asyncio.Task] = set()

    @property
    def pending(self) -> Tuple[Hashable, ...]:
        return tuple(self._pending)

    def _key(self, key: Hashable) -> Hashable:
        return _GLOBAL_KEY if self.scope == GLOBAL_SCOPE else key

    def schedule(self, key: Hashable, factory: CallFactory) -> None:
        key = self._key(key)
        self._drop(key)
        task = asyncio.get_running_loop().create_task(self._fire_later(key, factory))
        self._pending[key] = (task, factory)

    def _drop(self, key: Hashable) -> None:
        entry = self._pending.pop(key, None)
        if entry is not None:
            entry[0].cancel()

    async def _fire_later(self, key: Hashable, factory: CallFactory) -> None:
        await asyncio.sleep(self.delay)
        task = asyncio.current_task()
        entry = self._pending.get(key)
        if entry is None or entry[0] is not task:
            return
        del self._pending[key]
        self._running.add(task)
        try:
            await self._invoke(key, factory)
        finally:
            self._running.discard(task)

    async def _invoke(self, key: Hashable, factory: CallFactory) -> None:
        try:
            await factory()
        except Exception:
            logger.exception("Debounced call for %r failed", key)

    async def flush(self) -> None:
        """Run every pending call now and wait for calls already in flight."""
        pending = list(self._pending.items())
        self._pending.clear()
        for _, (task, _) in pending:
            task.cancel()
        for key, (_, factory) in pending:
            await self._invoke(key, factory)
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    def cancel(self) -> None:
        for key in list(self._pending):
            self._drop(key)
