"""
Cancellable request scope tied to the lifetime of a live view.
"""

import asyncio
import logging
from typing import Awaitable, Optional, Set, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScopeCancelled(Exception):
    """Raised when a result arrives after its view scope was cancelled."""


class ViewScope:
    """
    Cancellation token for fetches started by one view.

    Results that complete after `cancel()` are dropped; tasks still in
    flight at cancel time are cancelled.
    """

    def __init__(self, name: str = "view"):
        self.name = name
        self._cancelled = False
        self._tasks: Set[asyncio.Task] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` inside the scope.

        Raises:
            ScopeCancelled: If the scope is (or becomes) cancelled
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise ScopeCancelled(self.name)

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            result = await task
        except asyncio.CancelledError:
            if self._cancelled:
                raise ScopeCancelled(self.name)
            raise
        finally:
            self._tasks.discard(task)

        if self._cancelled:
            logger.debug(f"Dropping late result in cancelled scope {self.name}")
            raise ScopeCancelled(self.name)
        return result

    async def run_or_none(self, awaitable: Awaitable[T]) -> Optional[T]:
        """Like `run`, but a cancelled scope yields None."""
        try:
            return await self.run(awaitable)
        except ScopeCancelled:
            return None

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        for task in list(self._tasks):
            task.cancel()
        logger.debug(f"Scope {self.name} cancelled with {len(self._tasks)} task(s) in flight")
