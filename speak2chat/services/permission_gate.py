"""Single-flight gate for permission request flows."""

import asyncio
import logging
from typing import List, Optional

from ..models.access import PermissionResult

logger = logging.getLogger(__name__)


class PermissionGate:
    """Ensures only one permission request flow runs at a time.

    The first caller of `join_or_become_owner` becomes the owner and must call
    `complete`. Callers arriving while the owner is busy are suspended and all
    receive the owner's result. State is only touched from the event loop, so
    no lock is needed.
    """

    def __init__(self):
        self._running = False
        self._waiters: List[asyncio.Future] = []

    @property
    def running(self) -> bool:
        return self._running

    @property
    def waiters(self) -> List[asyncio.Future]:
        return list(self._waiters)

    async def join_or_become_owner(self) -> Optional[PermissionResult]:
        """Become the owner (returns None) or wait for the owner's result."""
        if not self._running:
            self._running = True
            logger.debug("Permission gate acquired by new owner")
            return None

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug(f"Joined running permission request ({len(self._waiters)} waiting)")
        return await waiter

    def complete(self, result: PermissionResult) -> None:
        """Release the gate and hand `result` to every waiter in FIFO order."""
        self._running = False
        waiters, self._waiters = self._waiters, []

        for waiter in waiters:
            # Waiters cancelled by their own task are skipped
            if not waiter.done():
                waiter.set_result(result)

        logger.debug(f"Permission gate completed (ok={result.ok}, waiters={len(waiters)})")
