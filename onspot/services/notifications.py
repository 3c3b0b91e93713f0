"""
Fire-and-forget dispatch of partnership notifications.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Set

from .gateways import Notification, NotificationGateway

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """
    Schedules deliveries as background tasks after state writes commit.

    A failed delivery is logged and never reaches the caller of the
    operation that triggered it.
    """

    def __init__(self, gateway: NotificationGateway) -> None:
        self._gateway = gateway
        self._pending: Set[asyncio.Task] = set()

    def dispatch(self, target_account_ref: str, notification: Notification) -> asyncio.Task:
        task = asyncio.create_task(self._deliver(target_account_ref, notification))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, target_account_ref: str, notification: Notification) -> None:
        try:
            await self._gateway.notify(target_account_ref, notification)
        except Exception as exc:
            logger.warning("Notification %r to %s failed: %s", notification.title, target_account_ref, exc)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
