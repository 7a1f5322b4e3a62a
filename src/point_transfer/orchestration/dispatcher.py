"""Fire-and-forget dispatch of claim notifications.

The transfer service hands a committed transfer to dispatch() and returns to
its caller immediately. Delivery runs as a detached asyncio task; its outcome
is only logged. Nothing here can fail an initiation.

Tasks are kept in a set until they finish so the event loop does not drop
them, and drain() lets the application wait for in-flight deliveries on
shutdown.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from point_transfer.logging_config import get_logger

if TYPE_CHECKING:
    from point_transfer.domain.protocols import Notifier
    from point_transfer.infrastructure.database.orm_models import Transfer

logger = get_logger(__name__)


class NotificationDispatcher:
    """Runs notifier calls outside the request's control flow."""

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def dispatch(self, transfer: Transfer) -> None:
        """Schedule delivery for a transfer without awaiting it."""
        task = asyncio.create_task(
            self._deliver(transfer),
            name=f"notify-transfer-{transfer.id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight deliveries, cancelling any still running after timeout."""
        if not self._tasks:
            return
        done, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            logger.warning("notification.drain_timeout", cancelled=len(still_running))
        logger.info("notification.drained", completed=len(done))

    async def _deliver(self, transfer: Transfer) -> None:
        try:
            result = await self._notifier.notify(transfer)
        except Exception as exc:  # noqa: BLE001 - notification never fails a transfer
            logger.exception(
                "notification.failed",
                transfer_id=transfer.id,
                recipient=transfer.receiver_email,
                error=str(exc),
            )
            return

        if result.delivered:
            logger.info(
                "notification.delivered",
                transfer_id=transfer.id,
                recipient=result.recipient,
            )
        else:
            logger.warning(
                "notification.undelivered",
                transfer_id=transfer.id,
                recipient=result.recipient,
                error=result.error,
            )
