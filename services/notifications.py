"""
Fire-and-forget notification policy.

Email is a side channel of the auth flows: a flow that has already decided
its outcome must not fail, or change its answer, because a notification
could not be delivered. BestEffortNotifier wraps any Notifier and turns every
delivery failure into a logged warning.

Each send is scheduled with asyncio.create_task so the caller never waits on
the provider. Pending tasks are held until they finish; ``drain()`` awaits
them (app shutdown, tests).
"""

from __future__ import annotations

import asyncio
from typing import Any

from infrastructure.email.protocol import Notifier
from shared.logging import get_logger

log = get_logger(__name__)


class BestEffortNotifier:
    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._pending: set[asyncio.Task] = set()

    def notify(
        self, to: str, subject: str, template_id: str, data: dict[str, Any]
    ) -> None:
        """Schedule a send on the running loop; returns immediately."""
        task = asyncio.create_task(self._deliver(to, subject, template_id, data))
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled send to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(
        self, to: str, subject: str, template_id: str, data: dict[str, Any]
    ) -> bool:
        try:
            sent = await self._notifier.send(to, subject, template_id, data)
        except Exception as e:
            log.warning(
                "notification_failed",
                template_id=template_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        if not sent:
            log.warning("notification_not_sent", template_id=template_id)
        return bool(sent)

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            log.warning("notification_cancelled")
            return
        exc = task.exception()
        if exc is not None:
            log.error(
                "notification_dispatch_crashed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
