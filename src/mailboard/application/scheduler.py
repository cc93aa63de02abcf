"""Per-tenant polling loops on the asyncio event loop."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from mailboard.application.use_cases.poll_mailbox import CycleReport, MailboxPoller, MessageOutcome

MAX_FAILED_UIDS = 100


@dataclass
class PollerStats:
    """Running totals for one tenant's poller.

    ``failed_uids`` keeps the most recent ``MAX_FAILED_UIDS`` failures;
    ``by_outcome["failed"]`` keeps the full count.
    """

    polls_completed: int = 0
    polls_skipped: int = 0
    last_poll: datetime | None = None
    last_error: str | None = None
    by_outcome: dict[str, int] = field(default_factory=dict)
    failed_uids: list[str] = field(default_factory=list)

    def add(self, report: CycleReport) -> None:
        self.polls_completed += 1
        self.last_error = report.error
        for outcome, count in report.summary().items():
            self.by_outcome[outcome] = self.by_outcome.get(outcome, 0) + count
        self.failed_uids.extend(report.failed_uids)
        del self.failed_uids[:-MAX_FAILED_UIDS]

    def as_dict(self) -> dict:
        return {
            "polls_completed": self.polls_completed,
            "polls_skipped": self.polls_skipped,
            "last_poll": self.last_poll.isoformat() if self.last_poll else None,
            "last_error": self.last_error,
            "by_outcome": dict(self.by_outcome),
            "failed_uids": list(self.failed_uids),
        }


class PollingScheduler:
    """Runs one polling task per tenant.

    Each tenant polls immediately, then every ``interval_seconds`` measured
    from cycle start. Cycles for the same tenant never overlap: the loop
    awaits each cycle, and ``trigger`` is refused while one is in flight.
    """

    def __init__(self, poller: MailboxPoller, interval_seconds: float = 15.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.poller = poller
        self.interval_seconds = interval_seconds
        self._tasks: dict[str, asyncio.Task] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._stats: dict[str, PollerStats] = {}

    def is_running(self, tenant_id: str) -> bool:
        task = self._tasks.get(tenant_id)
        return task is not None and not task.done()

    def start(self, tenant_id: str) -> None:
        if self.is_running(tenant_id):
            logger.debug(f"Poller for {tenant_id} already running")
            return
        self._stats.setdefault(tenant_id, PollerStats())
        self._tasks[tenant_id] = asyncio.create_task(
            self._run_forever(tenant_id), name=f"poll:{tenant_id}"
        )
        logger.info(f"Started poller for {tenant_id} every {self.interval_seconds:g}s")

    async def trigger(self, tenant_id: str) -> Optional[CycleReport]:
        """Run one cycle now, unless one is already in flight for the tenant."""
        lock = self._locks.setdefault(tenant_id, asyncio.Lock())
        stats = self._stats.setdefault(tenant_id, PollerStats())
        if lock.locked():
            stats.polls_skipped += 1
            logger.warning(f"Poll for {tenant_id} still in flight, skipping this cycle")
            return None

        async with lock:
            stats.last_poll = datetime.now(timezone.utc)
            report = await self.poller.run_cycle(tenant_id)
            stats.add(report)
        if report.count(MessageOutcome.FAILED):
            logger.warning(f"{tenant_id} has unreconciled UIDs: {stats.failed_uids}")
        return report

    async def _run_forever(self, tenant_id: str) -> None:
        loop = asyncio.get_running_loop()
        while True:
            started = loop.time()
            try:
                await self.trigger(tenant_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # run_cycle contains its own failures; this is the last line
                logger.exception(f"Poll loop error for {tenant_id}: {e}")

            elapsed = loop.time() - started
            if elapsed > self.interval_seconds:
                logger.warning(
                    f"Poll for {tenant_id} took {elapsed:.1f}s, longer than the "
                    f"{self.interval_seconds:g}s interval"
                )
            await asyncio.sleep(max(0.0, self.interval_seconds - elapsed))

    def stats(self, tenant_id: str) -> Optional[PollerStats]:
        return self._stats.get(tenant_id)

    def all_stats(self) -> dict[str, dict]:
        return {tenant_id: s.as_dict() for tenant_id, s in self._stats.items()}

    async def stop(self, tenant_id: str) -> None:
        task = self._tasks.pop(tenant_id, None)
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Stopped poller for {tenant_id}")

    async def stop_all(self) -> None:
        for tenant_id in list(self._tasks):
            await self.stop(tenant_id)
