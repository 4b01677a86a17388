"""Fleet Notifier — Report Scheduler.

Fires report jobs at fixed wall-clock times in one timezone, using
APScheduler cron triggers on the running asyncio loop.

Each ScheduleEntry becomes one CronTrigger(hour, minute) job: it fires
at most once per day, and a firing missed while the process was down
is not replayed (misfire grace is shorter than a minute, and the job
store is in-memory).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)

ReportJob = Callable[[str], Awaitable[None]]

_MISFIRE_GRACE_SECONDS = 30


@dataclass(frozen=True)
class ScheduleEntry:
    """A daily trigger time and the report period it sends.

    Attributes:
        hour: Hour of day, 0-23, in the scheduler timezone.
        minute: Minute, 0-59.
        period: Report period ("today", "yesterday" or "week").
    """

    hour: int
    minute: int
    period: str

    @property
    def label(self) -> str:
        """Human-readable form, e.g. '09:00 today'."""
        return f"{self.hour:02d}:{self.minute:02d} {self.period}"

    @property
    def job_id(self) -> str:
        """Stable APScheduler job id."""
        return f"report_{self.period}_{self.hour:02d}{self.minute:02d}"


def build_trigger(entry: ScheduleEntry, timezone: ZoneInfo) -> CronTrigger:
    """Build the daily cron trigger for a schedule entry.

    Args:
        entry: The schedule entry.
        timezone: Timezone the hour/minute are expressed in.

    Returns:
        A CronTrigger firing at hour:minute:00 every day.
    """
    return CronTrigger(
        hour=entry.hour,
        minute=entry.minute,
        second=0,
        timezone=timezone,
    )


class ReportScheduler:
    """Registers the fixed report schedule with an AsyncIOScheduler.

    The schedule table is immutable and handed in at construction.
    Extra interval jobs (such as the liveness self-ping) can share the
    same scheduler through add_interval_job().

    Attributes:
        entries: The schedule table.
        timezone: Timezone for all entries.
    """

    def __init__(
        self,
        entries: tuple[ScheduleEntry, ...],
        timezone: ZoneInfo,
        job: ReportJob,
        scheduler: Optional[AsyncIOScheduler] = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            entries: Immutable schedule table.
            timezone: Timezone the entries are expressed in.
            job: Coroutine function called with the period on each firing.
            scheduler: Optional pre-built AsyncIOScheduler (for tests).
        """
        self.entries = tuple(entries)
        self.timezone = timezone
        self._job = job
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone)

    def start(self) -> None:
        """Register every entry and start the scheduler.

        Must be called from inside the running event loop.
        """
        for entry in self.entries:
            self._scheduler.add_job(
                self._fire,
                build_trigger(entry, self.timezone),
                args=[entry],
                id=entry.job_id,
                name=f"Report {entry.label}",
                max_instances=1,
                coalesce=True,
                misfire_grace_time=_MISFIRE_GRACE_SECONDS,
                replace_existing=True,
            )
            logger.info("Scheduled %s (%s)", entry.label, self.timezone.key)

        self._scheduler.start()
        logger.info("Scheduler started with %d report jobs", len(self.entries))
        for line in self.describe():
            logger.info("  next: %s", line)

    def add_interval_job(
        self,
        func: Callable[[], Awaitable[None]],
        minutes: int,
        job_id: str,
    ) -> None:
        """Add a non-report job that runs every N minutes."""
        self._scheduler.add_job(
            func,
            IntervalTrigger(minutes=minutes),
            id=job_id,
            name=f"{job_id} (every {minutes}m)",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info("Interval job %s every %d minutes", job_id, minutes)

    def describe(self) -> list[str]:
        """List each report job with its next run time in the schedule timezone."""
        lines: list[str] = []
        for entry in self.entries:
            job = self._scheduler.get_job(entry.job_id)
            next_run = getattr(job, "next_run_time", None) if job else None
            when = (
                next_run.astimezone(self.timezone).strftime("%Y-%m-%d %H:%M")
                if next_run else "not scheduled"
            )
            lines.append(f"{entry.label} → {when}")
        return lines

    async def _fire(self, entry: ScheduleEntry) -> None:
        """Run one firing. Exceptions are logged, never propagated."""
        logger.info("═══ Scheduled report: %s ═══", entry.label)
        try:
            await self._job(entry.period)
        except Exception as e:
            logger.exception("Scheduled report %s failed: %s", entry.label, e)

    def shutdown(self) -> None:
        """Stop the scheduler without waiting for running jobs."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        """Whether the underlying scheduler is running."""
        return self._scheduler.running
