"""Fleet Notifier — Health Monitoring.

In-memory counters for report firings, fetches, deliveries and errors,
with bounded history (deque). Served as JSON on the /health endpoint.

Usage:
    monitor = HealthMonitor()
    monitor.record_report("today", fetched=True, delivered=3, failed=0)
    monitor.record_error("stats", "HTTP 500")
    status = monitor.get_status()
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class _ReportRecord:
    """One report run (scheduled or on demand)."""
    timestamp: float
    period: str
    fetched: bool
    delivered: int
    failed: int


@dataclass
class _ErrorRecord:
    """One error event."""
    timestamp: float
    component: str
    error: str


class HealthMonitor:
    """Tracks report activity for the liveness endpoint and logs.

    Attributes:
        start_time: Monotonic time the monitor was created (app start).
    """

    def __init__(self, max_history: int = 200) -> None:
        """Initialize the monitor.

        Args:
            max_history: Maximum number of report/error records kept.
        """
        self.start_time = time.monotonic()
        self._start_datetime = datetime.now()

        self._reports: deque[_ReportRecord] = deque(maxlen=max_history)
        self._errors: deque[_ErrorRecord] = deque(maxlen=max_history)

        # Aggregate counters (never reset)
        self.total_reports = 0
        self.total_fetch_failures = 0
        self.total_delivered = 0
        self.total_failed_sends = 0
        self.total_errors = 0

        self.last_report_time: Optional[float] = None
        self.last_report_period: Optional[str] = None

    def record_report(
        self,
        period: str,
        fetched: bool,
        delivered: int = 0,
        failed: int = 0,
    ) -> None:
        """Record the outcome of one report run.

        Args:
            period: Report period.
            fetched: Whether statistics were fetched.
            delivered: Messages delivered.
            failed: Messages that failed to send.
        """
        now = time.monotonic()
        self._reports.append(_ReportRecord(
            timestamp=now,
            period=period,
            fetched=fetched,
            delivered=delivered,
            failed=failed,
        ))

        self.total_reports += 1
        self.total_delivered += delivered
        self.total_failed_sends += failed
        if not fetched:
            self.total_fetch_failures += 1

        self.last_report_time = now
        self.last_report_period = period

    def record_error(self, component: str, error: str) -> None:
        """Record an error event.

        Args:
            component: Component name (stats, telegram, storage, ...).
            error: Error description.
        """
        self.total_errors += 1
        self._errors.append(_ErrorRecord(
            timestamp=time.monotonic(),
            component=component,
            error=error[:200],
        ))
        logger.debug("Health: error recorded for %s", component)

    def get_status(self) -> dict[str, Any]:
        """Current health snapshot.

        Returns:
            JSON-serializable dict with uptime, totals and recent errors.
        """
        now = time.monotonic()
        one_hour_ago = now - 3600

        recent_errors = [e for e in self._errors if e.timestamp > one_hour_ago]
        recent_reports = [r for r in self._reports if r.timestamp > one_hour_ago]
        since_last = now - self.last_report_time if self.last_report_time else None

        return {
            "uptime": self._format_uptime(now - self.start_time),
            "started_at": self._start_datetime.strftime("%Y-%m-%d %H:%M"),
            "total_reports": self.total_reports,
            "total_fetch_failures": self.total_fetch_failures,
            "total_delivered": self.total_delivered,
            "total_failed_sends": self.total_failed_sends,
            "total_errors": self.total_errors,
            "reports_1h": len(recent_reports),
            "errors_1h": len(recent_errors),
            "last_report_period": self.last_report_period,
            "seconds_since_last_report": round(since_last) if since_last is not None else None,
            "last_errors": [
                {"component": e.component, "error": e.error}
                for e in list(self._errors)[-5:]
            ],
        }

    @staticmethod
    def _format_uptime(seconds: float) -> str:
        """Format seconds into human-readable uptime."""
        hours = int(seconds // 3600)
        mins = int((seconds % 3600) // 60)
        if hours >= 24:
            days = hours // 24
            hours = hours % 24
            return f"{days}d {hours}h {mins}m"
        if hours:
            return f"{hours}h {mins}m"
        return f"{mins}m"
