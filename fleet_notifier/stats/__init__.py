"""Fleet Notifier — Statistics Package.

Components:
  - models: DriverRecord / StatsReport dataclasses and period names
  - client: StatsClient, async HTTP client that fetches and merges
    leaderboard data (import from fleet_notifier.stats.client)
"""

from fleet_notifier.stats.models import (
    DAILY_PERIODS,
    PERIODS,
    TODAY,
    WEEK,
    YESTERDAY,
    DriverRecord,
    StatsReport,
)

__all__ = [
    "DAILY_PERIODS",
    "PERIODS",
    "TODAY",
    "WEEK",
    "YESTERDAY",
    "DriverRecord",
    "StatsReport",
]
