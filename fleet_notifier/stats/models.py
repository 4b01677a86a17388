"""Fleet Notifier — Statistics Models.

Dataclasses for the leaderboard data returned by the fleet statistics
API: one DriverRecord per leaderboard line and a StatsReport that
bundles the ranked list with the bonus figures for a period.

Upstream payloads are loosely typed (hours may arrive as "8,5",
money as a string, fields may be missing), so from_dict() never raises
on bad numbers: anything unparsable becomes zero.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional

# ── Periods ───────────────────────────────────────────────
TODAY = "today"
YESTERDAY = "yesterday"
WEEK = "week"

PERIODS = (TODAY, YESTERDAY, WEEK)
DAILY_PERIODS = (TODAY, YESTERDAY)


def parse_number(value: Any) -> float:
    """Parse a loosely typed numeric field.

    Accepts ints, floats and strings using either '.' or ',' as the
    decimal separator. None, booleans, NaN/inf and unparsable input
    all map to 0.0.

    Args:
        value: Raw value from the upstream JSON.

    Returns:
        The parsed float, or 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", ".").replace(" ", "")
        try:
            number = float(text)
        except ValueError:
            return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


@dataclass(frozen=True)
class DriverRecord:
    """One leaderboard entry.

    Attributes:
        phone: Driver phone number as sent upstream.
        hours: Hours worked in the period.
        money: Money earned, in roubles.
        orders: Number of completed orders.
    """

    phone: str
    hours: float = 0.0
    money: float = 0.0
    orders: int = 0

    @property
    def display_id(self) -> str:
        """Last five characters of the phone number."""
        return self.phone[-5:]

    @property
    def hourly_rate(self) -> int:
        """Money per hour, rounded half-up; 0 when no hours were logged."""
        if self.hours <= 0:
            return 0
        return int(math.floor(self.money / self.hours + 0.5))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DriverRecord":
        """Build a record from one upstream driver object.

        Args:
            data: Dict with phone, hours, money and orders keys.

        Returns:
            A DriverRecord with tolerant numeric parsing applied.
        """
        phone = data.get("phone")
        return cls(
            phone="" if phone is None else str(phone),
            hours=parse_number(data.get("hours")),
            money=parse_number(data.get("money")),
            orders=int(parse_number(data.get("orders"))),
        )


@dataclass
class StatsReport:
    """Leaderboard for one period plus the attached bonus figures.

    Built per fetch and never persisted.

    Attributes:
        period: One of PERIODS.
        top_list: Ranked driver records, in upstream order.
        weekly_bonus_sum: Weekly bonus pool, as sent upstream.
        monthly_bonus: Monthly bonus figure, as sent upstream.
    """

    period: str
    top_list: list[DriverRecord] = field(default_factory=list)
    weekly_bonus_sum: Optional[Any] = None
    monthly_bonus: Optional[Any] = None

    @classmethod
    def from_payload(cls, period: str, payload: Any) -> "StatsReport":
        """Build a report from a top-list response body.

        Accepts both shapes the API has been seen to emit: a bare array
        of driver objects, or an object with a ``topList`` array and
        optional ``weeklyBonusSum`` / ``monthlyBonus`` fields.

        Args:
            period: Period the payload belongs to.
            payload: Decoded JSON body.

        Returns:
            A StatsReport.

        Raises:
            ValueError: If the payload matches neither shape.
        """
        if isinstance(payload, list):
            entries = payload
            weekly = monthly = None
        elif isinstance(payload, dict) and isinstance(payload.get("topList"), list):
            entries = payload["topList"]
            weekly = payload.get("weeklyBonusSum")
            monthly = payload.get("monthlyBonus")
        else:
            raise ValueError("expected a driver array or an object with 'topList'")

        records = [DriverRecord.from_dict(e) for e in entries if isinstance(e, dict)]
        return cls(
            period=period,
            top_list=records,
            weekly_bonus_sum=weekly,
            monthly_bonus=monthly,
        )
