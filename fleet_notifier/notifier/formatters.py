"""Fleet Notifier — Telegram Message Formatters.

Renders leaderboard reports in Russian using Telegram's legacy
Markdown parse mode (*bold* only).

Layout:
  - bold header with the date (or week range) and the park names
  - bold bonus lines
  - one line per driver, separated by a dashed rule
  - bold call to action

All dates are computed in the report timezone, never the host's.
Formatting never fails on bad upstream numbers: DriverRecord already
maps them to zero.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from fleet_notifier.config import ReportConfig
from fleet_notifier.stats.models import TODAY, WEEK, YESTERDAY, DriverRecord, StatsReport
from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# ── Separator line between driver entries ────────────────
_SEP = "-----------------------------------"

_MONTHS_GENITIVE = (
    "января", "февраля", "марта", "апреля", "мая", "июня",
    "июля", "августа", "сентября", "октября", "ноября", "декабря",
)


def _md(text: str) -> str:
    """Escape legacy-Markdown control characters outside entities."""
    for ch in ("_", "*", "`", "["):
        text = text.replace(ch, f"\\{ch}")
    return text


def _fmt_number(value: float) -> str:
    """Render a number without a trailing '.0' (4000.0 → '4000')."""
    if float(value).is_integer():
        return str(int(value))
    return str(round(value, 2))


def _fmt_hours(hours: float) -> str:
    """Hours to one decimal, ties rounded up (7.25 → '7.3')."""
    return str(Decimal(repr(hours)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _fmt_amount(value: Any) -> str:
    """Render a bonus figure as received; missing values show as 0."""
    if value is None or isinstance(value, bool):
        return "0"
    if isinstance(value, (int, float)):
        return _fmt_number(value)
    return str(value).strip() or "0"


def format_date(day: date, with_year: bool = True) -> str:
    """Format a date as '19 октября 2026' (or '19 октября').

    Args:
        day: The date.
        with_year: Whether to append the year.

    Returns:
        Russian date string with the month in genitive case.
    """
    text = f"{day.day} {_MONTHS_GENITIVE[day.month - 1]}"
    return f"{text} {day.year}" if with_year else text


def week_range(day: date) -> tuple[date, date]:
    """Monday and Sunday of the week containing a date.

    Weeks always start on Monday, regardless of locale.
    """
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def format_driver_line(position: int, driver: DriverRecord) -> str:
    """Format one leaderboard line.

    Example: '1. Т79.12233 -12з -8.5 ч -4000₽ -471 ₽/ч'

    Args:
        position: 1-based rank.
        driver: The driver record.

    Returns:
        The formatted line (no trailing newline).
    """
    return (
        f"{position}. Т79.{_md(driver.display_id)} "
        f"-{driver.orders}з "
        f"-{_fmt_hours(driver.hours)} ч "
        f"-{_fmt_number(driver.money)}₽ "
        f"-{driver.hourly_rate} ₽/ч"
    )


def _parks_line(config: ReportConfig) -> str:
    names = list(config.park_names)
    if len(names) > 1:
        joined = ", ".join(names[:-1]) + f" и {names[-1]}"
    else:
        joined = names[0] if names else ""
    return f"*🏆Парки: {joined}🏆*"


def _title(period: str, now: datetime) -> str:
    """Header line for a period, based on the current local time."""
    if period == TODAY:
        return f"*🔝 Курьеров за {format_date(now.date())} [{now:%H:%M}]*"
    if period == YESTERDAY:
        return f"*🔝 Курьеров за {format_date(now.date() - timedelta(days=1))}*"
    if period == WEEK:
        start, end = week_range(now.date())
        return (
            f"*🔝 Курьеров за неделю с {format_date(start, with_year=False)}"
            f" по {format_date(end, with_year=False)}*"
        )
    raise ValueError(f"Unknown report period: {period!r}")


def format_report(
    report: StatsReport,
    config: ReportConfig,
    period: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """Render a full leaderboard message.

    Args:
        report: Fetched statistics.
        config: ReportConfig with timezone, park names and contact.
        period: Period to render; defaults to report.period.
        now: Current time (any timezone; converted to the report
             timezone). Defaults to the current time.

    Returns:
        Markdown message text.

    Raises:
        ValueError: If the period is unknown.
    """
    period = period or report.period
    tz = config.tz
    local_now = now.astimezone(tz) if now is not None else datetime.now(tz)

    lines = [
        _title(period, local_now),
        _parks_line(config),
        "",
        f"*Недельный бонус: {_fmt_amount(report.weekly_bonus_sum)}₽ 😎*",
        "",
    ]
    if report.monthly_bonus is not None:
        lines.extend([f"*Месячный бонус: {_fmt_amount(report.monthly_bonus)}🤑*", ""])

    if not report.top_list:
        lines.append("Пока нет данных по курьерам.")
    for i, driver in enumerate(report.top_list, 1):
        lines.append(format_driver_line(i, driver))
        if i != len(report.top_list):
            lines.append(_SEP)

    lines.append("")
    lines.append(f"*Хочешь попасть в этот топ и забрать бонус? Пиши {config.contact}*")

    text = "\n".join(lines) + "\n"
    logger.debug(
        "Formatted %s report: %d drivers, %d chars",
        period, len(report.top_list), len(text),
    )
    return text
