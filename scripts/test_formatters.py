"""Fleet Notifier — Formatter Tests.

Checks driver lines, hourly rate, tolerant number parsing and the
period-specific date headers (computed in Europe/Moscow).

Run: python scripts/test_formatters.py
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fleet_notifier.config import ReportConfig
from fleet_notifier.notifier.formatters import (
    _fmt_hours,
    _md,
    format_date,
    format_driver_line,
    format_report,
    week_range,
)
from fleet_notifier.stats.models import DriverRecord, StatsReport
from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)

_passed = 0
_failed = 0

MSK = ZoneInfo("Europe/Moscow")
CONFIG = ReportConfig(
    timezone="Europe/Moscow",
    park_names=("Народный", "Luxury courier"),
    contact="@lchelp_bot",
)


def check(label: str, condition: bool) -> None:
    """Track test pass/fail; raise so pytest sees the failure too.

    Args:
        label: Test description.
        condition: Whether the test passed.
    """
    global _passed, _failed
    if condition:
        _passed += 1
        logger.info("    ✅ %s", label)
    else:
        _failed += 1
        logger.error("    ❌ FAILED: %s", label)
        raise AssertionError(label)


def make_report(period: str, drivers: list[dict], **kwargs: object) -> StatsReport:
    """Build a StatsReport from raw driver dicts."""
    return StatsReport(
        period=period,
        top_list=[DriverRecord.from_dict(d) for d in drivers],
        **kwargs,
    )


def test_driver_line_and_hourly_rate() -> None:
    logger.info("═══ Driver line ═══")
    report = make_report("today", [
        {"phone": "79991112233", "hours": "8,5", "money": 4000, "orders": 12},
    ], weekly_bonus_sum=15000, monthly_bonus=50000)
    driver = report.top_list[0]

    check("Comma hours parsed as 8.5", driver.hours == 8.5)
    check("Hourly rate = round(4000/8.5) = 471", driver.hourly_rate == 471)
    check("Masked id = last 5 digits", driver.display_id == "12233")

    text = format_report(report, CONFIG, now=datetime(2026, 10, 19, 14, 0, tzinfo=MSK))
    check("Line contains '1. Т79.12233'", "1. Т79.12233" in text)
    check(
        "Full line format",
        "1. Т79.12233 -12з -8.5 ч -4000₽ -471 ₽/ч" in text,
    )


def test_zero_and_garbage_numbers() -> None:
    logger.info("═══ Zero / unparsable numbers ═══")
    zero = DriverRecord.from_dict({"phone": "70000000001", "hours": "0", "money": 900})
    missing = DriverRecord.from_dict({"phone": "70000000002", "money": 900})
    garbage = DriverRecord.from_dict(
        {"phone": "70000000003", "hours": "n/a", "money": "lots", "orders": None},
    )

    check("hours '0' → rate 0", zero.hourly_rate == 0)
    check("missing hours → rate 0", missing.hourly_rate == 0)
    check("unparsable hours → 0.0", garbage.hours == 0.0)
    check("unparsable money → 0.0", garbage.money == 0.0)
    check("None orders → 0", garbage.orders == 0)

    report = StatsReport(period="today", top_list=[zero, missing, garbage])
    text = format_report(report, CONFIG, now=datetime(2026, 10, 19, 9, 0, tzinfo=MSK))
    check("Formatting survives bad data", "3. Т79.00003 -0з -0.0 ч -0₽ -0 ₽/ч" in text)


def test_rate_rounds_half_up() -> None:
    logger.info("═══ Half-up rounding ═══")
    driver = DriverRecord(phone="1", hours=2.0, money=5.0)
    check("2.5 rounds to 3", driver.hourly_rate == 3)
    driver = DriverRecord(phone="1", hours=4.0, money=2.0)
    check("0.5 rounds to 1", driver.hourly_rate == 1)


def test_today_header() -> None:
    logger.info("═══ Today header ═══")
    report = make_report("today", [], weekly_bonus_sum=100, monthly_bonus=200)
    # 11:00 UTC is 14:00 in Moscow
    text = format_report(report, CONFIG, now=datetime(2026, 10, 19, 11, 0, tzinfo=timezone.utc))
    first_line = text.splitlines()[0]
    check("Date and Moscow time", first_line == "*🔝 Курьеров за 19 октября 2026 [14:00]*")
    check("Parks line", "*🏆Парки: Народный и Luxury courier🏆*" in text)
    check("Weekly bonus line", "*Недельный бонус: 100₽ 😎*" in text)
    check("Monthly bonus line", "*Месячный бонус: 200🤑*" in text)
    check("Call to action", text.rstrip().endswith("Пиши @lchelp_bot*"))


def test_yesterday_header_uses_report_timezone() -> None:
    logger.info("═══ Yesterday header ═══")
    report = make_report("yesterday", [])
    # 22:30 UTC on the 19th is already 01:30 on the 20th in Moscow
    text = format_report(report, CONFIG, now=datetime(2026, 10, 19, 22, 30, tzinfo=timezone.utc))
    first_line = text.splitlines()[0]
    check("Yesterday is the 19th in Moscow", first_line == "*🔝 Курьеров за 19 октября 2026*")
    check("No time stamp", "[" not in first_line)


def test_week_header_monday_to_sunday() -> None:
    logger.info("═══ Week header ═══")
    report = make_report("week", [], weekly_bonus_sum=5000)

    wednesday = datetime(2026, 10, 21, 12, 0, tzinfo=MSK)
    text = format_report(report, CONFIG, now=wednesday)
    check(
        "Mid-week range",
        text.splitlines()[0] == "*🔝 Курьеров за неделю с 19 октября по 25 октября*",
    )

    sunday = datetime(2026, 10, 25, 23, 59, tzinfo=MSK)
    start, end = week_range(sunday.date())
    check("Sunday belongs to the week starting Monday 19th", (start.day, end.day) == (19, 25))

    month_edge = datetime(2026, 11, 1, 10, 0, tzinfo=MSK)
    text = format_report(report, CONFIG, now=month_edge)
    check(
        "Range across months",
        "с 26 октября по 1 ноября" in text.splitlines()[0],
    )
    check("No monthly line without a figure", "Месячный бонус" not in text)


def test_separators_and_numbering() -> None:
    logger.info("═══ Separators ═══")
    report = make_report("today", [
        {"phone": "79990000001", "hours": 10, "money": 5000, "orders": 20},
        {"phone": "79990000002", "hours": "7.25", "money": "3200.5", "orders": "9"},
        {"phone": "79990000003", "hours": "5", "money": 1000, "orders": 4},
    ])
    text = format_report(report, CONFIG, now=datetime(2026, 10, 19, 9, 0, tzinfo=MSK))
    lines = text.splitlines()

    driver_idx = [i for i, l in enumerate(lines) if l[:3] in ("1. ", "2. ", "3. ")]
    check("Three numbered driver lines", len(driver_idx) == 3)
    check("Two separators", lines.count("-----------------------------------") == 2)
    check("No separator after last driver", lines[driver_idx[-1] + 1] == "")
    check("Fractional money kept", "-3200.5₽" in text)
    check("Hours to one decimal", "-7.3 ч" in text)
    check("Missing weekly bonus shows 0", "*Недельный бонус: 0₽ 😎*" in text)


def test_hours_round_half_up() -> None:
    logger.info("═══ Hours rounding ═══")
    report = make_report("today", [
        {"phone": "79991112233", "hours": "7,25", "money": 2900, "orders": 10},
    ])
    text = format_report(report, CONFIG, now=datetime(2026, 10, 19, 14, 0, tzinfo=MSK))
    check("7,25 hours → 7.3", "-7.3 ч" in text)
    check(
        "Full line format",
        "1. Т79.12233 -10з -7.3 ч -2900₽ -400 ₽/ч" in text,
    )
    check("0.05 → 0.1", _fmt_hours(0.05) == "0.1")
    check("Whole hours keep one decimal", _fmt_hours(8) == "8.0")


def test_markdown_escape() -> None:
    logger.info("═══ Markdown escape ═══")
    check("Entity markers escaped", _md("a_b*c`d[e") == "a\\_b\\*c\\`d\\[e")
    check("Backslash left as is", _md("a\\b_c") == "a\\b\\_c")


def test_format_helpers() -> None:
    logger.info("═══ Helpers ═══")
    line = format_driver_line(7, DriverRecord(phone="123", hours=1.0, money=10.0, orders=1))
    check("Short phone kept whole", line.startswith("7. Т79.123 "))
    check("Genitive month", format_date(datetime(2026, 5, 9).date()) == "9 мая 2026")
    check("Date without year", format_date(datetime(2026, 3, 1).date(), with_year=False) == "1 марта")


def test_payload_shapes() -> None:
    logger.info("═══ Payload shapes ═══")
    array_form = StatsReport.from_payload("today", [{"phone": "1", "hours": "1", "money": 1}])
    check("Array form parsed", len(array_form.top_list) == 1)
    check("Array form has no bonuses", array_form.weekly_bonus_sum is None)

    object_form = StatsReport.from_payload("week", {
        "topList": [{"phone": "1"}, "junk"],
        "weeklyBonusSum": 700,
    })
    check("Object form parsed, junk entries skipped", len(object_form.top_list) == 1)
    check("Object form bonus kept", object_form.weekly_bonus_sum == 700)

    try:
        StatsReport.from_payload("today", {"drivers": []})
        rejected = False
    except ValueError:
        rejected = True
    check("Unknown shape rejected", rejected)


TESTS = [
    test_driver_line_and_hourly_rate,
    test_zero_and_garbage_numbers,
    test_rate_rounds_half_up,
    test_today_header,
    test_yesterday_header_uses_report_timezone,
    test_week_header_monday_to_sunday,
    test_separators_and_numbering,
    test_hours_round_half_up,
    test_markdown_escape,
    test_format_helpers,
    test_payload_shapes,
]


def main() -> None:
    """Run all formatter tests."""
    logger.info("╔══════════════════════════════════════════════════════╗")
    logger.info("║  Fleet Notifier — Formatter Tests                   ║")
    logger.info("╚══════════════════════════════════════════════════════╝")

    for test in TESTS:
        try:
            test()
        except AssertionError:
            pass

    logger.info("")
    logger.info("  Results: %d passed, %d failed", _passed, _failed)
    if _failed > 0:
        logger.error("Some tests failed!")
        sys.exit(1)
    logger.info("🎉 All formatter tests passed!")


if __name__ == "__main__":
    main()
