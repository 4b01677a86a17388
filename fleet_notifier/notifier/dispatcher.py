"""Fleet Notifier — Notification Dispatcher.

Connects the statistics client, the formatter and the Telegram bot:
builds report text for a period, and broadcasts it to every recipient
(allow-listed chats plus stored subscribers).

Broadcast is best-effort and at-most-once per recipient: sends run as
a bounded group, every outcome is joined, a failure for one chat is
logged with its id and never stops the others, and nothing is retried.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from fleet_notifier.config import ReportConfig
from fleet_notifier.notifier.formatters import format_report
from fleet_notifier.notifier.telegram_bot import TelegramNotifier
from fleet_notifier.stats.client import StatsClient
from fleet_notifier.storage.subscribers import SubscriberStore
from fleet_notifier.utils.health import HealthMonitor
from fleet_notifier.utils.logger import get_logger
from fleet_notifier.utils.rate_limiter import AsyncRateLimiter

logger = get_logger(__name__)


@dataclass
class BroadcastResult:
    """Outcome of one broadcast.

    Attributes:
        delivered: Chat ids that accepted the message.
        failed: (chat_id, error text) for every chat that did not.
    """

    delivered: list[int] = field(default_factory=list)
    failed: list[tuple[int, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.delivered) + len(self.failed)


class NotificationDispatcher:
    """Builds reports and fans them out to recipients.

    Attributes:
        telegram: Telegram transport wrapper.
        store: Subscriber store.
        stats: Statistics API client.
        report_config: Presentation settings for the formatter.
        allowed_chat_ids: Chats that always receive scheduled reports.
    """

    def __init__(
        self,
        telegram: TelegramNotifier,
        store: SubscriberStore,
        stats: StatsClient,
        report_config: ReportConfig,
        allowed_chat_ids: Iterable[int] = (),
        send_concurrency: int = 5,
        messages_per_second: int = 25,
        health: Optional[HealthMonitor] = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            telegram: Connected TelegramNotifier.
            store: Initialized SubscriberStore.
            stats: StatsClient for the statistics API.
            report_config: ReportConfig for message rendering.
            allowed_chat_ids: Allow-listed chats from the configuration.
            send_concurrency: Maximum sends in flight at once.
            messages_per_second: Global send pacing.
            health: Optional HealthMonitor to record outcomes in.
        """
        self.telegram = telegram
        self.store = store
        self.stats = stats
        self.report_config = report_config
        self.allowed_chat_ids = tuple(allowed_chat_ids)
        self.health = health
        self._concurrency = max(1, send_concurrency)
        self._limiter = AsyncRateLimiter(max_calls=messages_per_second, period_seconds=1.0)

    async def recipients(self) -> list[int]:
        """Allow-listed chats followed by subscribers, without duplicates."""
        subscribers = await self.store.load()
        result: list[int] = []
        for chat_id in (*self.allowed_chat_ids, *subscribers):
            if chat_id not in result:
                result.append(chat_id)
        return result

    async def build_report(
        self, period: str, now: Optional[datetime] = None,
    ) -> Optional[str]:
        """Fetch statistics for a period and render them.

        Args:
            period: Report period.
            now: Optional current time override.

        Returns:
            Message text, or None if no data could be fetched.
        """
        report = await self.stats.fetch(period)
        if report is None:
            if self.health:
                self.health.record_error("stats", f"no data for {period}")
            return None
        return format_report(report, self.report_config, period=period, now=now)

    async def broadcast(
        self,
        text: str,
        recipients: Optional[Iterable[int]] = None,
    ) -> BroadcastResult:
        """Send one message to every recipient.

        Args:
            text: Message text (Markdown).
            recipients: Chat ids; defaults to recipients().

        Returns:
            BroadcastResult with delivered and failed chats.
        """
        targets = list(recipients) if recipients is not None else await self.recipients()
        result = BroadcastResult()
        if not targets:
            logger.warning("Broadcast skipped: no recipients")
            return result

        logger.info("Broadcasting to %d recipients", len(targets))
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _deliver(chat_id: int) -> Optional[str]:
            async with semaphore:
                await self._limiter.acquire()
                try:
                    await self.telegram.send(chat_id, text)
                except Exception as e:
                    logger.error("Failed to deliver to chat %s: %s", chat_id, e)
                    return str(e) or type(e).__name__
                logger.debug("Delivered to chat %s", chat_id)
                return None

        outcomes = await asyncio.gather(
            *(_deliver(chat_id) for chat_id in targets),
            return_exceptions=True,
        )

        for chat_id, outcome in zip(targets, outcomes):
            if outcome is None:
                result.delivered.append(chat_id)
            elif isinstance(outcome, BaseException):
                logger.error("Failed to deliver to chat %s: %s", chat_id, outcome)
                result.failed.append((chat_id, str(outcome)))
            else:
                result.failed.append((chat_id, outcome))

        if result.failed:
            logger.info(
                "Broadcast finished: %d/%d delivered, failed chats: %s",
                len(result.delivered), result.total,
                ", ".join(str(c) for c, _ in result.failed),
            )
            if self.health:
                self.health.record_error(
                    "telegram", f"{len(result.failed)} of {result.total} sends failed",
                )
        else:
            logger.info("Broadcast finished: %d/%d delivered", len(result.delivered), result.total)
        return result

    async def send_scheduled_report(self, period: str) -> Optional[BroadcastResult]:
        """Fetch, format and broadcast one scheduled report.

        A fetch failure ends the firing: nothing is sent and nothing
        is retried within the slot.

        Args:
            period: Report period.

        Returns:
            The BroadcastResult, or None if there was no data.
        """
        logger.info("Preparing scheduled %s report", period)
        text = await self.build_report(period)
        if text is None:
            logger.error("No data for scheduled %s report, skipping broadcast", period)
            if self.health:
                self.health.record_report(period, fetched=False)
            return None

        result = await self.broadcast(text)
        if self.health:
            self.health.record_report(
                period, fetched=True,
                delivered=len(result.delivered), failed=len(result.failed),
            )
        return result
