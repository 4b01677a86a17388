"""Fleet Notifier — Main Orchestrator.

Ties all components together: config, subscriber store, statistics
client, Telegram bot (polling + commands), report scheduler and the
liveness endpoint.

Runs on a schedule with APScheduler:
  - Report jobs at the fixed times from settings.yaml
  - Self-ping of the liveness endpoint (when a public URL is set)

Usage:
    python -m fleet_notifier.main
    python scripts/run.py
"""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Optional

from telegram.error import InvalidToken, TelegramError
from telegram.ext import Application

from fleet_notifier.config import AppConfig, load_config
from fleet_notifier.errors import PersistenceError
from fleet_notifier.notifier.commands import CommandRouter
from fleet_notifier.notifier.dispatcher import NotificationDispatcher
from fleet_notifier.notifier.telegram_bot import TelegramNotifier
from fleet_notifier.scheduler import ReportScheduler
from fleet_notifier.stats.client import StatsClient
from fleet_notifier.storage import SubscriberStore, create_store
from fleet_notifier.utils.health import HealthMonitor
from fleet_notifier.utils.liveness import LivenessServer
from fleet_notifier.utils.logger import get_logger, set_console_level

logger = get_logger(__name__)

# ── Constants ─────────────────────────────────────────────
_TELEGRAM_CONNECT_RETRY_SECONDS = 30


class FleetNotifier:
    """Main application orchestrator.

    Attributes:
        config: Full application configuration.
        health: HealthMonitor shared with the dispatcher and liveness server.
    """

    def __init__(self, config: AppConfig) -> None:
        """Initialize with a loaded configuration. Call start() to run."""
        self.config = config
        self.health = HealthMonitor()

        self._store: Optional[SubscriberStore] = None
        self._stats: Optional[StatsClient] = None
        self._tg_app: Optional[Application] = None
        self._scheduler: Optional[ReportScheduler] = None
        self._liveness: Optional[LivenessServer] = None
        self._polling = False
        self._running = False

    async def start(self) -> None:
        """Full application startup sequence, then keep-alive loop.

        1. Subscriber store
        2. Components (stats client, Telegram, dispatcher, commands)
        3. Liveness endpoint
        4. Telegram polling
        5. Scheduler
        """
        self._running = True
        config = self.config

        try:
            # ── 1. Storage ───────────────────────────────
            logger.info("═══ Initializing subscriber store ═══")
            self._store = create_store(config.storage)
            try:
                await self._store.initialize()
            except PersistenceError as e:
                logger.error("Subscriber store initialization failed: %s", e)
                self.health.record_error("storage", str(e))

            # ── 2. Components ────────────────────────────
            logger.info("═══ Initializing components ═══")
            self._stats = StatsClient(config.stats_api)
            self._tg_app = Application.builder().token(config.telegram.bot_token).build()
            telegram = TelegramNotifier(self._tg_app.bot)

            dispatcher = NotificationDispatcher(
                telegram,
                self._store,
                self._stats,
                config.report,
                allowed_chat_ids=config.telegram.allowed_chat_ids,
                send_concurrency=config.telegram.send_concurrency,
                messages_per_second=config.telegram.messages_per_second,
                health=self.health,
            )
            router = CommandRouter(
                dispatcher,
                self._store,
                telegram,
                admin_only_chat_id=config.telegram.admin_only_chat_id,
            )
            router.register(self._tg_app)

            # ── 3. Liveness ──────────────────────────────
            if config.liveness.enabled:
                await self._start_liveness()

            # ── 4. Telegram ──────────────────────────────
            logger.info("═══ Connecting to Telegram ═══")
            if not await self._connect_telegram():
                return
            await telegram.initialize()
            await self._tg_app.start()
            await self._tg_app.updater.start_polling()
            self._polling = True
            logger.info("Polling for commands")

            # ── 5. Scheduler ─────────────────────────────
            logger.info("═══ Setting up scheduler ═══")
            self._scheduler = ReportScheduler(
                config.schedule,
                config.report.tz,
                dispatcher.send_scheduled_report,
            )
            if self._liveness and self._liveness.public_url:
                self._scheduler.add_interval_job(
                    self._liveness.self_ping,
                    minutes=config.liveness.self_ping_minutes,
                    job_id="self_ping",
                )
            self._scheduler.start()

            # ── 6. Keep alive ────────────────────────────
            logger.info("═══ Entering main loop ═══")
            while self._running:
                await asyncio.sleep(1)

        except InvalidToken as e:
            logger.critical("Telegram rejected the bot token: %s", e)
        finally:
            await self.shutdown()

    async def _start_liveness(self) -> None:
        """Start the liveness endpoint. A bind failure leaves it disabled."""
        server = LivenessServer(
            self.health,
            self.config.report.tz,
            port=self.config.liveness.port,
            public_url=self.config.liveness.public_url,
        )
        try:
            await server.start()
        except OSError as e:
            logger.error(
                "Liveness server could not start on port %d: %s",
                self.config.liveness.port, e,
            )
            self.health.record_error("liveness", str(e))
            await server.stop()
            self._liveness = None
            return
        self._liveness = server

    async def _connect_telegram(self) -> bool:
        """Initialize the Telegram Application, retrying on network errors.

        Returns:
            True once connected, False if shutdown was requested first.

        Raises:
            InvalidToken: If the token itself is rejected.
        """
        while self._running:
            try:
                await self._tg_app.initialize()
                return True
            except InvalidToken:
                raise
            except TelegramError as e:
                logger.error(
                    "Telegram initialization failed: %s. Retrying in %ds",
                    e, _TELEGRAM_CONNECT_RETRY_SECONDS,
                )
                self.health.record_error("telegram", str(e))
                await asyncio.sleep(_TELEGRAM_CONNECT_RETRY_SECONDS)
        return False

    def stop(self) -> None:
        """Request shutdown from a signal handler."""
        self._running = False

    async def shutdown(self) -> None:
        """Graceful shutdown: stop polling, scheduler, servers and clients."""
        logger.info("═══ Shutting down ═══")
        self._running = False

        if self._scheduler:
            self._scheduler.shutdown()

        if self._tg_app:
            try:
                if self._polling:
                    await self._tg_app.updater.stop()
                    await self._tg_app.stop()
                    self._polling = False
                await self._tg_app.shutdown()
            except (TelegramError, RuntimeError) as e:
                logger.warning("Error stopping Telegram application: %s", e)

        if self._liveness:
            await self._liveness.stop()

        if self._stats:
            await self._stats.close()

        if self._store:
            await self._store.close()

        logger.info("Shutdown complete")


def main() -> None:
    """Application entry point."""
    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as e:
        logger.critical("Cannot start: %s", e)
        sys.exit(1)

    set_console_level(config.log_level)
    app = FleetNotifier(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _signal_handler(sig, frame):
        logger.info("Signal %s received, shutting down...", sig)
        app.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()


if __name__ == "__main__":
    main()
