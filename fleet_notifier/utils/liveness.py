"""Fleet Notifier — Liveness Endpoint.

Minimal HTTP responder for external uptime checks, plus an optional
self-ping that keeps free-tier hosts from idling the process.

Routes:
  GET /        — plain "Бот работает!"
  GET /health  — {"status": "ok", "timestamp": ..., **HealthMonitor status}
  GET /time    — report-timezone, UTC and server clock
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import httpx
from aiohttp import web

from fleet_notifier.utils.health import HealthMonitor
from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)


class LivenessServer:
    """aiohttp web server exposing health information.

    Attributes:
        port: TCP port to listen on.
        public_url: External URL used for self-ping, or "".
    """

    def __init__(
        self,
        health: HealthMonitor,
        report_tz: ZoneInfo,
        port: int,
        public_url: str = "",
        host: str = "0.0.0.0",
    ) -> None:
        self.health = health
        self.report_tz = report_tz
        self.port = port
        self.public_url = public_url
        self.host = host
        self._runner: Optional[web.AppRunner] = None

    def build_app(self) -> web.Application:
        """Create the aiohttp application with all routes."""
        app = web.Application()
        app.router.add_get("/", self._handle_root)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/time", self._handle_time)
        return app

    async def start(self) -> None:
        """Start listening."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Liveness server listening on port %d", self.port)

    async def stop(self) -> None:
        """Stop the server. Safe to call twice."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Liveness server stopped")

    async def self_ping(self) -> None:
        """GET our own /health through the public URL; failures are only logged."""
        if not self.public_url:
            return
        url = f"{self.public_url}/health"
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(30)) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                logger.debug("Self-ping ok: %s", resp.json().get("timestamp"))
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Self-ping to %s failed: %s", url, e)

    # ── Handlers ─────────────────────────────────────────

    async def _handle_root(self, request: web.Request) -> web.Response:
        logger.debug("GET /")
        return web.Response(text="Бот работает!")

    async def _handle_health(self, request: web.Request) -> web.Response:
        logger.debug("GET /health")
        return web.json_response({
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **self.health.get_status(),
        })

    async def _handle_time(self, request: web.Request) -> web.Response:
        now = datetime.now(timezone.utc)
        return web.json_response({
            "report": now.astimezone(self.report_tz).strftime("%Y-%m-%d %H:%M:%S"),
            "report_timezone": self.report_tz.key,
            "utc": now.strftime("%Y-%m-%d %H:%M:%S"),
            "server": datetime.now().astimezone().isoformat(),
        })
