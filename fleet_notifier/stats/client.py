"""Fleet Notifier — Statistics API Client.

Async HTTP client for the fleet statistics API, built on
httpx.AsyncClient. Fetches the leaderboard for a period together with
the bonus figures the report needs, issuing the requests concurrently
and joining all of them before deciding.

There is no retry and no caching: every call goes to origin. Any
non-success status or malformed body makes the whole fetch fail, and
the caller only ever sees None.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import httpx

from fleet_notifier.config import StatsApiConfig
from fleet_notifier.errors import FleetNotifierError, ParseError, TransportError
from fleet_notifier.stats.models import DAILY_PERIODS, PERIODS, WEEK, StatsReport
from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)

_MAX_LOGGED_BODY = 2000

# ── Endpoint paths (relative to base_url) ────────────────
TOP_LIST_PATH = "/top/money/{period}"
WEEKLY_BONUS_PATH = "/top/money/week"
MONTHLY_BONUS_PATH = "/monthlybonus"


def _clip(body: str) -> str:
    """Shorten a body for logging."""
    if len(body) <= _MAX_LOGGED_BODY:
        return body
    return body[:_MAX_LOGGED_BODY] + f"... [{len(body)} chars]"


class StatsClient:
    """Fetches and merges leaderboard data from the statistics API.

    Attributes:
        config: StatsApiConfig with base_url and timeout.
        total_requests: Count of requests issued this session.
    """

    def __init__(
        self,
        config: StatsApiConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: StatsApiConfig from the app configuration.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self.config = config
        self.total_requests: int = 0
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers={"Accept": "application/json"},
                follow_redirects=True,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def fetch(self, period: str) -> Optional[StatsReport]:
        """Fetch the report data for a period.

        Daily periods ("today", "yesterday") take the day's top list and
        attach the weekly bonus sum and the monthly bonus. "week" takes
        the week's top list, which carries its own weekly bonus sum, and
        attaches the monthly bonus.

        Args:
            period: One of "today", "yesterday", "week".

        Returns:
            A StatsReport, or None if any required request failed.
        """
        if period not in PERIODS:
            logger.error("Unknown stats period requested: %r", period)
            return None

        paths = [TOP_LIST_PATH.format(period=period), MONTHLY_BONUS_PATH]
        if period in DAILY_PERIODS:
            paths.append(WEEKLY_BONUS_PATH)

        logger.info("Fetching %s stats (%d requests)", period, len(paths))
        results = await asyncio.gather(
            *(self._get_json(path) for path in paths),
            return_exceptions=True,
        )

        failed = False
        for path, result in zip(paths, results):
            if isinstance(result, BaseException):
                failed = True
                self._log_failure(path, result)
        if failed:
            logger.error("No %s stats: at least one request failed", period)
            return None

        top_payload, monthly_payload = results[0], results[1]
        try:
            report = StatsReport.from_payload(period, top_payload)
        except ValueError as e:
            logger.error(
                "Unexpected top-list shape for %s: %s. Body: %s",
                period, e, _clip(json.dumps(top_payload, ensure_ascii=False)),
            )
            return None

        report.monthly_bonus = _field(monthly_payload, "monthlyBonus")
        if period != WEEK:
            report.weekly_bonus_sum = _field(results[2], "weeklyBonusSum")

        logger.info(
            "Fetched %s stats: %d drivers, weekly bonus=%s, monthly bonus=%s",
            period, len(report.top_list),
            report.weekly_bonus_sum, report.monthly_bonus,
        )
        return report

    async def _get_json(self, path: str) -> Any:
        """GET a path and decode its JSON body.

        The body is read as text first so it can be logged verbatim
        when decoding fails.

        Raises:
            TransportError: On network failure or non-2xx status.
            ParseError: If the body is not valid JSON.
        """
        client = await self._get_client()
        url = f"{self.config.base_url}{path}"
        self.total_requests += 1

        try:
            resp = await client.get(path)
        except httpx.HTTPError as e:
            raise TransportError(url, f"{type(e).__name__}: {e}") from e

        body = resp.text
        logger.debug("GET %s → %d (%d bytes)", url, resp.status_code, len(body))

        if not resp.is_success:
            raise TransportError(
                url, f"HTTP {resp.status_code}",
                status_code=resp.status_code, body=body,
            )

        try:
            return json.loads(body)
        except ValueError as e:
            raise ParseError(url, f"invalid JSON: {e}", body=body) from e

    @staticmethod
    def _log_failure(path: str, error: BaseException) -> None:
        """Log one failed request, including the raw body when we have one."""
        if isinstance(error, ParseError):
            logger.error("Failed to parse JSON from %s. Body: %s", path, _clip(error.body))
        elif isinstance(error, TransportError):
            if error.status_code is not None:
                logger.error(
                    "HTTP %d from %s. Body: %s",
                    error.status_code, path, _clip(error.body),
                )
            else:
                logger.error("Request to %s failed: %s", path, error)
        elif isinstance(error, FleetNotifierError):
            logger.error("Request to %s failed: %s", path, error)
        else:
            logger.error(
                "Unexpected error fetching %s: %s: %s",
                path, type(error).__name__, error,
            )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Stats client closed (total requests: %d)", self.total_requests)

    async def __aenter__(self) -> "StatsClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


def _field(payload: Any, key: str) -> Any:
    """Read a bonus field from a bonus endpoint body.

    Bonus endpoints answer with an object; a bare scalar is taken as
    the value itself.
    """
    if isinstance(payload, dict):
        return payload.get(key)
    if isinstance(payload, (int, float, str)):
        return payload
    return None
