"""Fleet Notifier — Configuration Loader.

Loads and validates application configuration from a YAML file.
Resolves environment variables referenced via ${VAR_NAME} syntax,
with ${VAR_NAME:-default} for optional values.
Uses Python dataclasses for type-safe configuration access.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from fleet_notifier.scheduler import ScheduleEntry
from fleet_notifier.stats.models import PERIODS
from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# ── Path Constants ────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
SETTINGS_PATH = CONFIG_DIR / "settings.yaml"

# ── Environment Variable Pattern ─────────────────────────
# ${NAME} or ${NAME:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?}")

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
_STORAGE_BACKENDS = ("json", "sqlite")


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TelegramConfig:
    """Configuration for the Telegram bot."""

    bot_token: str
    allowed_chat_ids: tuple[int, ...]
    admin_only_chat_id: Optional[int]
    send_concurrency: int
    messages_per_second: int


@dataclass(frozen=True)
class StatsApiConfig:
    """Configuration for the remote statistics API."""

    base_url: str
    timeout_seconds: float


@dataclass(frozen=True)
class ReportConfig:
    """Presentation settings for report messages."""

    timezone: str
    park_names: tuple[str, ...]
    contact: str

    @property
    def tz(self) -> ZoneInfo:
        """The report timezone as a ZoneInfo."""
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class StorageConfig:
    """Where subscribers are persisted."""

    backend: str
    path: str


@dataclass(frozen=True)
class LivenessConfig:
    """Settings for the uptime endpoint and self-ping."""

    enabled: bool
    port: int
    public_url: str
    self_ping_minutes: int


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration container."""

    telegram: TelegramConfig
    stats_api: StatsApiConfig
    report: ReportConfig
    storage: StorageConfig
    liveness: LivenessConfig
    schedule: tuple[ScheduleEntry, ...]
    log_level: str


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all placeholders replaced.

    Raises:
        ValueError: If a referenced variable without a default is not set.
    """
    if isinstance(value, str):
        def _replace(match: re.Match[str]) -> str:
            var_name, default = match.group(1), match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            raise ValueError(
                f"Environment variable '${{{var_name}}}' is required but not set. "
                f"Add it to your .env file or export it in your shell."
            )

        return ENV_VAR_PATTERN.sub(_replace, value)
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file with UTF-8 encoding.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        ValueError: If the file is empty.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if data is None:
        raise ValueError(f"Configuration file is empty: {path}")

    logger.debug("Loaded configuration from %s", path)
    return data


def _validate_keys(data: dict[str, Any], required: list[str], section: str) -> None:
    """Validate that all required keys exist in a config section.

    Raises:
        ValueError: If any required key is missing.
    """
    missing = [key for key in required if key not in data]
    if missing:
        raise ValueError(
            f"Missing required configuration keys in '{section}': {', '.join(missing)}"
        )


def _parse_chat_ids(value: Any) -> tuple[int, ...]:
    """Parse chat ids from a list or a comma-separated string.

    Args:
        value: e.g. "-100123, 456" or [-100123, 456] or None.

    Returns:
        Tuple of integer chat ids, duplicates removed, order kept.

    Raises:
        ValueError: If an entry is not an integer.
    """
    if value is None or value == "":
        return ()
    items = value.split(",") if isinstance(value, str) else list(value)

    ids: list[int] = []
    for item in items:
        text = str(item).strip()
        if not text:
            continue
        try:
            chat_id = int(text)
        except ValueError:
            raise ValueError(f"Invalid chat id in configuration: {text!r}") from None
        if chat_id not in ids:
            ids.append(chat_id)
    return tuple(ids)


def _optional_int(value: Any) -> Optional[int]:
    if value is None or str(value).strip() == "":
        return None
    return int(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_telegram_config(data: dict[str, Any]) -> TelegramConfig:
    """Build a TelegramConfig from the 'telegram' section."""
    _validate_keys(data, ["bot_token"], "telegram")

    token = str(data["bot_token"]).strip()
    if not token:
        raise ValueError("telegram.bot_token is empty")

    return TelegramConfig(
        bot_token=token,
        allowed_chat_ids=_parse_chat_ids(data.get("allowed_chat_ids")),
        admin_only_chat_id=_optional_int(data.get("admin_only_chat_id")),
        send_concurrency=max(1, int(data.get("send_concurrency", 5))),
        messages_per_second=max(1, int(data.get("messages_per_second", 25))),
    )


def _build_stats_api_config(data: dict[str, Any]) -> StatsApiConfig:
    """Build a StatsApiConfig from the 'stats_api' section."""
    _validate_keys(data, ["base_url"], "stats_api")

    return StatsApiConfig(
        base_url=str(data["base_url"]).rstrip("/"),
        timeout_seconds=float(data.get("timeout_seconds", 30)),
    )


def _build_report_config(data: dict[str, Any]) -> ReportConfig:
    """Build a ReportConfig from the 'report' section.

    Raises:
        ValueError: If the timezone is unknown.
    """
    _validate_keys(data, ["timezone", "park_names", "contact"], "report")

    timezone = str(data["timezone"])
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone in report.timezone: {timezone}") from None

    return ReportConfig(
        timezone=timezone,
        park_names=tuple(str(p) for p in data["park_names"]),
        contact=str(data["contact"]),
    )


def _build_storage_config(data: dict[str, Any]) -> StorageConfig:
    """Build a StorageConfig from the 'storage' section."""
    _validate_keys(data, ["path"], "storage")

    backend = str(data.get("backend", "json")).lower()
    if backend not in _STORAGE_BACKENDS:
        raise ValueError(
            f"storage.backend must be one of {', '.join(_STORAGE_BACKENDS)}, got {backend!r}"
        )
    return StorageConfig(backend=backend, path=str(data["path"]))


def _build_liveness_config(data: dict[str, Any]) -> LivenessConfig:
    """Build a LivenessConfig from the optional 'liveness' section."""
    return LivenessConfig(
        enabled=_as_bool(data.get("enabled", False)),
        port=int(data.get("port", 3000)),
        public_url=str(data.get("public_url") or "").rstrip("/"),
        self_ping_minutes=max(1, int(data.get("self_ping_minutes", 2))),
    )


def _build_schedule(items: list[dict[str, Any]]) -> tuple[ScheduleEntry, ...]:
    """Build the immutable schedule table.

    Args:
        items: List of {time: "HH:MM", period: "today"} mappings.

    Returns:
        Tuple of ScheduleEntry, sorted by time of day.

    Raises:
        ValueError: On malformed times or unknown periods.
    """
    if not isinstance(items, list):
        raise ValueError("'schedule' must be a list of {time, period} entries")

    entries: list[ScheduleEntry] = []
    for item in items:
        _validate_keys(item, ["time", "period"], "schedule")
        match = _TIME_PATTERN.match(str(item["time"]).strip())
        if not match:
            raise ValueError(f"Invalid schedule time (expected HH:MM): {item['time']!r}")

        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError(f"Schedule time out of range: {item['time']!r}")

        period = str(item["period"])
        if period not in PERIODS:
            raise ValueError(
                f"Unknown schedule period {period!r} (expected one of {', '.join(PERIODS)})"
            )

        entry = ScheduleEntry(hour=hour, minute=minute, period=period)
        if entry in entries:
            logger.warning("Duplicate schedule entry ignored: %s", entry.label)
            continue
        entries.append(entry)

    return tuple(sorted(entries, key=lambda e: (e.hour, e.minute, e.period)))


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def load_config(
    settings_path: Path | None = None,
    env_path: Path | None = None,
) -> AppConfig:
    """Load the complete application configuration.

    Args:
        settings_path: Override path to settings.yaml. Defaults to config/settings.yaml.
        env_path: Override path to .env file. Defaults to project root .env.

    Returns:
        A fully validated AppConfig instance.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ValueError: If required fields are missing or env vars are unset.
    """
    env_file = env_path or (PROJECT_ROOT / ".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    raw_settings = _load_yaml(settings_path or SETTINGS_PATH)
    settings = _resolve_env_vars(raw_settings)

    _validate_keys(
        settings,
        ["telegram", "stats_api", "report", "storage", "schedule"],
        "settings",
    )

    config = AppConfig(
        telegram=_build_telegram_config(settings["telegram"]),
        stats_api=_build_stats_api_config(settings["stats_api"]),
        report=_build_report_config(settings["report"]),
        storage=_build_storage_config(settings["storage"]),
        liveness=_build_liveness_config(settings.get("liveness") or {}),
        schedule=_build_schedule(settings["schedule"]),
        log_level=str((settings.get("logging") or {}).get("level", "INFO")),
    )

    logger.info("Configuration loaded successfully")
    logger.debug("Stats API: %s", config.stats_api.base_url)
    logger.debug("Storage: %s (%s)", config.storage.path, config.storage.backend)
    logger.debug("Schedule: %s", ", ".join(e.label for e in config.schedule))
    logger.debug("Allow-listed chats: %d", len(config.telegram.allowed_chat_ids))

    return config
