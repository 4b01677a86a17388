"""Fleet Notifier — Subscriber Store.

Durable set of chat ids that receive scheduled reports.

Every backend implements the same small interface (initialize, load,
save, close); subscribe/unsubscribe are built on top of load/save and
shared. There is no in-memory cache: each mutation re-reads the backing
store first, so external edits and restarts are picked up.

Failure policy:
  - load() never raises; unreadable state is logged as a warning and
    treated as an empty set.
  - save() never raises; a failed write is logged and returns False,
    leaving the previously persisted state untouched. subscribe and
    unsubscribe then report SAVE_FAILED.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable

from fleet_notifier.errors import PersistenceError
from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# ── Mutation results ──────────────────────────────────────
SUBSCRIBED = "subscribed"
ALREADY_SUBSCRIBED = "already_subscribed"
UNSUBSCRIBED = "unsubscribed"
NOT_SUBSCRIBED = "not_subscribed"
SAVE_FAILED = "save_failed"


def normalize_ids(values: Iterable[Any]) -> list[int]:
    """Coerce stored ids to ints, dropping invalid entries and duplicates.

    Args:
        values: Raw ids (ints, or numeric strings from hand-edited files).

    Returns:
        Unique integer ids in first-seen order.
    """
    ids: list[int] = []
    for value in values:
        if isinstance(value, bool):
            logger.warning("Ignoring invalid subscriber id: %r", value)
            continue
        try:
            chat_id = int(value)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid subscriber id: %r", value)
            continue
        if chat_id not in ids:
            ids.append(chat_id)
    return ids


class SubscriberStore:
    """Shared subscribe/unsubscribe logic over a load/save backend.

    Subclasses provide initialize(), load(), save() and close().
    """

    async def initialize(self) -> None:
        """Prepare the backing store before first use."""

    async def load(self) -> list[int]:
        """Return the current subscribers (empty on any read failure)."""
        raise NotImplementedError

    async def save(self, subscribers: list[int]) -> bool:
        """Persist the full subscriber list. Returns False on failure."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release any resources held by the backend."""

    async def subscribe(self, chat_id: int) -> str:
        """Add a chat to the subscriber set.

        Args:
            chat_id: Chat to add.

        Returns:
            SUBSCRIBED, ALREADY_SUBSCRIBED if it was present, or
            SAVE_FAILED if the new set could not be written.
        """
        subscribers = await self.load()
        if chat_id in subscribers:
            logger.info("Chat %d is already subscribed", chat_id)
            return ALREADY_SUBSCRIBED

        subscribers.append(chat_id)
        if not await self.save(subscribers):
            logger.error("Chat %d not subscribed: subscriber list not saved", chat_id)
            return SAVE_FAILED
        logger.info("Chat %d subscribed (%d total)", chat_id, len(subscribers))
        return SUBSCRIBED

    async def unsubscribe(self, chat_id: int) -> str:
        """Remove a chat from the subscriber set.

        Args:
            chat_id: Chat to remove.

        Returns:
            UNSUBSCRIBED, NOT_SUBSCRIBED if it was absent, or SAVE_FAILED
            if the new set could not be written.
        """
        subscribers = await self.load()
        if chat_id not in subscribers:
            logger.info("Chat %d was not subscribed", chat_id)
            return NOT_SUBSCRIBED

        remaining = [s for s in subscribers if s != chat_id]
        if not await self.save(remaining):
            logger.error("Chat %d not unsubscribed: subscriber list not saved", chat_id)
            return SAVE_FAILED
        logger.info("Chat %d unsubscribed (%d left)", chat_id, len(remaining))
        return UNSUBSCRIBED


class JsonSubscriberStore(SubscriberStore):
    """Subscribers kept in a JSON document: {"subscribers": [...]}.

    Writes go to a temporary file in the same directory which is then
    renamed over the target, so readers see either the old or the new
    document, never a partial one.

    Attributes:
        path: Resolved path of the JSON document.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the store.

        Args:
            path: Location of the JSON file. Parent directories are
                  created on initialize().
        """
        self.path = Path(path).resolve()

    async def initialize(self) -> None:
        """Create the directory and an empty document if absent.

        Raises:
            PersistenceError: If the document cannot be created. Startup
                treats this like any other persistence failure.
        """
        if self.path.exists():
            logger.info("Subscriber file: %s", self.path)
            return

        logger.info("Creating subscriber file: %s", self.path)
        await asyncio.to_thread(self._write, [])

    async def load(self) -> list[int]:
        try:
            return await asyncio.to_thread(self._read)
        except PersistenceError as e:
            logger.warning("Could not load subscribers, using empty set: %s", e)
            return []

    async def save(self, subscribers: list[int]) -> bool:
        try:
            await asyncio.to_thread(self._write, subscribers)
            return True
        except PersistenceError as e:
            logger.error("Could not save subscribers: %s", e)
            return False

    def _read(self) -> list[int]:
        """Read and validate the document.

        Raises:
            PersistenceError: On I/O errors, invalid JSON, or wrong shape.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise PersistenceError(f"{self.path} does not exist") from None
        except (OSError, ValueError) as e:
            raise PersistenceError(f"{self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("subscribers"), list):
            raise PersistenceError(f"{self.path}: expected {{\"subscribers\": [...]}}")

        return normalize_ids(data["subscribers"])

    def _write(self, subscribers: list[int]) -> None:
        """Atomically replace the document.

        Raises:
            PersistenceError: If any step fails; the old file is untouched.
        """
        payload = json.dumps({"subscribers": normalize_ids(subscribers)}, indent=2)
        tmp_path: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=".subscribers-", suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise PersistenceError(f"{self.path}: {e}") from e
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.debug("Could not remove temp file %s", tmp_path)
