"""Fleet Notifier — SQLite Subscriber Store.

Alternative backing store for subscribers using aiosqlite. Selected
with ``storage.backend: sqlite``; callers see the same interface as
the JSON store.
"""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from fleet_notifier.storage.subscribers import SubscriberStore, normalize_ids
from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)

# ── Schema Definitions ────────────────────────────────────
SCHEMA_SQL = """
-- ═══ Subscribers Table ═══
-- One row per chat receiving scheduled reports.
CREATE TABLE IF NOT EXISTS subscribers (
    chat_id       INTEGER PRIMARY KEY,
    position      INTEGER NOT NULL,
    subscribed_at DATETIME DEFAULT (datetime('now', 'localtime'))
);
"""


class SqliteSubscriberStore(SubscriberStore):
    """Subscribers kept in a single SQLite table.

    save() replaces the whole table inside one transaction, so a reader
    never sees a half-written set.

    Attributes:
        db_path: Resolved absolute path to the SQLite database file.
    """

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the store.

        Args:
            db_path: Path to the SQLite file. Parent directories are
                     created on initialize().
        """
        self.db_path = Path(db_path).resolve()
        self._connection: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the connection and create the schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Connecting to subscriber database: %s", self.db_path)
        self._connection = await aiosqlite.connect(str(self.db_path))
        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.executescript(SCHEMA_SQL)
        await self._connection.commit()
        logger.info("Subscriber database ready")

    async def _get_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            await self.initialize()
        return self._connection

    async def load(self) -> list[int]:
        try:
            conn = await self._get_connection()
            async with conn.execute(
                "SELECT chat_id FROM subscribers ORDER BY position"
            ) as cursor:
                rows = await cursor.fetchall()
        except (aiosqlite.Error, OSError) as e:
            logger.warning("Could not load subscribers, using empty set: %s", e)
            return []
        return normalize_ids(row[0] for row in rows)

    async def save(self, subscribers: list[int]) -> bool:
        ids = normalize_ids(subscribers)
        try:
            conn = await self._get_connection()
            # DELETE opens the transaction implicitly
            try:
                await conn.execute("DELETE FROM subscribers")
                await conn.executemany(
                    "INSERT INTO subscribers (chat_id, position) VALUES (?, ?)",
                    [(chat_id, i) for i, chat_id in enumerate(ids)],
                )
            except aiosqlite.Error:
                await conn.rollback()
                raise
            await conn.commit()
            return True
        except (aiosqlite.Error, OSError) as e:
            logger.error("Could not save subscribers: %s", e)
            return False

    async def close(self) -> None:
        """Close the database connection. Safe to call twice."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("Subscriber database closed")
