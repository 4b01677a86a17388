"""Fleet Notifier — Subscriber Store Tests.

Covers both backends: idempotent subscribe/unsubscribe, persistence
across store instances, first-run file creation, and tolerance of a
corrupt or unwritable document.

Run: python scripts/test_subscribers.py
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import tempfile
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fleet_notifier.config import StorageConfig
from fleet_notifier.storage import (
    ALREADY_SUBSCRIBED,
    NOT_SUBSCRIBED,
    SAVE_FAILED,
    SUBSCRIBED,
    UNSUBSCRIBED,
    JsonSubscriberStore,
    SqliteSubscriberStore,
    create_store,
)
from fleet_notifier.utils.logger import get_logger

logger = get_logger(__name__)

_passed = 0
_failed = 0


def check(label: str, condition: bool) -> None:
    """Track test pass/fail; raise so pytest sees the failure too."""
    global _passed, _failed
    if condition:
        _passed += 1
        logger.info("    ✅ %s", label)
    else:
        _failed += 1
        logger.error("    ❌ FAILED: %s", label)
        raise AssertionError(label)


class _Capture(logging.Handler):
    """Collects records emitted on a logger."""

    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def at(self, level: int) -> list[str]:
        return [r.getMessage() for r in self.records if r.levelno == level]


def _capture(name: str) -> _Capture:
    handler = _Capture()
    logging.getLogger(name).addHandler(handler)
    return handler


def _release(name: str, handler: _Capture) -> None:
    logging.getLogger(name).removeHandler(handler)


# ═══════════════════════════════════════════════════════
# JSON store
# ═══════════════════════════════════════════════════════

def test_first_run_creates_document() -> None:
    logger.info("═══ First run ═══")

    async def scenario(tmp: Path) -> None:
        path = tmp / "nested" / "deeper" / "subscribers.json"
        store = JsonSubscriberStore(path)
        await store.initialize()
        check("Nested directories created", path.parent.is_dir())
        with open(path, encoding="utf-8") as f:
            check("Empty document written", json.load(f) == {"subscribers": []})
        check("Loads as empty", await store.load() == [])

    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(scenario(Path(tmp)))


def test_subscribe_is_idempotent() -> None:
    logger.info("═══ Idempotent subscribe ═══")

    async def scenario(tmp: Path) -> None:
        store = JsonSubscriberStore(tmp / "subscribers.json")
        await store.initialize()

        check("First subscribe", await store.subscribe(42) == SUBSCRIBED)
        check("Second subscribe", await store.subscribe(42) == ALREADY_SUBSCRIBED)
        check("Third subscribe", await store.subscribe(42) == ALREADY_SUBSCRIBED)
        check("Stored exactly once", await store.load() == [42])

    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(scenario(Path(tmp)))


def test_unsubscribe() -> None:
    logger.info("═══ Unsubscribe ═══")

    async def scenario(tmp: Path) -> None:
        store = JsonSubscriberStore(tmp / "subscribers.json")
        await store.initialize()
        await store.subscribe(1)
        await store.subscribe(-100200300)

        check("Absent chat reports not subscribed", await store.unsubscribe(7) == NOT_SUBSCRIBED)
        check("Set unchanged", await store.load() == [1, -100200300])
        check("Present chat removed", await store.unsubscribe(1) == UNSUBSCRIBED)
        check("Only the other chat remains", await store.load() == [-100200300])

    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(scenario(Path(tmp)))


def test_persists_across_instances() -> None:
    logger.info("═══ Save/load across restarts ═══")

    async def scenario(tmp: Path) -> None:
        path = tmp / "subscribers.json"
        first = JsonSubscriberStore(path)
        await first.initialize()
        ids = [5, -1001, 77]
        check("Save succeeds", await first.save(ids) is True)

        second = JsonSubscriberStore(path)
        await second.initialize()
        check("Same set after restart", set(await second.load()) == set(ids))
        leftovers = [p.name for p in tmp.iterdir() if p.name.endswith(".tmp")]
        check("No temp files left behind", leftovers == [])

    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(scenario(Path(tmp)))


def test_corrupt_document_loads_empty() -> None:
    logger.info("═══ Corrupt document ═══")
    name = "fleet_notifier.storage.subscribers"

    async def scenario(tmp: Path) -> None:
        path = tmp / "subscribers.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonSubscriberStore(path)

        capture = _capture(name)
        try:
            check("Corrupt JSON loads as empty", await store.load() == [])
            check("Warning logged", len(capture.at(logging.WARNING)) == 1)
        finally:
            _release(name, capture)

        path.write_text('{"chats": [1, 2]}', encoding="utf-8")
        check("Wrong shape loads as empty", await store.load() == [])

        path.write_text('{"subscribers": [1, "2", "x", 1]}', encoding="utf-8")
        check("Ids normalized and deduplicated", await store.load() == [1, 2])

        check("Subscribe still works after corruption", await store.subscribe(9) == SUBSCRIBED)
        check("Recovered document", await store.load() == [1, 2, 9])

    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(scenario(Path(tmp)))


def test_failed_write_is_reported() -> None:
    logger.info("═══ Failed write ═══")
    name = "fleet_notifier.storage.subscribers"

    async def scenario(tmp: Path) -> None:
        # A directory where the file should be makes the rename fail
        target = tmp / "subscribers.json"
        target.mkdir()
        store = JsonSubscriberStore(target)

        capture = _capture(name)
        try:
            check("save() returns False", await store.save([1]) is False)
            check("Error logged", len(capture.at(logging.ERROR)) == 1)
            check("Subscribe reports SAVE_FAILED", await store.subscribe(1) == SAVE_FAILED)
        finally:
            _release(name, capture)

        check("Target left untouched", target.is_dir())
        leftovers = [p.name for p in tmp.iterdir() if p.name.endswith(".tmp")]
        check("Temp file cleaned up", leftovers == [])

    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(scenario(Path(tmp)))


class _UnwritableStore(JsonSubscriberStore):
    """Reads a fixed subscriber list; every write fails."""

    def __init__(self, subscribers: list[int]) -> None:
        super().__init__(Path("unused.json"))
        self._subscribers = subscribers

    async def load(self) -> list[int]:
        return list(self._subscribers)

    async def save(self, subscribers: list[int]) -> bool:
        return False


def test_failed_write_is_not_reported_as_success() -> None:
    logger.info("═══ Mutation with failed write ═══")
    store = _UnwritableStore([1])

    check("Subscribe reports the failure", asyncio.run(store.subscribe(2)) == SAVE_FAILED)
    check("Unsubscribe reports the failure", asyncio.run(store.unsubscribe(1)) == SAVE_FAILED)
    check("Already subscribed needs no write", asyncio.run(store.subscribe(1)) == ALREADY_SUBSCRIBED)
    check("Absent chat needs no write", asyncio.run(store.unsubscribe(3)) == NOT_SUBSCRIBED)


# ═══════════════════════════════════════════════════════
# SQLite store
# ═══════════════════════════════════════════════════════

def test_sqlite_store() -> None:
    logger.info("═══ SQLite store ═══")

    async def scenario(tmp: Path) -> None:
        path = tmp / "db" / "subscribers.db"
        store = SqliteSubscriberStore(path)
        await store.initialize()
        try:
            check("Database file created", path.exists())
            check("Starts empty", await store.load() == [])
            check("Subscribe", await store.subscribe(10) == SUBSCRIBED)
            check("Subscribe again", await store.subscribe(10) == ALREADY_SUBSCRIBED)
            check("Second chat", await store.subscribe(-20) == SUBSCRIBED)
            check("Order kept", await store.load() == [10, -20])
            check("Unsubscribe absent", await store.unsubscribe(99) == NOT_SUBSCRIBED)
            check("Unsubscribe present", await store.unsubscribe(10) == UNSUBSCRIBED)
        finally:
            await store.close()

        reopened = SqliteSubscriberStore(path)
        await reopened.initialize()
        try:
            check("Persisted across connections", await reopened.load() == [-20])
        finally:
            await reopened.close()
        await reopened.close()

    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(scenario(Path(tmp)))


def test_create_store_selects_backend() -> None:
    logger.info("═══ Backend selection ═══")
    json_store = create_store(StorageConfig(backend="json", path="data/x.json"))
    sqlite_store = create_store(StorageConfig(backend="sqlite", path="data/x.db"))
    check("json → JsonSubscriberStore", isinstance(json_store, JsonSubscriberStore))
    check("sqlite → SqliteSubscriberStore", isinstance(sqlite_store, SqliteSubscriberStore))


TESTS = [
    test_first_run_creates_document,
    test_subscribe_is_idempotent,
    test_unsubscribe,
    test_persists_across_instances,
    test_corrupt_document_loads_empty,
    test_failed_write_is_reported,
    test_failed_write_is_not_reported_as_success,
    test_sqlite_store,
    test_create_store_selects_backend,
]


def main() -> None:
    """Run all subscriber store tests."""
    logger.info("╔══════════════════════════════════════════════════════╗")
    logger.info("║  Fleet Notifier — Subscriber Store Tests            ║")
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
    logger.info("🎉 All subscriber store tests passed!")


if __name__ == "__main__":
    main()
