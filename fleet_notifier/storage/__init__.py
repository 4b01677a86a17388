"""Fleet Notifier — Storage Package.

Subscriber persistence behind a load/save interface:
  - subscribers: shared subscribe/unsubscribe logic + JSON file store
  - db: SQLite store (aiosqlite)
"""

from __future__ import annotations

from fleet_notifier.config import StorageConfig
from fleet_notifier.storage.db import SqliteSubscriberStore
from fleet_notifier.storage.subscribers import (
    ALREADY_SUBSCRIBED,
    NOT_SUBSCRIBED,
    SAVE_FAILED,
    SUBSCRIBED,
    UNSUBSCRIBED,
    JsonSubscriberStore,
    SubscriberStore,
)


def create_store(config: StorageConfig) -> SubscriberStore:
    """Build the subscriber store selected in the configuration.

    Args:
        config: StorageConfig with backend and path.

    Returns:
        An uninitialized SubscriberStore.
    """
    if config.backend == "sqlite":
        return SqliteSubscriberStore(config.path)
    return JsonSubscriberStore(config.path)


__all__ = [
    "ALREADY_SUBSCRIBED",
    "NOT_SUBSCRIBED",
    "SAVE_FAILED",
    "SUBSCRIBED",
    "UNSUBSCRIBED",
    "JsonSubscriberStore",
    "SqliteSubscriberStore",
    "SubscriberStore",
    "create_store",
]
