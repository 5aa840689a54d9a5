"""
Store Factory — pick the message store backend at wiring time.

    database:
      store_backend: "memory"   # in-process list, seeded with dev messages
      store_backend: "sql"      # messages table behind database.url

DB_DSN in the environment implies "sql" (see config.settings).

Usage:
    from database.store_factory import create_store, get_store
    store = create_store({"store_backend": "sql"})
    store = get_store()
"""
from __future__ import annotations

import structlog
from typing import Optional

from database.store_base import BaseMessageStore

logger = structlog.get_logger()

STORE_BACKENDS = ("memory", "sql")

_instance: Optional[BaseMessageStore] = None


def create_store(config: dict = None) -> BaseMessageStore:
    """
    Build the store once per process; later calls return the same instance.

    Raises ValueError for a backend name other than "memory" or "sql".
    """
    global _instance
    if _instance is not None:
        return _instance

    backend = (config or {}).get("store_backend", "memory")
    if backend not in STORE_BACKENDS:
        raise ValueError(f"unknown store_backend {backend!r}, expected one of {STORE_BACKENDS}")

    if backend == "sql":
        from database.store import SqlMessageStore
        _instance = SqlMessageStore()
    else:
        from database.store_memory import InMemoryMessageStore
        _instance = InMemoryMessageStore()

    logger.info("store_created", backend=backend)
    return _instance


def get_store() -> BaseMessageStore:
    """The process store; an in-memory one if nothing was configured."""
    return _instance if _instance is not None else create_store()


def reset_store() -> None:
    """Forget the process store (tests)."""
    global _instance
    _instance = None
