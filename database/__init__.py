"""
Database layer — Multi-backend message persistence.

Backends:
  - SQL (PostgreSQL / MySQL / SQLite via SQLAlchemy async)
  - In-memory (list-based, for development/testing)

Quick start:
  from database import create_store
  store = create_store({"store_backend": "memory"})
  batch = await store.get_pending_messages(2)
"""
from database.models import Base, MessageRow
from database.session import get_engine, get_session, init_db, close_db
from database.store_base import BaseMessageStore, MessageNotFoundError
from database.store import SqlMessageStore
from database.store_memory import InMemoryMessageStore, seed_dummy_messages
from database.store_factory import create_store, get_store, reset_store

__all__ = [
    # ORM models
    "Base", "MessageRow",
    # Session management
    "get_engine", "get_session", "init_db", "close_db",
    # Store interface
    "BaseMessageStore", "MessageNotFoundError",
    # Store backends
    "SqlMessageStore", "InMemoryMessageStore", "seed_dummy_messages",
    # Factory
    "create_store", "get_store", "reset_store",
]
