"""
Abstract Message Store — Interface for all storage backends.

Implementations:
  - SqlMessageStore      (PostgreSQL / MySQL / SQLite via SQLAlchemy)
  - InMemoryMessageStore (list-based, single-process, no persistence)

The dispatch service only ever calls the four methods below. Creating
messages (seeding, imports) is backend-specific and lives on the concrete
classes.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from models.schemas import Message


class MessageNotFoundError(LookupError):
    """Raised when a status update targets a message that does not exist."""

    def __init__(self, message_id: str):
        self.message_id = message_id
        super().__init__(f"message {message_id} not found")


class BaseMessageStore(ABC):
    """Interface that all message store backends must implement."""

    @abstractmethod
    async def get_pending_messages(self, limit: int) -> list[Message]:
        """Up to `limit` pending messages, oldest created_at first."""
        ...

    @abstractmethod
    async def mark_as_sent(self, message_id: str, external_id: str, sent_at: datetime) -> None:
        """Raises MessageNotFoundError if the id is unknown."""
        ...

    @abstractmethod
    async def mark_as_failed(self, message_id: str, error: str) -> None:
        """Raises MessageNotFoundError if the id is unknown."""
        ...

    @abstractmethod
    async def list_sent_messages(self, limit: int, offset: int = 0) -> list[Message]:
        """Sent messages, newest sent_at first."""
        ...
