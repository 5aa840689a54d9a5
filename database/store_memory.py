"""
InMemoryMessageStore — List-backed store for development and testing.

Features:
  - Zero dependencies (no database)
  - Same interface as SqlMessageStore
  - Every operation serialized by a single asyncio.Lock
  - All data lost on process restart

Best for: local development, unit tests, quick prototyping.
"""
from __future__ import annotations

import asyncio
import structlog
from datetime import datetime
from typing import Optional

from database.store_base import BaseMessageStore, MessageNotFoundError
from models.schemas import Message, MessageStatus, utcnow

logger = structlog.get_logger()

DUMMY_MESSAGES = [
    ("+905551111111", "Insider - Project 1"),
    ("+905552222222", "Insider - Project 2"),
    ("+905553333333", "Another test message"),
]


class InMemoryMessageStore(BaseMessageStore):
    """
    Full-featured in-memory store with the same interface as SqlMessageStore.
    Returns copies, so callers never mutate stored state directly.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._messages: list[Message] = []          # insertion order
        self._index: dict[str, int] = {}            # id → position
        logger.info("inmemory_store_initialized")

    async def add_message(
        self, recipient: str, content: str, created_at: Optional[datetime] = None,
    ) -> Message:
        async with self._lock:
            now = utcnow()
            msg = Message(
                recipient=recipient,
                content=content,
                created_at=created_at or now,
                updated_at=now,
            )
            self._index[msg.id] = len(self._messages)
            self._messages.append(msg)
            return msg.model_copy()

    async def get_message(self, message_id: str) -> Optional[Message]:
        async with self._lock:
            pos = self._index.get(message_id)
            return self._messages[pos].model_copy() if pos is not None else None

    # ── Store contract ────────────────────────────────────

    async def get_pending_messages(self, limit: int) -> list[Message]:
        async with self._lock:
            pending = [
                (m.created_at, pos, m) for pos, m in enumerate(self._messages)
                if m.status == MessageStatus.PENDING
            ]
            pending.sort(key=lambda item: (item[0], item[1]))
            return [m.model_copy() for _, _, m in pending[:max(limit, 0)]]

    async def mark_as_sent(self, message_id: str, external_id: str, sent_at: datetime) -> None:
        async with self._lock:
            pos = self._require(message_id)
            current = self._messages[pos]
            self._messages[pos] = current.model_copy(update={
                "status": MessageStatus.SENT,
                "external_message_id": external_id,
                "sent_at": sent_at,
                "error": None,
                "updated_at": utcnow(),
            })

    async def mark_as_failed(self, message_id: str, error: str) -> None:
        async with self._lock:
            pos = self._require(message_id)
            current = self._messages[pos]
            self._messages[pos] = current.model_copy(update={
                "status": MessageStatus.FAILED,
                "external_message_id": None,
                "sent_at": None,
                "error": error,
                "updated_at": utcnow(),
            })

    async def list_sent_messages(self, limit: int, offset: int = 0) -> list[Message]:
        async with self._lock:
            sent = [m for m in self._messages if m.status == MessageStatus.SENT]
            sent.sort(key=lambda m: m.sent_at, reverse=True)
            offset = max(offset, 0)
            if offset >= len(sent):
                return []
            return [m.model_copy() for m in sent[offset:offset + max(limit, 0)]]

    # ── Helpers ───────────────────────────────────────────

    def _require(self, message_id: str) -> int:
        pos = self._index.get(message_id)
        if pos is None:
            raise MessageNotFoundError(message_id)
        return pos


async def seed_dummy_messages(store: InMemoryMessageStore) -> list[Message]:
    """Seed a few pending messages for dev runs without a database."""
    seeded = [await store.add_message(recipient, content) for recipient, content in DUMMY_MESSAGES]
    logger.info("dummy_messages_seeded", count=len(seeded))
    return seeded
