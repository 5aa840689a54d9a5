"""
SqlMessageStore — Portable SQL queries for PostgreSQL, MySQL, SQLite.

Status updates are single UPDATE statements; a zero rowcount means the
message id does not exist.
"""
from __future__ import annotations

import structlog
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update

from database.models import MessageRow
from database.session import get_session
from database.store_base import BaseMessageStore, MessageNotFoundError
from models.schemas import Message, MessageStatus, utcnow

logger = structlog.get_logger()


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo on the way back; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlMessageStore(BaseMessageStore):
    """
    Persistent message store backed by any SQLAlchemy-supported database.
    Works with PostgreSQL, MySQL 8+, and SQLite.
    """

    async def add_message(
        self, recipient: str, content: str, created_at: Optional[datetime] = None,
    ) -> Message:
        async with get_session() as db:
            now = utcnow()
            row = MessageRow(
                recipient=recipient,
                content=content,
                status=MessageStatus.PENDING.value,
                created_at=created_at or now,
                updated_at=now,
            )
            db.add(row)
            await db.flush()
            return self._row_to_message(row)

    async def get_message(self, message_id: str) -> Optional[Message]:
        async with get_session() as db:
            row = await db.get(MessageRow, message_id)
            return self._row_to_message(row) if row else None

    # ── Store contract ────────────────────────────────────

    async def get_pending_messages(self, limit: int) -> list[Message]:
        async with get_session() as db:
            stmt = (
                select(MessageRow)
                .where(MessageRow.status == MessageStatus.PENDING.value)
                .order_by(MessageRow.created_at.asc(), MessageRow.id.asc())
                .limit(max(limit, 0))
            )
            result = await db.execute(stmt)
            return [self._row_to_message(r) for r in result.scalars()]

    async def mark_as_sent(self, message_id: str, external_id: str, sent_at: datetime) -> None:
        async with get_session() as db:
            stmt = (
                update(MessageRow)
                .where(MessageRow.id == message_id)
                .values(
                    status=MessageStatus.SENT.value,
                    external_message_id=external_id,
                    sent_at=sent_at,
                    error_text=None,
                    updated_at=utcnow(),
                )
            )
            result = await db.execute(stmt)
            if result.rowcount == 0:
                raise MessageNotFoundError(message_id)

    async def mark_as_failed(self, message_id: str, error: str) -> None:
        async with get_session() as db:
            stmt = (
                update(MessageRow)
                .where(MessageRow.id == message_id)
                .values(
                    status=MessageStatus.FAILED.value,
                    error_text=error,
                    updated_at=utcnow(),
                )
            )
            result = await db.execute(stmt)
            if result.rowcount == 0:
                raise MessageNotFoundError(message_id)

    async def list_sent_messages(self, limit: int, offset: int = 0) -> list[Message]:
        async with get_session() as db:
            stmt = (
                select(MessageRow)
                .where(MessageRow.status == MessageStatus.SENT.value)
                .order_by(MessageRow.sent_at.desc())
                .limit(max(limit, 0))
                .offset(max(offset, 0))
            )
            result = await db.execute(stmt)
            return [self._row_to_message(r) for r in result.scalars()]

    # ── Row mapping ───────────────────────────────────────

    @staticmethod
    def _row_to_message(row: MessageRow) -> Message:
        return Message(
            id=row.id,
            recipient=row.recipient,
            content=row.content,
            status=MessageStatus(row.status),
            external_message_id=row.external_message_id,
            sent_at=_aware(row.sent_at),
            error=row.error_text,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at),
        )
