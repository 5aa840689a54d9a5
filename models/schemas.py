"""
Core data models for the Auto Sender service.
These are the universal types shared across all modules.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


MAX_CONTENT_LENGTH = 160
CONTENT_TOO_LONG = "content too long"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    return uuid.uuid4().hex


# ──────────────────────────────────────────────────────────────
#  Enums
# ──────────────────────────────────────────────────────────────

class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class SchedulerAction(str, Enum):
    START = "start"
    STOP = "stop"


# ──────────────────────────────────────────────────────────────
#  Message
# ──────────────────────────────────────────────────────────────

class Message(BaseModel):
    """
    A queued outbound message.

    `external_message_id` and `sent_at` are present exactly when the
    message has been sent. Serialized with camelCase keys on the wire.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=new_message_id)
    recipient: str
    content: str
    status: MessageStatus = MessageStatus.PENDING
    external_message_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_sent_fields(self) -> "Message":
        is_sent = self.status == MessageStatus.SENT
        has_fields = self.external_message_id is not None and self.sent_at is not None
        if is_sent != has_fields:
            raise ValueError(
                "external_message_id and sent_at must be set if and only if status is 'sent'"
            )
        return self

    @property
    def content_length(self) -> int:
        """Length in UTF-8 bytes, the unit the 160 limit is counted in."""
        return len(self.content.encode("utf-8"))

    @property
    def content_too_long(self) -> bool:
        return self.content_length > MAX_CONTENT_LENGTH


# ──────────────────────────────────────────────────────────────
#  API payloads
# ──────────────────────────────────────────────────────────────

class SchedulerRequest(BaseModel):
    action: str = ""


class SchedulerResponse(BaseModel):
    status: str


class SchedulerState(BaseModel):
    running: bool


class DispatchReport(BaseModel):
    """Counts for one dispatch cycle."""
    fetched: int = 0
    sent: int = 0
    failed: int = 0
    errors: int = 0


class HealthResponse(BaseModel):
    status: str = "ok"
    app: str
    store_backend: str
    cache_enabled: bool
    dry_run: bool
    scheduler_running: bool
