"""Shared test fixtures for Auto Sender."""
import asyncio
import uuid
from datetime import datetime, timezone
from typing import Optional

import pytest
import pytest_asyncio

from delivery.base import DeliveryClient, DeliveryError, DeliveryResult
from models.schemas import Message


class RecordingDelivery(DeliveryClient):
    """Delivery client that succeeds and remembers what it was asked to send."""

    def __init__(self, delay: float = 0.0, external_id: Optional[str] = None):
        self.delay = delay
        self.external_id = external_id
        self.delivered: list[Message] = []
        self.active = 0
        self.max_active = 0

    async def deliver(self, message: Message) -> DeliveryResult:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.delivered.append(message)
            return DeliveryResult(external_id=self.external_id or f"ext-{uuid.uuid4().hex[:8]}")
        finally:
            self.active -= 1


class FailingDelivery(DeliveryClient):
    """Delivery client that always raises the given error."""

    def __init__(self, error: Exception = None):
        self.error = error or DeliveryError("connection refused")
        self.calls = 0

    async def deliver(self, message: Message) -> DeliveryResult:
        self.calls += 1
        raise self.error


@pytest.fixture
def base_time() -> datetime:
    return datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def memory_store():
    from database.store_memory import InMemoryMessageStore
    return InMemoryMessageStore()


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    """SqlMessageStore on a throwaway SQLite file."""
    from database import session
    from database.store import SqlMessageStore

    await session.close_db()
    session.get_engine(f"sqlite:///{tmp_path / 'auto_sender_test.db'}")
    await session.init_db()
    yield SqlMessageStore()
    await session.close_db()


@pytest.fixture
def recording_delivery() -> RecordingDelivery:
    return RecordingDelivery()


@pytest.fixture
def failing_delivery() -> FailingDelivery:
    return FailingDelivery()

