"""
Dispatch Service — one bounded batch of pending-message delivery attempts.

Cycle:
    Store → fetch up to `limit` pending messages (oldest first)
    → per message: validate length → deliver → mark sent / failed
    → mirror sent messages to the side cache (best effort)

A failure on one message never stops the rest of the batch. Only the
initial fetch can fail the whole cycle.
"""
from __future__ import annotations

import uuid
import structlog
from typing import Optional

from cache.sent_cache import BaseSentMessageCache
from database.store_base import BaseMessageStore
from delivery.base import DeliveryClient, DeliveryResult
from models.schemas import (
    CONTENT_TOO_LONG, MAX_CONTENT_LENGTH,
    DispatchReport, Message, utcnow,
)

logger = structlog.get_logger()


class DispatchService:
    """
    Orchestrates store, delivery client and side cache for one cycle.

    With no delivery client configured the service runs in dry-run mode:
    every valid message is marked sent with a locally generated id and
    nothing leaves the process.
    """

    def __init__(
        self,
        store: BaseMessageStore,
        delivery: Optional[DeliveryClient] = None,
        cache: Optional[BaseSentMessageCache] = None,
    ):
        self.store = store
        self.delivery = delivery
        self.cache = cache

    @property
    def dry_run(self) -> bool:
        return self.delivery is None

    async def send_pending_messages(self, limit: int) -> DispatchReport:
        """
        Process up to `limit` pending messages.

        Fetch errors propagate; everything after the fetch is recorded on
        the message itself or logged.
        """
        report = DispatchReport()

        messages = await self.store.get_pending_messages(limit)
        report.fetched = len(messages)
        if not messages:
            logger.info("no_pending_messages")
            return report

        for message in messages:
            outcome = await self._process(message)
            if outcome == "sent":
                report.sent += 1
            elif outcome == "failed":
                report.failed += 1
            else:
                report.errors += 1

        logger.info("dispatch_cycle_complete", **report.model_dump())
        return report

    async def list_sent_messages(self, limit: int, offset: int = 0) -> list[Message]:
        return await self.store.list_sent_messages(limit, offset)

    # ── Per-message pipeline ──────────────────────────────

    async def _process(self, message: Message) -> str:
        if message.content_too_long:
            logger.warning("message_too_long",
                           message_id=message.id,
                           length=message.content_length,
                           max_length=MAX_CONTENT_LENGTH)
            return await self._mark_failed(message, CONTENT_TOO_LONG)

        try:
            result = await self._deliver(message)
        except Exception as e:
            logger.warning("message_send_failed",
                           message_id=message.id,
                           error=str(e),
                           error_type=e.__class__.__name__)
            return await self._mark_failed(message, str(e) or e.__class__.__name__)

        return await self._mark_sent(message, result)

    async def _deliver(self, message: Message) -> DeliveryResult:
        if self.delivery is None:
            logger.info("dry_run_delivery",
                        message_id=message.id,
                        to=message.recipient,
                        content=message.content)
            return DeliveryResult(external_id=str(uuid.uuid4()), generated_id=True)
        return await self.delivery.deliver(message)

    async def _mark_sent(self, message: Message, result: DeliveryResult) -> str:
        sent_at = utcnow()
        try:
            await self.store.mark_as_sent(message.id, result.external_id, sent_at)
        except Exception as e:
            # A message leaves pending exactly once; it is never picked up again.
            logger.error("mark_sent_failed",
                         message_id=message.id,
                         external_id=result.external_id,
                         error=str(e))
            return await self._mark_failed(message, str(e) or e.__class__.__name__)

        logger.info("message_sent",
                    message_id=message.id,
                    external_id=result.external_id,
                    dry_run=self.dry_run)

        if self.cache is not None:
            try:
                await self.cache.cache_sent_message(message.id, result.external_id, sent_at)
            except Exception as e:
                logger.warning("sent_cache_write_failed",
                               message_id=message.id,
                               error=str(e))
        return "sent"

    async def _mark_failed(self, message: Message, reason: str) -> str:
        try:
            await self.store.mark_as_failed(message.id, reason)
        except Exception as e:
            logger.error("mark_failed_failed",
                         message_id=message.id,
                         reason=reason,
                         error=str(e))
            return "error"
        return "failed"
