"""
Delivery — shared types for outbound message delivery.

Provides:
- DeliveryError: structured error hierarchy (status, transport, protocol)
- DeliveryResult: what a successful delivery hands back to the dispatcher
- DeliveryClient: abstract base every delivery backend implements
"""
from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Optional

from models.schemas import Message


# ══════════════════════════════════════════════════════════════
#  ERRORS
# ══════════════════════════════════════════════════════════════

class DeliveryError(Exception):
    """Base exception for all delivery failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class UnexpectedStatusError(DeliveryError):
    def __init__(self, status_code: int):
        super().__init__(f"unexpected status code {status_code}", status_code=status_code)


class DeliveryTransportError(DeliveryError):
    """Connection refused, DNS failure, timeout and friends."""


class MalformedResponseError(DeliveryError):
    """The endpoint accepted the message but the body could not be decoded."""


# ══════════════════════════════════════════════════════════════
#  RESULT & CLIENT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DeliveryResult:
    external_id: str
    response_message: str = ""
    generated_id: bool = False      # True when the endpoint gave no usable id


class DeliveryClient(abc.ABC):
    """Abstract base for delivery backends."""

    @abc.abstractmethod
    async def deliver(self, message: Message) -> DeliveryResult:
        """Deliver one message. Raises DeliveryError on any failure."""
        ...

    async def close(self) -> None:
        """Release network resources."""
