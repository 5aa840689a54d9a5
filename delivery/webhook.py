"""
Webhook Delivery Client — POSTs messages to the configured endpoint.

Request:
    POST <webhook_url>
    Content-Type: application/json
    x-ins-auth-key: <auth_key>          (only when configured)
    {"to": "+905551111111", "content": "Insider - Project 1"}

Expected response:
    202 Accepted
    {"message": "Accepted", "messageId": "67f2f8a8-ea58-4ed0-a6f9-ff217df4d849"}

Anything else is a delivery failure. There are no retries here: a failed
message stays failed.
"""
from __future__ import annotations

import uuid
import structlog
from typing import Any, Optional

import httpx

from config.settings import DeliveryConfig
from delivery.base import (
    DeliveryClient, DeliveryResult,
    DeliveryTransportError, MalformedResponseError, UnexpectedStatusError,
)
from models.schemas import Message

logger = structlog.get_logger()


class WebhookDeliveryClient(DeliveryClient):
    """
    HTTP delivery backend.

    Some endpoints (webhook.site free tier) answer every request with the
    same placeholder messageId; that value, or a missing id, is replaced
    with a locally generated uuid so external ids stay unique.
    """

    def __init__(
        self,
        config: DeliveryConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not config.webhook_url:
            raise ValueError("webhook_url is required for WebhookDeliveryClient")
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.config.auth_key:
                headers[self.config.auth_header] = self.config.auth_key

            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def deliver(self, message: Message) -> DeliveryResult:
        client = await self._get_client()
        payload = {"to": message.recipient, "content": message.content}

        try:
            response = await client.post(self.config.webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise DeliveryTransportError(f"{e.__class__.__name__}: {e}") from e

        if response.status_code != self.config.accepted_status:
            raise UnexpectedStatusError(response.status_code)

        body = self._decode(response)
        remote_id = body.get("messageId") or ""
        usable = bool(remote_id) and remote_id != self.config.placeholder_message_id
        external_id = remote_id if usable else str(uuid.uuid4())

        logger.info("webhook_delivered",
                    message_id=message.id,
                    external_id=external_id,
                    generated_id=not usable)
        return DeliveryResult(
            external_id=external_id,
            response_message=str(body.get("message") or ""),
            generated_id=not usable,
        )

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"invalid JSON body: {e}", response.status_code) from e
        if not isinstance(body, dict):
            raise MalformedResponseError("response body is not a JSON object", response.status_code)
        message_id = body.get("messageId")
        if message_id is not None and not isinstance(message_id, str):
            raise MalformedResponseError("messageId is not a string", response.status_code)
        return body

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None


def create_delivery_client(config: DeliveryConfig) -> Optional[DeliveryClient]:
    """Webhook client when an endpoint is configured, otherwise None (dry-run)."""
    if not config.webhook_url:
        logger.info("delivery_dry_run", reason="webhook_url not set")
        return None
    logger.info("delivery_client_created", url=config.webhook_url)
    return WebhookDeliveryClient(config)
