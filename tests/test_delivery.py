"""Tests for the webhook delivery client (httpx.MockTransport, no network)."""
import json

import httpx
import pytest

from config.settings import DeliveryConfig
from delivery.base import (
    DeliveryError, DeliveryTransportError, MalformedResponseError, UnexpectedStatusError,
)
from delivery.webhook import WebhookDeliveryClient, create_delivery_client
from models.schemas import Message

WEBHOOK_URL = "https://webhook.example.test/hook"


def _config(**overrides) -> DeliveryConfig:
    values = {"webhook_url": WEBHOOK_URL, "auth_key": "secret-key"}
    values.update(overrides)
    return DeliveryConfig(**values)


def _client(handler, **overrides) -> WebhookDeliveryClient:
    return WebhookDeliveryClient(_config(**overrides), transport=httpx.MockTransport(handler))


def _accepted(message_id="67f2f8a8-ea58-4ed0-a6f9-ff217df4d849"):
    body = {"message": "Accepted"}
    if message_id is not None:
        body["messageId"] = message_id
    return lambda request: httpx.Response(202, json=body)


@pytest.fixture
def message() -> Message:
    return Message(recipient="+905551111111", content="Insider - Project 1")


class TestSuccessfulDelivery:

    @pytest.mark.asyncio
    async def test_returns_remote_message_id(self, message):
        client = _client(_accepted())
        result = await client.deliver(message)
        assert result.external_id == "67f2f8a8-ea58-4ed0-a6f9-ff217df4d849"
        assert result.response_message == "Accepted"
        assert result.generated_id is False
        await client.close()

    @pytest.mark.asyncio
    async def test_request_shape(self, message):
        seen = {}

        def handler(request: httpx.Request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(202, json={"message": "Accepted", "messageId": "abc"})

        client = _client(handler)
        await client.deliver(message)
        await client.close()

        assert seen["method"] == "POST"
        assert seen["url"] == WEBHOOK_URL
        assert seen["body"] == {"to": "+905551111111", "content": "Insider - Project 1"}
        assert seen["headers"]["content-type"] == "application/json"
        assert seen["headers"]["x-ins-auth-key"] == "secret-key"

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self, message):
        seen = {}

        def handler(request: httpx.Request):
            seen["headers"] = request.headers
            return httpx.Response(202, json={"messageId": "abc"})

        client = _client(handler, auth_key="")
        await client.deliver(message)
        await client.close()
        assert "x-ins-auth-key" not in seen["headers"]

    @pytest.mark.asyncio
    async def test_placeholder_id_is_replaced(self, message):
        client = _client(_accepted("static"))
        first = await client.deliver(message)
        second = await client.deliver(message)
        await client.close()

        assert first.external_id != "static"
        assert first.generated_id is True
        assert first.external_id != second.external_id

    @pytest.mark.asyncio
    async def test_missing_id_is_generated(self, message):
        client = _client(_accepted(None))
        result = await client.deliver(message)
        await client.close()
        assert result.external_id
        assert result.generated_id is True

    @pytest.mark.asyncio
    async def test_custom_placeholder(self, message):
        client = _client(_accepted("fixed"), placeholder_message_id="fixed")
        result = await client.deliver(message)
        await client.close()
        assert result.external_id != "fixed"


class TestFailedDelivery:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [200, 400, 500, 503])
    async def test_non_accepted_status(self, message, status):
        client = _client(lambda request: httpx.Response(status, json={"messageId": "x"}))
        with pytest.raises(UnexpectedStatusError) as exc_info:
            await client.deliver(message)
        await client.close()

        assert exc_info.value.status_code == status
        assert str(exc_info.value) == f"unexpected status code {status}"
        assert isinstance(exc_info.value, DeliveryError)

    @pytest.mark.asyncio
    async def test_invalid_json(self, message):
        client = _client(lambda request: httpx.Response(202, content=b"not json"))
        with pytest.raises(MalformedResponseError):
            await client.deliver(message)
        await client.close()

    @pytest.mark.asyncio
    async def test_non_object_body(self, message):
        client = _client(lambda request: httpx.Response(202, json=["a", "b"]))
        with pytest.raises(MalformedResponseError):
            await client.deliver(message)
        await client.close()

    @pytest.mark.asyncio
    async def test_non_string_message_id(self, message):
        client = _client(lambda request: httpx.Response(202, json={"messageId": 42}))
        with pytest.raises(MalformedResponseError):
            await client.deliver(message)
        await client.close()

    @pytest.mark.asyncio
    async def test_connection_error(self, message):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(handler)
        with pytest.raises(DeliveryTransportError) as exc_info:
            await client.deliver(message)
        await client.close()
        assert "ConnectError" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self, message):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = _client(handler)
        with pytest.raises(DeliveryTransportError):
            await client.deliver(message)
        await client.close()


class TestClientLifecycle:

    def test_requires_url(self):
        with pytest.raises(ValueError):
            WebhookDeliveryClient(DeliveryConfig())

    @pytest.mark.asyncio
    async def test_timeout_configured(self):
        client = _client(_accepted())
        http = await client._get_client()
        assert http.timeout.read == 5.0
        assert http.timeout.connect == 5.0
        await client.close()

    @pytest.mark.asyncio
    async def test_client_reused_and_recreated_after_close(self):
        client = _client(_accepted())
        first = await client._get_client()
        assert await client._get_client() is first
        await client.close()
        assert first.is_closed
        assert await client._get_client() is not first
        await client.close()

    def test_factory_dry_run_without_url(self):
        assert create_delivery_client(DeliveryConfig()) is None

    def test_factory_webhook_with_url(self):
        assert isinstance(create_delivery_client(_config()), WebhookDeliveryClient)
