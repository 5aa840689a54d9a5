from delivery.base import (
    DeliveryClient,
    DeliveryError,
    DeliveryResult,
    DeliveryTransportError,
    MalformedResponseError,
    UnexpectedStatusError,
)
from delivery.webhook import WebhookDeliveryClient, create_delivery_client

__all__ = [
    "DeliveryClient", "DeliveryError", "DeliveryResult",
    "DeliveryTransportError", "MalformedResponseError", "UnexpectedStatusError",
    "WebhookDeliveryClient", "create_delivery_client",
]
