"""Outbound messaging gateways."""

from flowline.gateway.base import DeliveryReceipt, MessagingGateway, MockGateway, normalize_phone
from flowline.gateway.whatsapp import WhatsAppCloudGateway, create_gateway

__all__ = [
    "DeliveryReceipt",
    "MessagingGateway",
    "MockGateway",
    "WhatsAppCloudGateway",
    "create_gateway",
    "normalize_phone",
]
