"""Outbound messaging gateway contract and the mock-mode gateway."""

from __future__ import annotations

import asyncio
import logging
import random
import re
import string
from typing import Any, Protocol

from pydantic import Field

from flowline.schemas.base import StrictSchemaModel
from flowline.timeutils import Clock, now_millis

LOGGER = logging.getLogger(__name__)

_PHONE_NOISE = re.compile(r"[\s+\-]")
_PREVIEW_CHARS = 100


class DeliveryReceipt(StrictSchemaModel):
    """Acknowledgement returned by a gateway for one outbound message."""

    message_id: str = Field(min_length=1)
    recipient: str
    provider: str
    raw: dict[str, Any] = Field(default_factory=dict)


class MessagingGateway(Protocol):
    """Send a text message to a phone number; raise on failure."""

    async def send(self, phone: str, text: str) -> DeliveryReceipt:
        """Deliver ``text`` to ``phone``."""


def normalize_phone(phone: str) -> str:
    """Strip spaces, '+' and '-' from a phone number."""
    return _PHONE_NOISE.sub("", phone)


class MockGateway:
    """Logs messages instead of sending them; keeps a record of every call."""

    def __init__(self, *, latency_seconds: float = 0.0, clock: Clock = now_millis) -> None:
        self.latency_seconds = latency_seconds
        self.sent: list[tuple[str, str]] = []
        self._clock = clock

    async def send(self, phone: str, text: str) -> DeliveryReceipt:
        recipient = normalize_phone(phone)
        preview = text[:_PREVIEW_CHARS] + ("..." if len(text) > _PREVIEW_CHARS else "")
        LOGGER.info("[mock] sending message to %s: %r", recipient, preview)
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)
        self.sent.append((recipient, text))
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        message_id = f"mock_{self._clock()}_{suffix}"
        return DeliveryReceipt(
            message_id=message_id,
            recipient=recipient,
            provider="mock",
            raw={
                "messaging_product": "whatsapp",
                "contacts": [{"wa_id": recipient}],
                "messages": [{"id": message_id}],
            },
        )
