"""WhatsApp Cloud API gateway."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from flowline.config.models import AppConfig
from flowline.errors import GatewayError, GatewayUnavailableError
from flowline.gateway.base import DeliveryReceipt, MessagingGateway, MockGateway, normalize_phone
from flowline.resilience.retry import RetryExecutor, RetryPolicy
from flowline.schemas.enums import GatewayProvider

LOGGER = logging.getLogger(__name__)


class WhatsAppCloudGateway:
    """Sends text messages through the WhatsApp Cloud API."""

    def __init__(
        self,
        *,
        api_url: str,
        phone_number_id: str,
        access_token: str,
        retry_executor: RetryExecutor,
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = f"{api_url.rstrip('/')}/{phone_number_id}/messages"
        self.timeout_seconds = timeout_seconds
        self._access_token = access_token
        self._retry = retry_executor
        self._client = client

    async def send(self, phone: str, text: str) -> DeliveryReceipt:
        recipient = normalize_phone(phone)
        payload = {
            "messaging_product": "whatsapp",
            "to": recipient,
            "type": "text",
            "text": {"body": text},
        }
        try:
            data = await self._retry.run(
                lambda: self._post(payload),
                stage_name="whatsapp-send",
            )
        except GatewayError:
            raise
        except RuntimeError as exc:
            raise GatewayError(str(exc)) from exc

        messages = data.get("messages") or []
        message_id = messages[0].get("id") if messages and isinstance(messages[0], dict) else None
        if not message_id:
            raise GatewayError("WhatsApp API response did not include a message id")
        return DeliveryReceipt(
            message_id=str(message_id),
            recipient=recipient,
            provider="whatsapp",
            raw=data,
        )

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        if self._client is not None:
            response = await self._client.post(
                self.endpoint, json=payload, headers=headers, timeout=self.timeout_seconds
            )
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.endpoint, json=payload, headers=headers, timeout=self.timeout_seconds
                )
        return _handle_response(response)


def _handle_response(response: httpx.Response) -> dict[str, Any]:
    if response.status_code == 429 or response.status_code >= 500:
        raise GatewayUnavailableError(
            f"WhatsApp API unavailable (HTTP {response.status_code}): {_error_detail(response)}"
        )
    if response.status_code >= 400:
        raise GatewayError(_error_detail(response))
    try:
        data = response.json()
    except ValueError as exc:
        raise GatewayError("WhatsApp API returned a non-JSON response") from exc
    if not isinstance(data, dict):
        raise GatewayError("WhatsApp API returned an unexpected payload")
    return data


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or "Failed to send message"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return "Failed to send message"


def create_gateway(
    config: AppConfig,
    env: Mapping[str, str],
    *,
    client: httpx.AsyncClient | None = None,
) -> MessagingGateway:
    """Build the configured gateway, falling back to mock mode without credentials."""
    gateway_config = config.gateway
    if gateway_config.provider == GatewayProvider.MOCK:
        return MockGateway()

    access_token = env.get(gateway_config.access_token_env)
    if not access_token or not gateway_config.phone_number_id:
        LOGGER.warning(
            "WhatsApp gateway running in mock mode; set %s and "
            "WHATSAPP_PHONE_NUMBER_ID to enable real messaging",
            gateway_config.access_token_env,
        )
        return MockGateway()

    retry_executor = RetryExecutor(
        RetryPolicy(
            max_attempts=config.retries.max_attempts,
            backoff_seconds=config.retries.backoff_seconds,
            jitter_seconds=config.retries.jitter_seconds,
        ),
        retry_on=(httpx.TransportError, TimeoutError, GatewayUnavailableError),
    )
    return WhatsAppCloudGateway(
        api_url=gateway_config.api_url,
        phone_number_id=gateway_config.phone_number_id,
        access_token=access_token,
        retry_executor=retry_executor,
        timeout_seconds=gateway_config.timeout_seconds,
        client=client,
    )
