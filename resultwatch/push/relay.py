"""Push relay implementation using the Expo push service."""

from typing import Protocol

import httpx

from ..config import PushConfig
from ..errors import DeliveryError
from ..logging_config import get_logger
from ..models import DeliveryResult

logger = get_logger(__name__)

INVALID_TOKEN = "invalid token"


class IPushRelay(Protocol):
    """Delivers a message to one device token."""

    async def deliver(
        self,
        token: str,
        title: str,
        body: str,
        data: dict | None = None,
    ) -> DeliveryResult:
        """Send one push. Never raises for delivery failures."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


def _mask(token: str) -> str:
    return f"{token[:10]}..." if token else "<empty>"


class ExpoPushRelay:
    """Sends pushes through Expo's HTTP API. Failures are reported, not retried."""

    def __init__(
        self,
        config: PushConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self._config = config or PushConfig()
        self._client = client or httpx.AsyncClient(timeout=self._config.timeout_seconds)

    def is_valid_token(self, token: str | None) -> bool:
        return bool(token) and token.startswith(self._config.token_prefix)

    async def deliver(
        self,
        token: str,
        title: str,
        body: str,
        data: dict | None = None,
    ) -> DeliveryResult:
        """Send one push to Expo."""
        if not self.is_valid_token(token):
            logger.warning("Rejected push token %s", _mask(token))
            return DeliveryResult(token=token, success=False, reason=INVALID_TOKEN)

        message = {
            "to": token,
            "sound": "default",
            "title": title,
            "body": body,
            "data": data or {},
            "priority": "high",
            "channelId": self._config.channel_id,
        }

        try:
            ticket = await self._send(message)
        except DeliveryError as e:
            logger.error("Push to %s failed: %s", _mask(token), e)
            return DeliveryResult(token=token, success=False, reason=str(e))

        logger.info("Push sent to %s", _mask(token))
        return DeliveryResult(token=token, success=True, ticket=ticket)

    async def _send(self, message: dict) -> dict:
        """POST one message and return its ticket. Raises DeliveryError."""
        try:
            response = await self._client.post(
                self._config.endpoint,
                json=message,
                headers={
                    "Accept": "application/json",
                    "Accept-Encoding": "gzip, deflate",
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise DeliveryError(f"Push service returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"Push service unreachable: {e}") from e
        except ValueError as e:
            raise DeliveryError("Push service returned invalid JSON") from e

        ticket = payload.get("data", payload) if isinstance(payload, dict) else {}
        if isinstance(ticket, list):
            ticket = ticket[0] if ticket else {}
        if ticket.get("status") == "error":
            raise DeliveryError(ticket.get("message") or "Push rejected by vendor")
        return ticket

    async def close(self) -> None:
        await self._client.aclose()
