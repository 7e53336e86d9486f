"""
Notification Dispatcher

Fire-and-forget delivery of appointment lifecycle events to a webhook.
Message composition and SMS/email delivery happen on the receiving side.

Delivery runs in a background task; failures are logged and never reach
the booking that triggered them.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from agenda.config import get_settings

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Posts ``{"event", "occurredAt", "data"}`` JSON to a webhook."""

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 5.0):
        """Initialize dispatcher.

        Args:
            webhook_url: Receiver URL; when None events are only logged
            timeout: Request timeout in seconds
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None
        self._pending: set[asyncio.Task] = set()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def dispatch(self, event: str, payload: dict[str, Any]) -> Optional[asyncio.Task]:
        """Schedule delivery of an event and return immediately.

        Returns:
            The delivery task, or None when no webhook is configured
        """
        if not self.webhook_url:
            logger.debug(f"Notification skipped (no webhook) | Event: {event}")
            return None

        task = asyncio.get_running_loop().create_task(self._deliver(event, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, event: str, payload: dict[str, Any]) -> bool:
        body = {
            "event": event,
            "occurredAt": datetime.now(timezone.utc).isoformat(),
            "data": payload,
        }
        try:
            client = await self._get_client()
            response = await client.post(self.webhook_url, json=body)
            response.raise_for_status()
            logger.debug(f"Notification delivered | Event: {event}")
            return True
        except httpx.HTTPError as e:
            logger.warning(f"Notification delivery failed | Event: {event} | Error: {e}")
            return False

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Finish pending deliveries and close the HTTP client."""
        await self.drain()
        if self._client:
            await self._client.aclose()
            self._client = None


# Singleton
_dispatcher: Optional[NotificationDispatcher] = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """Get or create the notification dispatcher singleton."""
    global _dispatcher
    if _dispatcher is None:
        settings = get_settings()
        _dispatcher = NotificationDispatcher(
            webhook_url=settings.notification_webhook_url,
            timeout=settings.notification_timeout,
        )
    return _dispatcher
