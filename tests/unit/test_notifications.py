"""Tests for webhook notification delivery."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from agenda.infra.notifications import NotificationDispatcher


class TestNotificationDispatcher:
    """Test fire-and-forget webhook delivery."""

    @pytest.fixture
    def mock_client(self):
        """Create mock HTTP client."""
        response = MagicMock()
        response.raise_for_status = MagicMock()
        client = AsyncMock()
        client.post = AsyncMock(return_value=response)
        return client

    @pytest.mark.asyncio
    async def test_no_webhook_is_a_noop(self):
        dispatcher = NotificationDispatcher(webhook_url=None)
        assert dispatcher.dispatch("appointment.created", {"id": "1"}) is None

    @pytest.mark.asyncio
    async def test_delivers_event(self, mock_client):
        dispatcher = NotificationDispatcher(webhook_url="https://hooks.example.com/agenda")
        dispatcher._client = mock_client

        task = dispatcher.dispatch("appointment.created", {"id": "1"})
        assert await task is True

        args, kwargs = mock_client.post.call_args
        assert args[0] == "https://hooks.example.com/agenda"
        assert kwargs["json"]["event"] == "appointment.created"
        assert kwargs["json"]["data"] == {"id": "1"}
        assert "occurredAt" in kwargs["json"]

    @pytest.mark.asyncio
    async def test_http_error_is_logged_not_raised(self, mock_client):
        mock_client.post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        dispatcher = NotificationDispatcher(webhook_url="https://hooks.example.com/agenda")
        dispatcher._client = mock_client

        task = dispatcher.dispatch("appointment.cancelled", {"id": "1"})
        assert await task is False

    @pytest.mark.asyncio
    async def test_close_drains_pending(self, mock_client):
        dispatcher = NotificationDispatcher(webhook_url="https://hooks.example.com/agenda")
        dispatcher._client = mock_client

        dispatcher.dispatch("appointment.created", {"id": "1"})
        dispatcher.dispatch("appointment.deleted", {"id": "1"})
        await dispatcher.close()

        assert mock_client.post.call_count == 2
        mock_client.aclose.assert_called_once()
        assert dispatcher._client is None
