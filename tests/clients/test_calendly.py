import pytest
from unittest.mock import patch, AsyncMock, MagicMock

from hireloop.clients.calendly import create_scheduling_link


@pytest.mark.asyncio
async def test_create_scheduling_link():
    mock_response = MagicMock()
    mock_response.json.return_value = {"resource": {"booking_url": "https://calendly.com/d/abc-123"}}
    mock_response.raise_for_status.return_value = None

    with patch("hireloop.clients.calendly.httpx.AsyncClient") as mock_client:
        mock_instance = AsyncMock()
        mock_instance.post.return_value = mock_response
        mock_client.return_value.__aenter__.return_value = mock_instance

        url = await create_scheduling_link("token", "https://api.calendly.com/event_types/xyz")

        assert url == "https://calendly.com/d/abc-123"
        call_kwargs = mock_instance.post.call_args[1]
        assert call_kwargs["headers"]["Authorization"] == "Bearer token"
        assert call_kwargs["json"]["owner"] == "https://api.calendly.com/event_types/xyz"
        assert call_kwargs["json"]["max_event_count"] == 1
