"""Calendly single-use scheduling links."""

import httpx
import structlog

BASE_URL = "https://api.calendly.com"

log = structlog.get_logger()


async def create_scheduling_link(token: str, event_type: str, timeout: float = 15.0) -> str:
    """Create a single-use booking link for an event type.

    Args:
        token: Calendly personal access token
        event_type: Event type URI (https://api.calendly.com/event_types/...)

    Returns:
        The bookable URL.
    """
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(
            f"{BASE_URL}/scheduling_links",
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            json={
                "max_event_count": 1,
                "owner": event_type,
                "owner_type": "EventType",
            },
        )
        response.raise_for_status()
        url = response.json()["resource"]["booking_url"]

    log.info("calendly_link_created", event_type=event_type)
    return url
