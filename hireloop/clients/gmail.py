"""Gmail sending via Composio."""

import asyncio
from typing import Optional

import structlog
from composio.sdk import Composio

log = structlog.get_logger()

# Cache for user_id lookups
_user_id_cache: dict[str, str] = {}


class SendError(Exception):
    """Composio reported an unsuccessful tool execution."""


def _get_client(api_key: Optional[str] = None) -> Composio:
    """Get Composio client (falls back to COMPOSIO_API_KEY env var)."""
    return Composio(api_key=api_key) if api_key else Composio()


def _get_user_id_for_account(client: Composio, connected_account_id: str) -> Optional[str]:
    """Look up user_id for a connected account."""
    if connected_account_id in _user_id_cache:
        return _user_id_cache[connected_account_id]

    try:
        accounts = client.connected_accounts.list()
        for item in accounts.items:
            if item.id == connected_account_id:
                _user_id_cache[connected_account_id] = item.user_id
                return item.user_id
    except Exception as e:
        log.warning("failed_to_get_user_id", error=str(e))

    return None


async def _execute(client: Composio, slug: str, arguments: dict, connected_account_id: Optional[str]) -> dict:
    execute_kwargs = {
        "slug": slug,
        "arguments": arguments,
        "dangerously_skip_version_check": True,
    }
    if connected_account_id:
        execute_kwargs["connected_account_id"] = connected_account_id
        user_id = _get_user_id_for_account(client, connected_account_id)
        if user_id:
            execute_kwargs["user_id"] = user_id

    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(
        None,
        lambda: client.tools.execute(**execute_kwargs)
    )

    # Handle both object and dict responses
    successful = result.successful if hasattr(result, 'successful') else result.get("successful", False)
    data = result.data if hasattr(result, 'data') else result.get("data", {})
    error = result.error if hasattr(result, 'error') else result.get("error")

    if not successful:
        raise SendError(error or "Unknown error")
    return data or {}


async def send_new_email(
    to: str,
    subject: str,
    body: str,
    from_name: str = "HireLoop Recruiting",
    connected_account_id: Optional[str] = None,
    api_key: Optional[str] = None,
) -> dict:
    """Send a new email (not a reply).

    Returns dict with thread_id and message_id.
    """
    log.info("sending_new_email", to=to, subject=subject, connected_account_id=connected_account_id)

    data = await _execute(
        _get_client(api_key),
        "GMAIL_SEND_EMAIL",
        {"recipient_email": to, "subject": subject, "body": body},
        connected_account_id,
    )
    return {
        "thread_id": data.get("threadId"),
        "message_id": data.get("id"),
    }


async def send_reply_email(
    to: str,
    subject: str,
    body: str,
    thread_id: str,
    message_id: Optional[str],
    from_name: str = "HireLoop Recruiting",
    connected_account_id: Optional[str] = None,
    api_key: Optional[str] = None,
) -> dict:
    """Send a reply email (in existing thread).

    Returns dict with thread_id and message_id.
    """
    log.info("sending_reply_email", to=to, subject=subject, thread_id=thread_id)

    data = await _execute(
        _get_client(api_key),
        "GMAIL_REPLY_TO_THREAD",
        {
            "thread_id": thread_id,
            "message_id": message_id,
            "to": to,
            "subject": subject,
            "body": body,
            "from_name": from_name,
        },
        connected_account_id,
    )
    return {
        "thread_id": data.get("threadId") or thread_id,
        "message_id": data.get("id"),
    }
