"""Slack notifications for orchestration cycles."""

import os
from typing import Optional

import httpx
import structlog

log = structlog.get_logger()


class SlackNotifier:
    """Posts cycle summaries and degraded-pipeline alerts to a Slack webhook."""

    def __init__(self, webhook_url: Optional[str] = None):
        self.webhook_url = webhook_url or os.getenv("SLACK_WEBHOOK_URL")

    async def _post(self, blocks: list[dict], event: str, **fields) -> bool:
        if not self.webhook_url:
            log.warning("slack_webhook_not_configured")
            return False

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(self.webhook_url, json={"blocks": blocks})
                response.raise_for_status()
                log.info(event, **fields)
                return True

        except Exception as e:
            log.error("slack_send_error", error=str(e))
            return False

    async def send_cycle_summary(self, summary: dict) -> bool:
        """Send the end-of-cycle summary.

        Args:
            summary: CycleSummary.to_dict() output

        Returns:
            True if sent successfully
        """
        healthy = not summary.get("failures") and not summary.get("degraded_roles")
        status_emoji = "✅" if healthy else "⚠️"

        blocks = [
            {
                "type": "header",
                "text": {"type": "plain_text", "text": f"{status_emoji} Pipeline Cycle Complete"},
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Roles:*\n{summary.get('roles_processed', 0)}"},
                    {"type": "mrkdwn", "text": f"*New Candidates:*\n{summary.get('candidates_created', 0)}"},
                    {"type": "mrkdwn", "text": f"*Emails Sent:*\n{summary.get('sends', 0)}"},
                    {"type": "mrkdwn", "text": f"*Waiting:*\n{summary.get('waits', 0)}"},
                ],
            },
        ]

        if summary.get("degraded_roles"):
            roles = ", ".join(summary["degraded_roles"])
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Degraded roles:* {roles}"},
            })

        if summary.get("failures"):
            error_text = "\n".join(f"• {e}" for e in summary["failures"][:5])
            blocks.append({
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"*Issues:*\n{error_text}"},
            })

        return await self._post(blocks, "slack_summary_sent", sends=summary.get("sends", 0))

    async def send_degraded_alert(self, role_title: str, message: str) -> bool:
        blocks = [
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f"⚠️ *Pipeline degraded: {role_title}*\n{message}"},
            }
        ]
        return await self._post(blocks, "slack_degraded_alert_sent", role_title=role_title)
