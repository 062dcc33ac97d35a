"""Uniform boundary to every external collaborator."""

import asyncio
import time
from pathlib import Path
from typing import Optional

import structlog

from hireloop.clients import apollo, calendly, composer, gmail, screener, xray
from hireloop.core.config import DEFAULT_CONFIG_PATH, GatewayConfig, GmailConfig
from hireloop.core.errors import InvalidInput
from hireloop.gateway import mock
from hireloop.gateway.actions import (
    ACTION_KINDS,
    Action,
    CreateMeeting,
    DeliveryReceipt,
    DraftedMessage,
    DraftOutreach,
    EnrichLeads,
    Err,
    ErrorKind,
    LeadProfile,
    MeetingLink,
    Ok,
    Result,
    ScoreResult,
    ScoreResume,
    SearchLeads,
    SendOutreach,
)

log = structlog.get_logger()


def validate(action: Action) -> None:
    """Reject malformed actions before they reach a collaborator."""
    if getattr(action, "kind", None) not in ACTION_KINDS:
        raise InvalidInput(f"Unknown action: {action!r}")
    if isinstance(action, SearchLeads) and action.count <= 0:
        raise InvalidInput("search_leads count must be positive")
    if isinstance(action, ScoreResume) and not action.resume_text.strip():
        raise InvalidInput("score_resume requires resume text")
    if isinstance(action, SendOutreach) and not action.recipient:
        raise InvalidInput("send_outreach requires a recipient")
    if isinstance(action, CreateMeeting) and not action.candidate_id:
        raise InvalidInput("create_meeting requires a candidate id")


class ActionGateway:
    """Dispatches typed actions to live collaborators or canned mocks.

    The mode comes from the GatewayConfig handed to the constructor, so
    several gateways with different modes can live in one process. In live
    mode an action still runs against the mock when it is listed in
    `mock_actions` or when its credentials are missing.
    """

    def __init__(
        self,
        config: GatewayConfig,
        gmail_config: Optional[GmailConfig] = None,
        config_path: Path = DEFAULT_CONFIG_PATH,
    ):
        self.config = config
        self.gmail = gmail_config or GmailConfig()
        self.config_path = config_path
        self._live = {
            "search_leads": self._search_leads,
            "enrich_leads": self._enrich_leads,
            "score_resume": self._score_resume,
            "draft_outreach": self._draft_outreach,
            "send_outreach": self._send_outreach,
            "create_meeting": self._create_meeting,
        }

    def _has_credentials(self, kind: str) -> bool:
        creds = self.config.credentials
        required = {
            "search_leads": (creds.google_cse_key, creds.google_cse_id),
            "enrich_leads": (creds.apollo_api_key,),
            "score_resume": (creds.anthropic_api_key,),
            "draft_outreach": (creds.anthropic_api_key,),
            "send_outreach": (creds.composio_api_key,),
            "create_meeting": (creds.calendly_token, creds.calendly_event_type),
        }
        return all(required[kind])

    def mode_for(self, kind: str) -> str:
        if self.config.mode == "mock" or kind in self.config.mock_actions:
            return "mock"
        if not self._has_credentials(kind):
            return "mock"
        return "live"

    async def invoke(
        self,
        action: Action,
        role_id: Optional[str] = None,
        candidate_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Result:
        """Run one action. Never raises for collaborator errors.

        Returns Ok(result) or Err(kind, message).
        """
        kind = getattr(action, "kind", "unknown")
        start = time.monotonic()
        mode = "n/a"

        try:
            validate(action)
            mode = self.mode_for(kind)
            handler = mock.HANDLERS[kind] if mode == "mock" else self._live[kind]
            budget = timeout if timeout is not None else self.config.timeout_for(kind)
            result: Result = Ok(await asyncio.wait_for(handler(action), timeout=budget))
        except InvalidInput as e:
            result = Err(ErrorKind.INVALID_INPUT, str(e))
        except asyncio.TimeoutError:
            result = Err(ErrorKind.TIMEOUT, f"{kind} timed out")
        except Exception as e:
            result = Err(ErrorKind.FAILURE, str(e) or type(e).__name__)

        duration_ms = round((time.monotonic() - start) * 1000, 1)
        outcome = "ok" if result.ok else result.kind.value
        log_method = log.info if result.ok else log.warning
        log_method(
            "gateway_action",
            kind=kind,
            role_id=role_id,
            candidate_id=candidate_id,
            mode=mode,
            duration_ms=duration_ms,
            outcome=outcome,
            error=None if result.ok else result.message,
        )
        return result

    # Live handlers

    async def _search_leads(self, action: SearchLeads) -> list[LeadProfile]:
        creds = self.config.credentials
        return await xray.search_leads(
            action.requirements,
            action.count,
            api_key=creds.google_cse_key,
            cse_id=creds.google_cse_id,
            offset=action.offset,
            timeout=self.config.timeout_for(action.kind),
        )

    async def _enrich_leads(self, action: EnrichLeads) -> list[LeadProfile]:
        return await apollo.enrich_leads(
            list(action.leads),
            api_key=self.config.credentials.apollo_api_key,
            timeout=self.config.timeout_for(action.kind),
        )

    async def _score_resume(self, action: ScoreResume) -> ScoreResult:
        return await screener.score_resume(
            action.requirements, action.resume_text, api_key=self.config.credentials.anthropic_api_key
        )

    async def _draft_outreach(self, action: DraftOutreach) -> DraftedMessage:
        return await composer.draft_outreach(
            action, api_key=self.config.credentials.anthropic_api_key, config_path=self.config_path
        )

    async def _send_outreach(self, action: SendOutreach) -> DeliveryReceipt:
        common = {
            "to": action.recipient,
            "subject": action.message.subject,
            "body": action.message.body,
            "from_name": self.gmail.from_name,
            "connected_account_id": self.gmail.connected_account_id or None,
            "api_key": self.config.credentials.composio_api_key,
        }
        if action.thread_id:
            sent = await gmail.send_reply_email(
                thread_id=action.thread_id, message_id=action.previous_message_id, **common
            )
        else:
            sent = await gmail.send_new_email(**common)
        return DeliveryReceipt(message_id=sent["message_id"], thread_id=sent["thread_id"], provider="gmail")

    async def _create_meeting(self, action: CreateMeeting) -> MeetingLink:
        creds = self.config.credentials
        url = await calendly.create_scheduling_link(
            creds.calendly_token, creds.calendly_event_type, timeout=self.config.timeout_for(action.kind)
        )
        return MeetingLink(url=url)
