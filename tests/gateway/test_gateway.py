"""Tests for the action gateway."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from structlog.testing import capture_logs

from hireloop.core.config import Credentials, GatewayConfig
from hireloop.gateway import mock
from hireloop.gateway.actions import (
    CreateMeeting,
    DeliveryReceipt,
    DraftedMessage,
    ErrorKind,
    LeadProfile,
    ScoreResume,
    SearchLeads,
    SendOutreach,
)
from hireloop.gateway.gateway import ActionGateway

LIVE_CREDENTIALS = Credentials(
    google_cse_id="cse-id",
    google_cse_key="cse-key",
    apollo_api_key="apollo",
    anthropic_api_key="anthropic",
    composio_api_key="composio",
    calendly_token="calendly",
    calendly_event_type="https://api.calendly.com/event_types/abc",
)


@pytest.mark.asyncio
async def test_mock_search_returns_requested_count():
    gateway = ActionGateway(GatewayConfig(mode="mock"))

    result = await gateway.invoke(SearchLeads(role_id="r1", requirements={}, count=3))

    assert result.ok
    assert len(result.value) == 3
    assert all(isinstance(lead, LeadProfile) for lead in result.value)


@pytest.mark.asyncio
async def test_mock_search_is_deterministic_and_pages_with_offset():
    gateway = ActionGateway(GatewayConfig(mode="mock"))

    first = await gateway.invoke(SearchLeads(role_id="r1", requirements={}, count=4))
    again = await gateway.invoke(SearchLeads(role_id="r1", requirements={}, count=4))
    page = await gateway.invoke(SearchLeads(role_id="r1", requirements={}, count=2, offset=2))

    assert first.value == again.value
    assert page.value == first.value[2:4]


@pytest.mark.asyncio
async def test_invalid_input_is_not_sent_to_collaborator():
    gateway = ActionGateway(GatewayConfig(mode="mock"))

    result = await gateway.invoke(SearchLeads(role_id="r1", requirements={}, count=0))
    assert not result.ok
    assert result.kind == ErrorKind.INVALID_INPUT

    result = await gateway.invoke(ScoreResume(requirements={}, resume_text="   "))
    assert result.kind == ErrorKind.INVALID_INPUT

    result = await gateway.invoke("not an action")
    assert result.kind == ErrorKind.INVALID_INPUT


@pytest.mark.asyncio
async def test_timeout_becomes_err():
    async def slow(action):
        await asyncio.sleep(1)

    gateway = ActionGateway(GatewayConfig(mode="mock"))
    with patch.dict(mock.HANDLERS, {"create_meeting": slow}):
        result = await gateway.invoke(CreateMeeting(candidate_id="c1"), timeout=0.01)

    assert not result.ok
    assert result.kind == ErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_collaborator_exception_becomes_failure():
    async def broken(action):
        raise RuntimeError("provider exploded")

    gateway = ActionGateway(GatewayConfig(mode="mock"))
    with patch.dict(mock.HANDLERS, {"create_meeting": broken}):
        result = await gateway.invoke(CreateMeeting(candidate_id="c1"))

    assert result.kind == ErrorKind.FAILURE
    assert "provider exploded" in result.message


def test_live_mode_falls_back_to_mock_without_credentials():
    gateway = ActionGateway(GatewayConfig(mode="live"))

    assert gateway.mode_for("search_leads") == "mock"
    assert gateway.mode_for("send_outreach") == "mock"


def test_live_mode_honours_mock_actions():
    gateway = ActionGateway(GatewayConfig(
        mode="live", mock_actions=["send_outreach"], credentials=LIVE_CREDENTIALS
    ))

    assert gateway.mode_for("search_leads") == "live"
    assert gateway.mode_for("send_outreach") == "mock"


def test_gateways_with_different_modes_coexist():
    live = ActionGateway(GatewayConfig(mode="live", credentials=LIVE_CREDENTIALS))
    mocked = ActionGateway(GatewayConfig(mode="mock", credentials=LIVE_CREDENTIALS))

    assert live.mode_for("create_meeting") == "live"
    assert mocked.mode_for("create_meeting") == "mock"


@pytest.mark.asyncio
async def test_live_search_delegates_to_xray_client():
    gateway = ActionGateway(GatewayConfig(mode="live", credentials=LIVE_CREDENTIALS))
    leads = [LeadProfile(name="Ada", public_url="https://github.com/ada")]

    with patch("hireloop.gateway.gateway.xray.search_leads", new_callable=AsyncMock) as mock_search:
        mock_search.return_value = leads
        result = await gateway.invoke(SearchLeads(role_id="r1", requirements={"keywords": ["go"]}, count=1, offset=5))

    assert result.ok
    assert result.value == leads
    kwargs = mock_search.call_args[1]
    assert kwargs["api_key"] == "cse-key"
    assert kwargs["cse_id"] == "cse-id"
    assert kwargs["offset"] == 5


@pytest.mark.asyncio
async def test_live_send_replies_in_thread():
    gateway = ActionGateway(GatewayConfig(mode="live", credentials=LIVE_CREDENTIALS))
    message = DraftedMessage(subject="re: hello", body="bump")

    with patch("hireloop.gateway.gateway.gmail.send_reply_email", new_callable=AsyncMock) as mock_reply, \
         patch("hireloop.gateway.gateway.gmail.send_new_email", new_callable=AsyncMock) as mock_new:
        mock_reply.return_value = {"thread_id": "t1", "message_id": "m2"}
        result = await gateway.invoke(SendOutreach(
            message=message, recipient="ada@example.com", thread_id="t1", previous_message_id="m1"
        ))

    assert result.value == DeliveryReceipt(message_id="m2", thread_id="t1", provider="gmail")
    mock_new.assert_not_called()
    assert mock_reply.call_args[1]["message_id"] == "m1"


@pytest.mark.asyncio
async def test_every_call_emits_one_structured_record():
    gateway = ActionGateway(GatewayConfig(mode="mock"))

    with capture_logs() as logs:
        await gateway.invoke(CreateMeeting(candidate_id="c1"), role_id="r1", candidate_id="c1")
        await gateway.invoke(SearchLeads(role_id="r1", requirements={}, count=0), role_id="r1")

    records = [entry for entry in logs if entry["event"] == "gateway_action"]
    assert len(records) == 2

    ok, bad = records
    assert ok["kind"] == "create_meeting"
    assert ok["mode"] == "mock"
    assert ok["outcome"] == "ok"
    assert ok["role_id"] == "r1"
    assert ok["candidate_id"] == "c1"
    assert ok["duration_ms"] >= 0
    assert bad["outcome"] == "invalid_input"
    assert bad["error"]
