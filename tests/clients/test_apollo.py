"""Tests for Apollo.io enrichment client."""

import pytest
from unittest.mock import patch, AsyncMock, MagicMock

from hireloop.clients.apollo import enrich_leads
from hireloop.gateway.actions import LeadProfile


@pytest.mark.asyncio
async def test_enrich_leads_fills_contact_details():
    mock_response = MagicMock()
    mock_response.json.return_value = {
        "person": {
            "email": "ada@mathworks.com",
            "linkedin_url": "https://linkedin.com/in/ada",
            "organization": {"primary_domain": "mathworks.com"},
        }
    }
    mock_response.raise_for_status.return_value = None

    with patch("hireloop.clients.apollo.httpx.AsyncClient") as mock_client:
        mock_instance = AsyncMock()
        mock_instance.post.return_value = mock_response
        mock_client.return_value.__aenter__.return_value = mock_instance

        leads = await enrich_leads([LeadProfile(name="Ada Lovelace", company="MathWorks")], api_key="test-key")

        assert leads[0].email == "ada@mathworks.com"
        assert leads[0].company_domain == "mathworks.com"
        call_kwargs = mock_instance.post.call_args[1]
        assert call_kwargs["headers"]["X-Api-Key"] == "test-key"
        assert call_kwargs["json"]["first_name"] == "Ada"
        assert call_kwargs["json"]["last_name"] == "Lovelace"


@pytest.mark.asyncio
async def test_enrich_leads_keeps_unmatched_lead():
    mock_response = MagicMock()
    mock_response.json.return_value = {"person": None}
    mock_response.raise_for_status.return_value = None

    with patch("hireloop.clients.apollo.httpx.AsyncClient") as mock_client:
        mock_instance = AsyncMock()
        mock_instance.post.return_value = mock_response
        mock_client.return_value.__aenter__.return_value = mock_instance

        lead = LeadProfile(name="Nobody")
        assert await enrich_leads([lead], api_key="k") == [lead]


@pytest.mark.asyncio
async def test_enrich_leads_raises_when_every_lookup_fails():
    with patch("hireloop.clients.apollo.httpx.AsyncClient") as mock_client:
        mock_instance = AsyncMock()
        mock_instance.post.side_effect = Exception("API error")
        mock_client.return_value.__aenter__.return_value = mock_instance

        with pytest.raises(Exception, match="API error"):
            await enrich_leads([LeadProfile(name="Ada")], api_key="k")


@pytest.mark.asyncio
async def test_enrich_leads_empty():
    assert await enrich_leads([], api_key="k") == []
