"""Apollo.io API client for contact enrichment."""

from typing import Optional

import httpx
import structlog

from hireloop.gateway.actions import LeadProfile

BASE_URL = "https://api.apollo.io/api/v1"

log = structlog.get_logger()


def _split_name(name: str) -> tuple[str, str]:
    parts = name.split(" ", 1)
    return parts[0], parts[1] if len(parts) > 1 else ""


def _domain_from_person(person: dict) -> Optional[str]:
    org = person.get("organization") or {}
    if not isinstance(org, dict):
        return None
    return org.get("primary_domain") or org.get("website_url")


async def match_person(client: httpx.AsyncClient, api_key: str, lead: LeadProfile) -> Optional[dict]:
    """Look up a single lead. Returns the matched Apollo person or None."""
    first_name, last_name = _split_name(lead.name)
    payload = {
        "first_name": first_name,
        "last_name": last_name,
        "organization_name": lead.company or None,
        "reveal_personal_emails": False,
    }
    if lead.linkedin or "linkedin.com" in lead.public_url:
        payload["linkedin_url"] = lead.linkedin or lead.public_url

    response = await client.post(
        f"{BASE_URL}/people/match",
        headers={
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "X-Api-Key": api_key,
        },
        json=payload,
    )
    response.raise_for_status()
    return response.json().get("person")


async def enrich_leads(leads: list[LeadProfile], api_key: str, timeout: float = 60.0) -> list[LeadProfile]:
    """Enrich leads with work email, LinkedIn URL and company domain.

    Leads Apollo cannot match are returned unchanged. Raises the last error
    if every lookup failed.
    """
    if not leads:
        return []

    enriched = []
    errors = 0
    last_error: Optional[Exception] = None

    async with httpx.AsyncClient(timeout=timeout) as client:
        for lead in leads:
            try:
                person = await match_person(client, api_key, lead)
            except Exception as e:
                log.error("apollo_enrich_error", error=str(e), name=lead.name)
                errors += 1
                last_error = e
                enriched.append(lead)
                continue

            if not person:
                enriched.append(lead)
                continue

            enriched.append(lead.enriched(
                email=person.get("email") or lead.email,
                linkedin=person.get("linkedin_url") or lead.linkedin,
                company_domain=_domain_from_person(person) or lead.company_domain,
            ))

    if last_error is not None and errors == len(leads):
        raise last_error

    log.info("apollo_enrich_complete", requested=len(leads),
             matched=sum(1 for lead in enriched if lead.email))
    return enriched
