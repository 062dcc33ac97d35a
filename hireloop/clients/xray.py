"""X-ray sourcing via the Google Custom Search JSON API."""

import httpx
import structlog

from hireloop.gateway.actions import LeadProfile

BASE_URL = "https://www.googleapis.com/customsearch/v1"
MAX_PAGE_SIZE = 10  # Google CSE hard limit per request

log = structlog.get_logger()


def build_query(requirements: dict) -> str:
    """Build a boolean x-ray query from role requirements.

    Examples:
        {"keywords": ["python", "django"]} -> 'python OR django'
        {"keywords": ["go"], "sites": ["github.com"]} -> 'site:github.com (go)'
    """
    keywords = requirements.get("keywords") or requirements.get("skills") or []
    query = " OR ".join(str(k) for k in keywords)
    sites = requirements.get("sites") or []
    if sites:
        site_clause = " OR ".join(f"site:{s}" for s in sites)
        query = f"{site_clause} ({query})" if query else site_clause
    return query


def parse_item(item: dict) -> LeadProfile:
    """Turn a search hit into a lead. Titles look like 'Name – Title – Company'."""
    title = item.get("title", "")
    parts = [p.strip() for p in title.replace("|", "–").replace(" - ", " – ").split("–") if p.strip()]
    return LeadProfile(
        name=parts[0] if parts else title,
        title=parts[1] if len(parts) > 1 else title,
        company=parts[2] if len(parts) > 2 else "",
        location="",
        public_url=item.get("link", ""),
    )


async def search_leads(
    requirements: dict,
    count: int,
    api_key: str,
    cse_id: str,
    offset: int = 0,
    timeout: float = 20.0,
) -> list[LeadProfile]:
    """Search public profiles matching the role requirements.

    Returns up to `count` leads, de-duplicated by URL.
    """
    query = build_query(requirements)
    if not query:
        raise ValueError("Role requirements have no keywords to search for")

    leads: list[LeadProfile] = []
    seen: set[str] = set()
    start = offset + 1

    async with httpx.AsyncClient(timeout=timeout) as client:
        while len(leads) < count:
            response = await client.get(
                BASE_URL,
                params={
                    "key": api_key,
                    "cx": cse_id,
                    "q": query,
                    "num": min(count - len(leads), MAX_PAGE_SIZE),
                    "start": start,
                },
            )
            response.raise_for_status()
            items = response.json().get("items", [])
            if not items:
                break

            for item in items:
                lead = parse_item(item)
                if lead.public_url and lead.public_url not in seen:
                    seen.add(lead.public_url)
                    leads.append(lead)
            start += len(items)

    log.info("xray_search_complete", query=query, count=len(leads))
    return leads[:count]
