"""Deterministic canned collaborator results for mock mode."""

import hashlib
from uuid import NAMESPACE_URL, uuid5

from hireloop.gateway.actions import (
    CreateMeeting,
    DeliveryReceipt,
    DraftedMessage,
    DraftOutreach,
    EnrichLeads,
    LeadProfile,
    MeetingLink,
    ScoreResult,
    ScoreResume,
    SearchLeads,
    SendOutreach,
)

MOCK_PEOPLE = [
    ("Grace Hopper", "Senior Backend Engineer", "DemoCo", "Austin, TX"),
    ("Linus Torvalds", "Kernel Developer", "Open Source", "Portland, OR"),
    ("Ada Lovelace", "Software Architect", "MathWorks", "London, UK"),
    ("Margaret Hamilton", "Engineering Manager", "Apollo Labs", "Boston, MA"),
    ("Alan Turing", "Staff Engineer", "Bletchley Systems", "Manchester, UK"),
    ("Barbara Liskov", "Principal Engineer", "Abstraction Inc", "Cambridge, MA"),
]


def _slug(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch.isalnum())


def mock_lead(index: int) -> LeadProfile:
    """The index-th lead of an endless deterministic sequence."""
    name, title, company, location = MOCK_PEOPLE[index % len(MOCK_PEOPLE)]
    round_ = index // len(MOCK_PEOPLE)
    if round_:
        name = f"{name} {round_ + 1}"
    return LeadProfile(
        name=name,
        title=title,
        company=company,
        location=location,
        public_url=f"https://example.com/{_slug(name)}",
    )


async def search_leads(action: SearchLeads) -> list[LeadProfile]:
    return [mock_lead(action.offset + i) for i in range(max(action.count, 0))]


async def enrich_leads(action: EnrichLeads) -> list[LeadProfile]:
    enriched = []
    for lead in action.leads:
        first = lead.name.split(" ")[0].lower() if lead.name else "candidate"
        enriched.append(lead.enriched(
            email=lead.email or f"{first}.{_slug(lead.name)[-6:]}@example.com",
            linkedin=lead.linkedin or lead.public_url or f"https://linkedin.com/in/{_slug(lead.name)}",
            company_domain=lead.company_domain or f"{_slug(lead.company) or 'example'}.com",
        ))
    return enriched


async def score_resume(action: ScoreResume) -> ScoreResult:
    digest = hashlib.sha256(action.resume_text.encode("utf-8")).digest()
    culture = digest[0] % 5 + 1
    technical = digest[1] % 5 + 1
    experience = digest[2] % 5 + 1
    fit = min(100, (culture + technical + experience) * 6 + digest[3] % 11)
    return ScoreResult(
        culture_score=culture,
        technical_score=technical,
        experience_score=experience,
        fit_score=fit,
        summary="Seasoned engineer with relevant experience.",
        reasons=("Strong technical background", "Relevant experience", "Good cultural fit"),
        interview_focus=("System design", "Team collaboration", "Technical depth"),
    )


async def draft_outreach(action: DraftOutreach) -> DraftedMessage:
    name = action.candidate.get("name") or "there"
    first_name = name.split(" ")[0]
    role = action.role_title or "a new role"
    if action.step == 1:
        return DraftedMessage(
            subject="Opportunity to chat about a new role",
            body=(
                f"Hello {first_name},\n\n"
                f"I hope you're doing well! I'm reaching out about {role} that I think "
                "aligns with your background. If you're open to a quick chat, please "
                "grab a slot on my calendar.\n\nBest regards,\nHireLoop Recruiter"
            ),
        )
    return DraftedMessage(
        subject=f"re: {action.previous_subject or 'Opportunity to chat about a new role'}",
        body=(
            f"Hi {first_name},\n\nJust bumping this in case it got buried. "
            "Happy to share more details whenever suits you.\n\nBest regards,\nHireLoop Recruiter"
        ),
    )


async def send_outreach(action: SendOutreach) -> DeliveryReceipt:
    message_id = str(uuid5(NAMESPACE_URL, f"{action.recipient}/{action.message.subject}/{action.previous_message_id}"))
    return DeliveryReceipt(
        message_id=f"mock-{message_id}",
        thread_id=action.thread_id or f"mock-thread-{uuid5(NAMESPACE_URL, action.recipient)}",
        provider="mock",
    )


async def create_meeting(action: CreateMeeting) -> MeetingLink:
    return MeetingLink(url=f"https://calendly.com/demo/{action.candidate_id}")


HANDLERS = {
    "search_leads": search_leads,
    "enrich_leads": enrich_leads,
    "score_resume": score_resume,
    "draft_outreach": draft_outreach,
    "send_outreach": send_outreach,
    "create_meeting": create_meeting,
}
