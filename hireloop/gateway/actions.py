"""Gateway action kinds, their payloads and their result shapes.

Each action is a frozen dataclass tagged with a `kind`. Mock and live
handlers return the same result types, so callers never branch on mode.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import ClassVar, Generic, Optional, TypeVar, Union


@dataclass(frozen=True)
class LeadProfile:
    name: str
    title: str = ""
    company: str = ""
    location: str = ""
    public_url: str = ""
    # Filled in by enrichment
    email: Optional[str] = None
    linkedin: Optional[str] = None
    company_domain: Optional[str] = None

    def enriched(self, email: Optional[str], linkedin: Optional[str], company_domain: Optional[str]) -> "LeadProfile":
        return replace(self, email=email, linkedin=linkedin, company_domain=company_domain)


@dataclass(frozen=True)
class ScoreResult:
    culture_score: int
    technical_score: int
    experience_score: int
    fit_score: int
    summary: str = ""
    reasons: tuple[str, ...] = ()
    interview_focus: tuple[str, ...] = ()


@dataclass(frozen=True)
class DraftedMessage:
    subject: str
    body: str


@dataclass(frozen=True)
class DeliveryReceipt:
    message_id: str
    thread_id: Optional[str]
    provider: str


@dataclass(frozen=True)
class MeetingLink:
    url: str


@dataclass(frozen=True)
class SearchLeads:
    kind: ClassVar[str] = "search_leads"
    role_id: str
    requirements: dict
    count: int
    offset: int = 0


@dataclass(frozen=True)
class EnrichLeads:
    kind: ClassVar[str] = "enrich_leads"
    leads: tuple[LeadProfile, ...]


@dataclass(frozen=True)
class ScoreResume:
    kind: ClassVar[str] = "score_resume"
    requirements: dict
    resume_text: str


@dataclass(frozen=True)
class DraftOutreach:
    kind: ClassVar[str] = "draft_outreach"
    requirements: dict
    candidate: dict
    tone: str = "professional"
    step: int = 1
    previous_subject: Optional[str] = None
    role_title: str = ""


@dataclass(frozen=True)
class SendOutreach:
    kind: ClassVar[str] = "send_outreach"
    message: DraftedMessage
    recipient: str
    thread_id: Optional[str] = None
    previous_message_id: Optional[str] = None


@dataclass(frozen=True)
class CreateMeeting:
    kind: ClassVar[str] = "create_meeting"
    candidate_id: str
    candidate_name: str = ""
    candidate_email: Optional[str] = None


Action = Union[SearchLeads, EnrichLeads, ScoreResume, DraftOutreach, SendOutreach, CreateMeeting]

ACTION_KINDS = tuple(a.kind for a in (SearchLeads, EnrichLeads, ScoreResume, DraftOutreach, SendOutreach, CreateMeeting))


class ErrorKind(str, Enum):
    TIMEOUT = "timeout"
    FAILURE = "failure"
    INVALID_INPUT = "invalid_input"


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str = ""
    details: dict = field(default_factory=dict)
    ok: ClassVar[bool] = False


Result = Union[Ok, Err]
