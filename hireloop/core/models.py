"""Ledger records and the candidate status state machine."""

import json
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class RoleStatus(str, Enum):
    OPEN = "open"
    PAUSED = "paused"
    CLOSED = "closed"


class CandidateStatus(str, Enum):
    """Candidate lifecycle.

    Happy path: sourced -> contacted -> interested -> screened -> interviewing
    -> offered -> hired. Contacted, interested and screened candidates may
    also move straight to rejected.
    """

    SOURCED = "sourced"
    CONTACTED = "contacted"
    INTERESTED = "interested"
    SCREENED = "screened"
    INTERVIEWING = "interviewing"
    OFFERED = "offered"
    HIRED = "hired"
    REJECTED = "rejected"


class EventKind(str, Enum):
    SENT = "sent"
    OPENED = "opened"
    REPLIED = "replied"
    SCHEDULED = "scheduled"
    BOUNCED = "bounced"


TRANSITIONS: dict[CandidateStatus, frozenset] = {
    CandidateStatus.SOURCED: frozenset({CandidateStatus.CONTACTED}),
    CandidateStatus.CONTACTED: frozenset({CandidateStatus.INTERESTED, CandidateStatus.REJECTED}),
    CandidateStatus.INTERESTED: frozenset({CandidateStatus.SCREENED, CandidateStatus.REJECTED}),
    CandidateStatus.SCREENED: frozenset({CandidateStatus.INTERVIEWING, CandidateStatus.REJECTED}),
    CandidateStatus.INTERVIEWING: frozenset({CandidateStatus.OFFERED}),
    CandidateStatus.OFFERED: frozenset({CandidateStatus.HIRED}),
    CandidateStatus.HIRED: frozenset(),
    CandidateStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset({CandidateStatus.HIRED, CandidateStatus.REJECTED})


def is_valid_transition(from_status: CandidateStatus, to_status: CandidateStatus) -> bool:
    return to_status in TRANSITIONS[from_status]


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _load_json(value: Optional[str]) -> Any:
    return json.loads(value) if value else {}


@dataclass
class Role:
    """Tenant-owned job requisition."""
    id: str
    org_id: str
    title: str
    requirements: dict = field(default_factory=dict)
    status: RoleStatus = RoleStatus.OPEN
    min_pipeline: int = 10
    location: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Role":
        return cls(
            id=row["id"],
            org_id=row["org_id"],
            title=row["title"],
            requirements=_load_json(row["requirements"]),
            status=RoleStatus(row["status"]),
            min_pipeline=row["min_pipeline"],
            location=row["location"],
            description=row["description"],
            created_at=parse_timestamp(row["created_at"]),
        )


@dataclass
class Candidate:
    """A person considered for exactly one role."""
    id: str
    role_id: str
    name: str
    status: CandidateStatus = CandidateStatus.SOURCED
    email: Optional[str] = None
    current_title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    linkedin: Optional[str] = None
    public_url: Optional[str] = None
    company_domain: Optional[str] = None
    summary: Optional[str] = None
    culture_score: Optional[int] = None
    technical_score: Optional[int] = None
    experience_score: Optional[int] = None
    fit_score: Optional[int] = None
    source: str = "xray"
    created_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0] if self.name else ""

    def profile(self) -> dict:
        """Profile fields handed to collaborators."""
        return {
            "name": self.name,
            "title": self.current_title,
            "company": self.company,
            "location": self.location,
            "email": self.email,
            "linkedin": self.linkedin,
            "public_url": self.public_url,
        }

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Candidate":
        return cls(
            id=row["id"],
            role_id=row["role_id"],
            name=row["name"],
            status=CandidateStatus(row["status"]),
            email=row["email"],
            current_title=row["current_title"],
            company=row["company"],
            location=row["location"],
            linkedin=row["linkedin"],
            public_url=row["public_url"],
            company_domain=row["company_domain"],
            summary=row["summary"],
            culture_score=row["culture_score"],
            technical_score=row["technical_score"],
            experience_score=row["experience_score"],
            fit_score=row["fit_score"],
            source=row["source"],
            created_at=parse_timestamp(row["created_at"]),
        )


@dataclass
class OutreachRecord:
    """Outreach sequence state for one candidate."""
    id: str
    candidate_id: str
    provider: str
    step: int = 1
    thread_id: Optional[str] = None
    last_sent_at: Optional[datetime] = None
    next_send_at: Optional[datetime] = None
    failures: int = 0
    dormant: bool = False
    version: int = 0
    meta: dict = field(default_factory=dict)

    @property
    def never_sent(self) -> bool:
        return self.last_sent_at is None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "OutreachRecord":
        return cls(
            id=row["id"],
            candidate_id=row["candidate_id"],
            provider=row["provider"],
            step=row["step"],
            thread_id=row["thread_id"],
            last_sent_at=parse_timestamp(row["last_sent_at"]),
            next_send_at=parse_timestamp(row["next_send_at"]),
            failures=row["failures"],
            dormant=bool(row["dormant"]),
            version=row["version"],
            meta=_load_json(row["meta"]),
        )


@dataclass
class EngagementEvent:
    """Append-only engagement log entry."""
    id: int
    candidate_id: str
    event: EventKind
    payload: dict
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "EngagementEvent":
        return cls(
            id=row["id"],
            candidate_id=row["candidate_id"],
            event=EventKind(row["event"]),
            payload=_load_json(row["payload"]),
            created_at=parse_timestamp(row["created_at"]),
        )
