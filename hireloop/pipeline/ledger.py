"""Candidate ledger: the authoritative record of candidate lifecycle state."""

from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional

import structlog

from hireloop.core import db
from hireloop.core.errors import InvalidTransition
from hireloop.core.models import (
    TERMINAL_STATUSES,
    Candidate,
    CandidateStatus,
    EngagementEvent,
    EventKind,
    OutreachRecord,
    Role,
    RoleStatus,
    is_valid_transition,
)

log = structlog.get_logger()


class CandidateLedger:
    """Typed access to roles, candidates, outreach and engagements.

    Every mutation is a single conditional statement, so concurrent writers
    (orchestrator cycles, the event ingestor) resolve contention per row
    without any global lock.
    """

    def __init__(self, db_path: Path = db.DEFAULT_DB_PATH):
        self.db_path = db_path

    def init(self) -> None:
        db.init_db(self.db_path)

    # Roles

    def add_role(
        self,
        title: str,
        org_id: str,
        requirements: Optional[dict] = None,
        min_pipeline: int = 10,
        location: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Role:
        role_id = db.insert_role(
            self.db_path, title, org_id,
            requirements=requirements, min_pipeline=min_pipeline,
            location=location, description=description,
        )
        return self.get_role(role_id)

    def get_role(self, role_id: str) -> Optional[Role]:
        row = db.get_role(self.db_path, role_id)
        return Role.from_row(row) if row else None

    def list_open_roles(self) -> list[Role]:
        """Open roles in ascending id order."""
        return [Role.from_row(row) for row in db.get_roles_by_status(self.db_path, RoleStatus.OPEN.value)]

    def list_roles(self) -> list[Role]:
        return [Role.from_row(row) for row in db.get_all_roles(self.db_path)]

    def set_role_status(self, role_id: str, status: RoleStatus) -> bool:
        return db.update_role_status(self.db_path, role_id, status.value)

    # Candidates

    def get(self, candidate_id: str) -> Optional[Candidate]:
        row = db.get_candidate(self.db_path, candidate_id)
        return Candidate.from_row(row) if row else None

    def list_by_role(self, role_id: str, statuses: Optional[list[CandidateStatus]] = None) -> list[Candidate]:
        values = [s.value for s in statuses] if statuses is not None else None
        return [Candidate.from_row(row) for row in db.get_candidates_by_role(self.db_path, role_id, values)]

    def count_by_role(self, role_id: str) -> int:
        """Pipeline depth: the role's non-terminal candidates."""
        return db.count_candidates_by_role(
            self.db_path, role_id, exclude_statuses=[s.value for s in TERMINAL_STATUSES]
        )

    def count_all_by_role(self, role_id: str) -> int:
        return db.count_candidates_by_role(self.db_path, role_id)

    def add_candidate(self, role_id: str, name: str, source: str = "xray", **fields) -> Optional[Candidate]:
        """Create a candidate in `sourced` status. Returns None for duplicates."""
        candidate_id = db.insert_candidate(self.db_path, role_id, name, source=source, **fields)
        if candidate_id is None:
            log.info("candidate_duplicate_skipped", role_id=role_id, public_url=fields.get("public_url"))
            return None
        return self.get(candidate_id)

    def update_status(self, candidate_id: str, from_status: CandidateStatus, to_status: CandidateStatus) -> bool:
        """Compare-and-swap a candidate's status.

        Returns True on success and False if the stored status no longer
        equals `from_status`. Raises InvalidTransition for edges outside the
        state machine.
        """
        from_status = CandidateStatus(from_status)
        to_status = CandidateStatus(to_status)
        if not is_valid_transition(from_status, to_status):
            raise InvalidTransition(from_status.value, to_status.value)

        updated = db.compare_and_set_status(self.db_path, candidate_id, from_status.value, to_status.value)
        if updated:
            log.info("candidate_status_changed", candidate_id=candidate_id,
                     from_status=from_status.value, to_status=to_status.value)
        else:
            log.info("candidate_status_conflict", candidate_id=candidate_id,
                     expected=from_status.value, wanted=to_status.value)
        return updated

    def update_scores(
        self,
        candidate_id: str,
        culture_score: int,
        technical_score: int,
        experience_score: int,
        fit_score: int,
        summary: Optional[str] = None,
    ) -> None:
        db.update_candidate_scores(
            self.db_path, candidate_id, culture_score, technical_score,
            experience_score, fit_score, summary,
        )

    def delete(self, candidate_id: str) -> bool:
        """Explicitly delete a candidate. The orchestrator never calls this."""
        return db.delete_candidate(self.db_path, candidate_id)

    # Outreach

    def get_outreach(self, candidate_id: str) -> Optional[OutreachRecord]:
        row = db.get_outreach_by_candidate(self.db_path, candidate_id)
        return OutreachRecord.from_row(row) if row else None

    def open_outreach(self, candidate_id: str, provider: str) -> OutreachRecord:
        """Get or create the candidate's single outreach record."""
        return OutreachRecord.from_row(db.insert_outreach(self.db_path, candidate_id, provider))

    def claim_outreach(self, record: OutreachRecord, lease_until: datetime) -> Optional[OutreachRecord]:
        """Reserve `record` for one send. Returns the claimed record, or None if another actor moved it."""
        if not db.claim_outreach(self.db_path, record.id, record.version, lease_until):
            return None
        return replace(record, version=record.version + 1, next_send_at=lease_until)

    def advance_outreach(
        self,
        record: OutreachRecord,
        step: int,
        sent_at: datetime,
        next_send_at: Optional[datetime],
        meta: dict,
        thread_id: Optional[str] = None,
    ) -> bool:
        return db.update_outreach_sent(
            self.db_path, record.id, record.version, step, thread_id,
            sent_at, next_send_at, meta,
        )

    def record_outreach_failure(
        self,
        record: OutreachRecord,
        failures: int,
        next_send_at: Optional[datetime],
        dormant: bool,
        meta: dict,
    ) -> bool:
        return db.update_outreach_failure(
            self.db_path, record.id, record.version, failures, next_send_at, dormant, meta,
        )

    # Engagements

    def append_event(self, candidate_id: str, event: EventKind, payload: Optional[dict] = None) -> int:
        return db.insert_engagement(self.db_path, candidate_id, EventKind(event).value, payload)

    def has_event(self, candidate_id: str, event: EventKind) -> bool:
        return db.has_engagement(self.db_path, candidate_id, EventKind(event).value)

    def list_events(self, candidate_id: str) -> list[EngagementEvent]:
        return [EngagementEvent.from_row(row) for row in db.get_engagements(self.db_path, candidate_id)]

    def stats(self, role_id: Optional[str] = None) -> dict:
        return db.get_pipeline_stats(self.db_path, role_id)
