"""Resume screening and interview scheduling for engaged candidates."""

import structlog

from hireloop.core.errors import CollaboratorFailure, CollaboratorTimeout, InvalidInput, LedgerConflict
from hireloop.core.models import Candidate, CandidateStatus, EventKind
from hireloop.gateway.actions import CreateMeeting, ErrorKind, Err, ScoreResult, ScoreResume
from hireloop.gateway.gateway import ActionGateway
from hireloop.pipeline.ledger import CandidateLedger

log = structlog.get_logger()


def _raise_for(result: Err, kind: str) -> None:
    if result.kind == ErrorKind.TIMEOUT:
        raise CollaboratorTimeout(kind, result.message)
    if result.kind == ErrorKind.INVALID_INPUT:
        raise InvalidInput(result.message)
    raise CollaboratorFailure(kind, result.message)


def _require_candidate(ledger: CandidateLedger, candidate_id: str) -> Candidate:
    candidate = ledger.get(candidate_id)
    if candidate is None:
        raise InvalidInput(f"Candidate not found: {candidate_id}")
    return candidate


async def screen_candidate(
    ledger: CandidateLedger,
    gateway: ActionGateway,
    candidate_id: str,
    resume_text: str,
) -> ScoreResult:
    """Score a resume against the candidate's role and store the result.

    An interested candidate moves to screened. Candidates in any other status
    keep their status; only the scores are updated.
    """
    candidate = _require_candidate(ledger, candidate_id)
    role = ledger.get_role(candidate.role_id)

    result = await gateway.invoke(
        ScoreResume(requirements=role.requirements, resume_text=resume_text),
        role_id=role.id,
        candidate_id=candidate.id,
    )
    if not result.ok:
        _raise_for(result, ScoreResume.kind)

    score: ScoreResult = result.value
    ledger.update_scores(
        candidate.id,
        score.culture_score,
        score.technical_score,
        score.experience_score,
        score.fit_score,
        score.summary or None,
    )

    if candidate.status == CandidateStatus.INTERESTED:
        if not ledger.update_status(candidate.id, CandidateStatus.INTERESTED, CandidateStatus.SCREENED):
            raise LedgerConflict(f"Candidate {candidate.id} changed status during screening")

    log.info("candidate_screened", candidate_id=candidate.id, fit_score=score.fit_score)
    return score


async def schedule_interview(ledger: CandidateLedger, gateway: ActionGateway, candidate_id: str) -> str:
    """Create a booking link for a screened candidate and move them to interviewing.

    Returns the booking URL.
    """
    candidate = _require_candidate(ledger, candidate_id)
    if candidate.status != CandidateStatus.SCREENED:
        raise InvalidInput(f"Candidate {candidate.id} is {candidate.status.value}, expected screened")

    result = await gateway.invoke(
        CreateMeeting(candidate_id=candidate.id, candidate_name=candidate.name, candidate_email=candidate.email),
        role_id=candidate.role_id,
        candidate_id=candidate.id,
    )
    if not result.ok:
        _raise_for(result, CreateMeeting.kind)

    url = result.value.url
    if not ledger.update_status(candidate.id, CandidateStatus.SCREENED, CandidateStatus.INTERVIEWING):
        raise LedgerConflict(f"Candidate {candidate.id} changed status before scheduling")

    ledger.append_event(candidate.id, EventKind.SCHEDULED, {"url": url})
    log.info("interview_scheduled", candidate_id=candidate.id, url=url)
    return url
