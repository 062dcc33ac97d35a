"""Engagement event ingestion: provider signals onto ledger transitions."""

from enum import Enum
from typing import Optional

import structlog

from hireloop.core.errors import InvalidInput
from hireloop.core.models import CandidateStatus, EventKind, is_valid_transition
from hireloop.pipeline.ledger import CandidateLedger

log = structlog.get_logger()

EVENT_STATUS = {
    EventKind.OPENED: CandidateStatus.CONTACTED,
    EventKind.REPLIED: CandidateStatus.INTERESTED,
    EventKind.BOUNCED: CandidateStatus.REJECTED,
}


class IngestResult(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"


class EventIngestor:
    """Records engagement events and projects them onto candidate status.

    The event log is the source of truth. Status is a cached projection, so a
    lost CAS is ignored: the event is still recorded and status stays with
    whichever actor won.
    """

    def __init__(self, ledger: CandidateLedger):
        self.ledger = ledger

    def ingest(self, candidate_id: str, event_kind: str, payload: Optional[dict] = None) -> IngestResult:
        if not candidate_id:
            raise InvalidInput("candidate_id is required")
        if not event_kind:
            raise InvalidInput("event kind is required")
        try:
            event = EventKind(event_kind)
        except ValueError:
            raise InvalidInput(f"Unknown event kind: {event_kind}") from None

        candidate = self.ledger.get(candidate_id)
        if candidate is None:
            log.info("ingest_candidate_not_found", candidate_id=candidate_id, event=event.value)
            return IngestResult.NOT_FOUND

        self.ledger.append_event(candidate_id, event, payload)
        log.info("engagement_recorded", candidate_id=candidate_id, event=event.value)

        target = EVENT_STATUS.get(event)
        if target is None or target == candidate.status:
            return IngestResult.SUCCESS

        # e.g. replied while still sourced; the Sequencer reads the logged reply
        if not is_valid_transition(candidate.status, target):
            log.info("engagement_status_skipped", candidate_id=candidate_id, event=event.value,
                     status=candidate.status.value, target=target.value)
            return IngestResult.SUCCESS

        if not self.ledger.update_status(candidate_id, candidate.status, target):
            log.info("engagement_status_conflict", candidate_id=candidate_id, event=event.value)
        return IngestResult.SUCCESS

    def ingest_notification(self, notification: dict) -> IngestResult:
        """Ingest a raw provider notification.

        Providers name the fields differently: candidate_id or recipient_id,
        event or type.
        """
        if not isinstance(notification, dict):
            raise InvalidInput("Notification must be a JSON object")
        candidate_id = notification.get("candidate_id") or notification.get("recipient_id")
        event_kind = notification.get("event") or notification.get("type")
        if not candidate_id or not event_kind:
            raise InvalidInput("Missing candidate_id or event")
        return self.ingest(str(candidate_id), str(event_kind), notification)
