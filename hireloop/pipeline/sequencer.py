"""Per-candidate outreach sequence: which step to send next, and when."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union

import structlog

from hireloop.core.config import SequenceConfig
from hireloop.core.models import Candidate, CandidateStatus, EventKind, OutreachRecord
from hireloop.gateway.actions import DeliveryReceipt, DraftedMessage
from hireloop.pipeline.ledger import CandidateLedger

log = structlog.get_logger()

# Statuses that still receive automated outreach. A reply moves the candidate
# to interested, which ends the sequence.
CONTACTABLE_STATUSES = frozenset({CandidateStatus.SOURCED, CandidateStatus.CONTACTED})


@dataclass(frozen=True)
class Send:
    step: int


@dataclass(frozen=True)
class Wait:
    until: datetime


@dataclass(frozen=True)
class Dormant:
    reason: str


NextAction = Union[Send, Wait, Dormant]


class Sequencer:
    """Outreach step state machine driven by the outreach record."""

    def __init__(self, config: SequenceConfig, ledger: CandidateLedger):
        self.config = config
        self.ledger = ledger

    def next_action(self, candidate: Candidate, outreach: Optional[OutreachRecord], now: datetime) -> NextAction:
        if candidate.status not in CONTACTABLE_STATUSES:
            return Dormant(f"status_{candidate.status.value}")
        if outreach is None and candidate.status != CandidateStatus.SOURCED:
            return Dormant("no_outreach_record")
        if not candidate.email:
            return Dormant("no_email")
        if outreach is None:
            return Send(1)
        if outreach.dormant:
            return Dormant("retries_exhausted")
        # A reply can land between a send and its sourced -> contacted write, in
        # which case the status change is skipped but the event is still logged.
        if not outreach.never_sent and self.ledger.has_event(candidate.id, EventKind.REPLIED):
            return Dormant("replied")

        if outreach.never_sent:
            step = outreach.step
        else:
            if outreach.next_send_at is None or outreach.step >= self.config.max_steps:
                return Dormant("sequence_complete")
            step = outreach.step + 1

        if outreach.next_send_at is not None and now < outreach.next_send_at:
            return Wait(outreach.next_send_at)
        return Send(step)

    def interval_after(self, step: int) -> timedelta:
        """Delay before the step following `step`: base * multiplier^step, capped."""
        hours = self.config.base_interval_hours * (self.config.multiplier ** step)
        return timedelta(hours=min(hours, self.config.max_interval_hours))

    def retry_delay(self, failures: int) -> timedelta:
        """Delay after the n-th consecutive failure, capped."""
        minutes = self.config.retry_base_minutes * (self.config.retry_multiplier ** max(failures - 1, 0))
        return timedelta(minutes=min(minutes, self.config.retry_max_minutes))

    def record_success(
        self,
        outreach: OutreachRecord,
        step: int,
        message: DraftedMessage,
        receipt: DeliveryReceipt,
        now: datetime,
    ) -> bool:
        """Advance the record to `step` after a successful send.

        Returns False when another actor changed the record first.
        """
        next_send_at = None
        if step < self.config.max_steps:
            next_send_at = now + self.interval_after(step)

        meta = dict(outreach.meta)
        meta.update({
            "last_subject": message.subject,
            "last_body": message.body,
            "last_message_id": receipt.message_id,
            "provider": receipt.provider,
        })
        meta.pop("last_error", None)
        if step == 1:
            meta["first_subject"] = message.subject

        advanced = self.ledger.advance_outreach(
            outreach, step, now, next_send_at, meta, thread_id=receipt.thread_id
        )
        if advanced:
            log.info("outreach_step_sent", candidate_id=outreach.candidate_id, step=step,
                     next_send_at=next_send_at.isoformat() if next_send_at else None)
        return advanced

    def record_failure(self, outreach: OutreachRecord, error: str, now: datetime) -> bool:
        """Count a failed send and schedule the retry.

        Returns True if the retry budget is now exhausted and the record was
        marked dormant.
        """
        failures = outreach.failures + 1
        exhausted = failures >= self.config.max_consecutive_failures
        next_send_at = None if exhausted else now + self.retry_delay(failures)

        meta = dict(outreach.meta)
        meta["last_error"] = error

        written = self.ledger.record_outreach_failure(outreach, failures, next_send_at, exhausted, meta)
        if not written:
            log.info("outreach_failure_conflict", candidate_id=outreach.candidate_id)
            return False

        if exhausted:
            log.warning("outreach_retry_exhausted", candidate_id=outreach.candidate_id,
                        failures=failures, error=error)
        else:
            log.info("outreach_retry_scheduled", candidate_id=outreach.candidate_id,
                     failures=failures, next_send_at=next_send_at.isoformat())
        return exhausted
