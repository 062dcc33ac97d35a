"""Pipeline orchestrator: the recurring control loop over open roles."""

import asyncio
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Optional

import structlog

from hireloop.core.config import Settings
from hireloop.core.db import utc_now
from hireloop.core.errors import InvalidTransition, PipelineDegraded
from hireloop.core.models import Candidate, CandidateStatus, EventKind, OutreachRecord, Role
from hireloop.gateway.actions import DraftOutreach, EnrichLeads, SearchLeads, SendOutreach
from hireloop.gateway.gateway import ActionGateway
from hireloop.pipeline.ledger import CandidateLedger
from hireloop.pipeline.sequencer import Dormant, Send, Sequencer, Wait
from hireloop.services.slack_notifier import SlackNotifier

log = structlog.get_logger()


@dataclass
class CycleSummary:
    roles_processed: int = 0
    leads_requested: int = 0
    candidates_created: int = 0
    sends: int = 0
    waits: int = 0
    dormant: int = 0
    conflicts: int = 0
    rate_limited: int = 0
    failures: list[str] = field(default_factory=list)
    degraded_roles: list[str] = field(default_factory=list)
    timed_out: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class RateLimiter:
    """Per-cycle budgets keyed by (scope, id, action)."""

    def __init__(self):
        self._used: dict[tuple, int] = defaultdict(int)

    def try_acquire(self, *budgets: tuple) -> bool:
        """Take one unit from every (key, limit) budget, or from none."""
        for key, limit in budgets:
            if limit is not None and self._used[key] >= limit:
                return False
        for key, _ in budgets:
            self._used[key] += 1
        return True


class Orchestrator:
    """Keeps every open role's pipeline filled and its sequences moving.

    Each role is processed independently. Failures are scoped to one
    candidate or one role and are reported in the cycle summary; the cycle
    itself does not raise for partial errors.
    """

    def __init__(
        self,
        ledger: CandidateLedger,
        gateway: ActionGateway,
        settings: Settings,
        notifier: Optional[SlackNotifier] = None,
    ):
        self.ledger = ledger
        self.gateway = gateway
        self.settings = settings
        self.limits = settings.rate_limits
        self.sequencer = Sequencer(settings.sequence, ledger)
        self.notifier = notifier

    async def run_cycle(self, now: Optional[datetime] = None) -> CycleSummary:
        """Run one orchestration cycle over all open roles."""
        now = now or utc_now()
        summary = CycleSummary()
        limiter = RateLimiter()

        roles = self.ledger.list_open_roles()
        log.info("cycle_started", roles=len(roles), now=now.isoformat())

        semaphore = asyncio.Semaphore(max(self.settings.orchestrator.max_concurrent_roles, 1))

        async def guarded(role: Role) -> None:
            async with semaphore:
                await self.process_role(role, summary, limiter, now)

        tasks = [guarded(role) for role in roles]
        timeout = self.settings.orchestrator.cycle_timeout_seconds
        try:
            if timeout:
                await asyncio.wait_for(asyncio.gather(*tasks), timeout=timeout)
            else:
                await asyncio.gather(*tasks)
        except asyncio.TimeoutError:
            summary.timed_out = True
            log.warning("cycle_timed_out", timeout=timeout, roles_processed=summary.roles_processed)

        log.info("cycle_completed", **summary.to_dict())
        return summary

    async def process_role(self, role: Role, summary: CycleSummary, limiter: RateLimiter, now: datetime) -> None:
        try:
            depth = self.ledger.count_by_role(role.id)
            candidates = self.ledger.list_by_role(role.id)

            if depth < role.min_pipeline:
                await self.replenish(role, depth, summary, limiter)

            outcomes = []
            for candidate in candidates:
                if candidate.is_terminal:
                    continue
                outcomes.append(await self.advance_candidate(role, candidate, summary, limiter, now))

            active = [o for o in outcomes if o != "dormant"]
            exhausted = active.count("exhausted")
            if active and exhausted == len(active):
                await self._report_degraded(role, exhausted, summary)

            summary.roles_processed += 1
        except Exception as e:
            log.error("role_processing_failed", role_id=role.id, error=str(e))
            summary.failures.append(f"role {role.id}: {e}")

    async def replenish(self, role: Role, depth: int, summary: CycleSummary, limiter: RateLimiter) -> int:
        """Source leads until the role reaches min_pipeline or the call budget runs out.

        Returns the number of candidates created.
        """
        deficit = role.min_pipeline - depth
        created = 0
        log.info("pipeline_underfilled", role_id=role.id, depth=depth, min_pipeline=role.min_pipeline)

        while deficit > 0:
            if not limiter.try_acquire((("role", role.id, "sourcing"), self.limits.max_sourcing_calls_per_role)):
                log.info("sourcing_rate_limited", role_id=role.id, deficit=deficit)
                summary.rate_limited += 1
                break

            count = deficit
            if self.limits.leads_per_search:
                count = min(count, self.limits.leads_per_search)
            summary.leads_requested += count
            searched = await self.gateway.invoke(
                SearchLeads(
                    role_id=role.id,
                    requirements=role.requirements,
                    count=count,
                    offset=self.ledger.count_all_by_role(role.id),
                ),
                role_id=role.id,
            )
            if not searched.ok:
                summary.failures.append(f"role {role.id}: search_leads {searched.kind.value}: {searched.message}")
                break
            if not searched.value:
                log.info("search_returned_no_leads", role_id=role.id)
                break

            enriched = await self.gateway.invoke(EnrichLeads(leads=tuple(searched.value)), role_id=role.id)
            if not enriched.ok:
                summary.failures.append(f"role {role.id}: enrich_leads {enriched.kind.value}: {enriched.message}")
                break

            batch = 0
            for lead in enriched.value:
                candidate = self.ledger.add_candidate(
                    role.id,
                    lead.name,
                    email=lead.email,
                    current_title=lead.title,
                    company=lead.company,
                    location=lead.location,
                    linkedin=lead.linkedin,
                    public_url=lead.public_url or None,
                    company_domain=lead.company_domain,
                )
                if candidate:
                    batch += 1
            created += batch
            summary.candidates_created += batch
            log.info("leads_sourced", role_id=role.id, requested=count, created=batch)

            if batch == 0:
                break
            deficit -= batch

        return created

    async def advance_candidate(
        self,
        role: Role,
        candidate: Candidate,
        summary: CycleSummary,
        limiter: RateLimiter,
        now: datetime,
    ) -> str:
        """Drive one candidate's sequence. Returns a short outcome label."""
        outreach = self.ledger.get_outreach(candidate.id)
        action = self.sequencer.next_action(candidate, outreach, now)

        if isinstance(action, Dormant):
            summary.dormant += 1
            return "exhausted" if action.reason == "retries_exhausted" else "dormant"
        if isinstance(action, Wait):
            summary.waits += 1
            return "waiting"

        budgets = [(("role", role.id, "send"), self.limits.max_sends_per_role),
                   (("tenant", role.org_id, "send"), self.limits.max_sends_per_tenant)]
        if not limiter.try_acquire(*budgets):
            summary.rate_limited += 1
            return "rate_limited"

        return await self.send_step(role, candidate, outreach, action, summary, now)

    async def send_step(
        self,
        role: Role,
        candidate: Candidate,
        seen: Optional[OutreachRecord],
        action: Send,
        summary: CycleSummary,
        now: datetime,
    ) -> str:
        # Claim the version the Sequencer decided on; a fresh record is version 0.
        record = seen or self.ledger.open_outreach(candidate.id, provider=self._provider())
        expected = seen.version if seen else 0
        lease_until = now + timedelta(minutes=self.settings.sequence.claim_lease_minutes)
        outreach = None
        if record.version == expected:
            outreach = self.ledger.claim_outreach(record, lease_until)
        if outreach is None:
            log.info("outreach_claim_lost", candidate_id=candidate.id, step=action.step)
            summary.conflicts += 1
            return "conflict"

        drafted = await self.gateway.invoke(
            DraftOutreach(
                requirements=role.requirements,
                candidate=candidate.profile(),
                tone=self.settings.orchestrator.tone,
                step=action.step,
                previous_subject=outreach.meta.get("first_subject"),
                role_title=role.title,
            ),
            role_id=role.id,
            candidate_id=candidate.id,
        )
        if drafted.ok:
            sent = await self.gateway.invoke(
                SendOutreach(
                    message=drafted.value,
                    recipient=candidate.email,
                    thread_id=outreach.thread_id,
                    previous_message_id=outreach.meta.get("last_message_id"),
                ),
                role_id=role.id,
                candidate_id=candidate.id,
            )
        else:
            sent = drafted

        if not sent.ok:
            summary.failures.append(f"candidate {candidate.id}: {sent.kind.value}: {sent.message}")
            exhausted = self.sequencer.record_failure(outreach, f"{sent.kind.value}: {sent.message}", now)
            return "exhausted" if exhausted else "failed"

        # The message went out, so it is logged even if the record write loses.
        self.ledger.append_event(candidate.id, EventKind.SENT, {
            "step": action.step,
            "provider": sent.value.provider,
            "message_id": sent.value.message_id,
            "subject": drafted.value.subject,
        })
        if not self.sequencer.record_success(outreach, action.step, drafted.value, sent.value, now):
            summary.conflicts += 1
            return "conflict"

        summary.sends += 1

        if candidate.status == CandidateStatus.SOURCED:
            try:
                if not self.ledger.update_status(candidate.id, CandidateStatus.SOURCED, CandidateStatus.CONTACTED):
                    summary.conflicts += 1
            except InvalidTransition as e:
                log.error("invalid_transition", candidate_id=candidate.id, error=str(e))
        return "sent"

    def _provider(self) -> str:
        return "gmail" if self.gateway.mode_for("send_outreach") == "live" else "mock"

    async def _report_degraded(self, role: Role, exhausted: int, summary: CycleSummary) -> None:
        signal = PipelineDegraded(role.id, exhausted)
        log.warning("pipeline_degraded", role_id=role.id, title=role.title, exhausted=exhausted)
        summary.degraded_roles.append(role.id)
        if self.notifier and self.settings.notifications.notify_on_degraded:
            await self.notifier.send_degraded_alert(role.title, str(signal))
