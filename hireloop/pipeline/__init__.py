"""Recruiting pipeline: ledger, sequencer, orchestrator, ingestion, screening."""

from hireloop.pipeline.ledger import CandidateLedger
from hireloop.pipeline.sequencer import Sequencer, Send, Wait, Dormant
from hireloop.pipeline.orchestrator import Orchestrator, CycleSummary
from hireloop.pipeline.ingestor import EventIngestor, IngestResult
from hireloop.pipeline.screening import screen_candidate, schedule_interview
from hireloop.pipeline.importer import import_candidates
from hireloop.pipeline.export import export_shortlist
