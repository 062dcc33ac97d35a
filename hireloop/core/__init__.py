"""Core infrastructure: CLI, config, database, records, errors."""

from hireloop.core.config import (
    Settings,
    SequenceConfig,
    RateLimitConfig,
    OrchestratorConfig,
    GatewayConfig,
    GmailConfig,
    load_settings,
    render_template,
)
from hireloop.core.db import init_db, utc_now
from hireloop.core.errors import (
    HireLoopError,
    InvalidInput,
    CollaboratorFailure,
    CollaboratorTimeout,
    LedgerConflict,
    InvalidTransition,
    PipelineDegraded,
)
from hireloop.core.models import (
    Role,
    RoleStatus,
    Candidate,
    CandidateStatus,
    OutreachRecord,
    EngagementEvent,
    EventKind,
)
