"""Error taxonomy shared by the ledger, gateway and pipeline."""


class HireLoopError(Exception):
    """Base class for all HireLoop errors."""


class InvalidInput(HireLoopError):
    """Malformed request to the core. Not retried, reported to the caller."""


class CollaboratorFailure(HireLoopError):
    """An external collaborator call failed. Retried on the next cycle."""

    def __init__(self, kind: str, message: str):
        super().__init__(f"{kind}: {message}")
        self.kind = kind
        self.message = message


class CollaboratorTimeout(CollaboratorFailure):
    """An external collaborator call exceeded its time budget."""


class LedgerConflict(HireLoopError):
    """Optimistic concurrency loss: another actor already advanced the row."""


class InvalidTransition(HireLoopError):
    """Attempted candidate status move outside the state machine."""

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Invalid status transition: {from_status} -> {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class PipelineDegraded(HireLoopError):
    """A role exhausted the retry budget of every active outreach sequence."""

    def __init__(self, role_id: str, exhausted: int):
        super().__init__(f"Pipeline degraded for role {role_id}: {exhausted} sequences exhausted")
        self.role_id = role_id
        self.exhausted = exhausted
