class ProcureMatchError(Exception):
    """Base class for all workflow errors."""


class ConfigurationMissing(ProcureMatchError):
    """No valid backing-store descriptor; the core refuses to operate."""


class SubscriptionFailure(ProcureMatchError):
    """The store watch reported an error."""


class TransitionRejected(ProcureMatchError):
    """WorkflowGate denied a stage transition."""

    def __init__(self, process_id: str, stage: str, reason: str):
        super().__init__(f"Transition rejected for {process_id}/{stage}: {reason}")
        self.process_id = process_id
        self.stage = stage
        self.reason = reason


class DispatchFailure(ProcureMatchError):
    """Verification endpoint unreachable or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StoreWriteError(ProcureMatchError):
    """A partial-field write to the backing store failed."""


class MalformedRecord(ProcureMatchError):
    """A stored document could not be mapped cleanly."""
