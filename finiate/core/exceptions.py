class FiniateError(Exception):
    """Base exception for finiate."""

    pass


class ValidationError(FiniateError):
    """Raised when input is rejected before any state change."""

    pass


class DuplicateAgendaError(ValidationError):
    """Raised when shelving a title that already has a pending (stored) agenda."""

    def __init__(self, title: str):
        self.title = title
        super().__init__(f"A stored agenda titled '{title}' already exists")


class NotFoundError(FiniateError):
    """Raised when a referenced agenda or slot does not exist."""

    pass


class InvalidTransitionError(FiniateError):
    """Raised when a lifecycle transition is not allowed from the current status."""

    def __init__(self, agenda_id: str, current: str, attempted: str, reason: str):
        self.agenda_id = agenda_id
        self.current = current
        self.attempted = attempted
        self.reason = reason
        super().__init__(f"Cannot {attempted} agenda {agenda_id} ({current}): {reason}")


class StoreError(FiniateError):
    """Raised when the persistence backend fails (I/O, constraint, timeout).

    Attributes:
        cause: Short cause label ("timeout", "constraint", "connectivity", "backend")
        transient: True when a single retry may succeed
    """

    def __init__(self, message: str, cause: str = "backend", transient: bool = False):
        self.cause = cause
        self.transient = transient
        super().__init__(message)


class DataCorruptionError(FiniateError):
    """Raised when persisted data is outside the known contract. Never retried."""

    pass


class PartialFailureError(FiniateError):
    """Raised when one half of a combined agenda+log write succeeded and the other failed.

    Only reachable on non-transactional backends.
    """

    def __init__(self, succeeded: str, failed: str, agenda_id: str, cause: Exception):
        self.succeeded = succeeded
        self.failed = failed
        self.agenda_id = agenda_id
        self.cause = cause
        super().__init__(
            f"Partial write on agenda {agenda_id}: {succeeded} succeeded, {failed} failed ({cause}). "
            "Reconcile manually."
        )
