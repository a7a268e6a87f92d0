from __future__ import annotations


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core."""


class ValidationError(SchedulingError):
    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class NotFoundError(SchedulingError):
    pass


class ConcurrencyConflict(SchedulingError):
    """The schedule changed (or was claimed) since it was read.

    Callers should move on and re-poll; retrying the same claim is pointless.
    """


class ComputationError(SchedulingError):
    """The occurrence calculator produced a date that does not advance."""


class PreconditionFailed(SchedulingError):
    pass
