"""
Error taxonomy for the traceability engine.

Every failure surfaced by the engine is a TraceabilityError subclass
carrying a stable ``kind`` string, a human-readable message and a
context dict (operation name, entity id, ...) for logging. The HTTP
layer maps kinds to status codes; the engine never does.
"""

from typing import Any


class TraceabilityError(Exception):
    """Base class for all engine errors."""

    kind = "TraceabilityError"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Structured form used by result envelopes and logs."""
        return {"kind": self.kind, "message": self.message, "context": dict(self.context)}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind!r}, message={self.message!r})"


class ValidationFailedError(TraceabilityError):
    """Malformed or missing input, rejected before any I/O."""

    kind = "ValidationFailed"

    def __init__(self, message: str, errors: list[str] | None = None, **context: Any):
        super().__init__(message, **context)
        self.errors = list(errors or [])

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = list(self.errors)
        return data


class ClockSkewError(ValidationFailedError):
    """A new step would be timestamped before the product's last recorded step."""

    kind = "ClockSkew"


class InvalidTransitionError(TraceabilityError):
    """Requested status is not the immediate successor of the current one."""

    kind = "InvalidTransition"


class ConflictError(InvalidTransitionError):
    """The ledger rejected a transition the engine had checked (concurrent writer)."""

    kind = "Conflict"


class ProductClosedError(TraceabilityError):
    """Mutation attempted on a product in the terminal SOLD state."""

    kind = "ProductClosed"


class NotFoundError(TraceabilityError):
    """Unknown product, farmer or certificate id."""

    kind = "NotFound"


class LedgerUnavailableError(TraceabilityError):
    kind = "LedgerUnavailable"


class LedgerTimeoutError(TraceabilityError):
    kind = "LedgerTimeout"


class AmbiguousOutcomeError(TraceabilityError):
    """
    A submit timed out: the transaction may or may not have been committed.

    Callers must reconcile (e.g. re-read the entity) before retrying.
    """

    kind = "AmbiguousOutcome"


class ContentUnavailableError(TraceabilityError):
    kind = "ContentUnavailable"


class HistoryInconsistentError(TraceabilityError):
    """Ledger data contradicts itself (derived vs reported status, foreign rows)."""

    kind = "HistoryInconsistent"


class CreationFailedError(TraceabilityError):
    """Content write or ledger submit failed while creating an entity."""

    kind = "CreationFailed"

    def __init__(self, message: str, cause: BaseException | None = None, **context: Any):
        super().__init__(message, **context)
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.cause is not None:
            data["cause"] = getattr(self.cause, "kind", type(self.cause).__name__)
        return data
