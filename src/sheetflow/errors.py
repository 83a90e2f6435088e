"""
Exception types raised by sheetflow.
Everything derives from SheetFlowError so a caller can catch the whole family
at once.  Transport failures from the Google client are wrapped, never retried,
and carry the original exception as __cause__.
"""
from dataclasses import dataclass


class SheetFlowError(Exception):
    """
    Base class for all sheetflow errors.
    completed is set when a bulk update or delete stops part way.
    """
    completed: int = 0


class SheetFlowConfigurationError(SheetFlowError):
    """Bad configuration or credentials detected at construction time."""
    pass


@dataclass
class Violation():
    """A single field level validation failure."""
    field: str
    message: str
    kind: str = ""

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


class SheetFlowValidationError(SheetFlowError):
    """
    A record failed schema validation.
    All violations found are carried, not just the first one.
    """
    def __init__(self, message: str, violations: list[Violation]|None = None) -> None:
        self.violations = list(violations) if violations else []
        super().__init__(message)

    @property
    def fields(self) -> list[str]:
        return [v.field for v in self.violations]

    def __str__(self) -> str:
        msg = super().__str__()
        if self.violations:
            msg += ": " + "; ".join(str(v) for v in self.violations)
        return msg


class SheetFlowConnectionError(SheetFlowError):
    """
    Backing store I/O failed.
    For bulk operations completed is the number of records that were
    persisted before the failure.
    """
    def __init__(self, message: str, completed: int = 0) -> None:
        self.completed = completed
        super().__init__(message)


class SheetFlowAuthenticationError(SheetFlowError):
    """Request or credentials were refused."""
    pass


class SheetFlowQueryError(SheetFlowError):
    """Malformed query or aggregate, or data the engine cannot reduce."""
    pass
