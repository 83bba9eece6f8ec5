"""Error taxonomy shared by the ticket core."""

from __future__ import annotations


class DomainError(Exception):
    """Business rule violation, independent of any storage backend."""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class ValidationError(DomainError):
    """Raised when a value is malformed at construction time."""

    code = "VALIDATION_ERROR"


class DuplicateError(DomainError):
    """Raised when a uniqueness rule would be broken."""

    code = "DUPLICATE"

    def __init__(self, entity: str, field: str, value: str) -> None:
        super().__init__(f"{entity} with {field} '{value}' already exists")


class InvalidOperationError(DomainError):
    """Raised when an operation is not allowed in the current state."""

    code = "INVALID_OPERATION"

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(f"Cannot {operation}: {reason}")


class InvalidStatusTransitionError(DomainError):
    """Raised when a ticket status transition is not permitted."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot transition from status '{current}' to '{target}'")


class TicketNotFoundError(DomainError):
    """Raised by services when an operation targets a non-existent ticket."""

    code = "TICKET_NOT_FOUND"


class TemplateNotFoundError(DomainError):
    """Raised by services when an operation targets a non-existent template."""

    code = "TEMPLATE_NOT_FOUND"


class RepositoryError(RuntimeError):
    """Infrastructure failure raised by a repository backend.

    The original exception is available through ``__cause__``; the message
    only names the failed operation.
    """

    def __init__(self, operation: str) -> None:
        super().__init__(f"Repository operation '{operation}' failed")
        self.operation = operation
