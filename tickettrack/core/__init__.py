"""Configuration, logging and error primitives."""

from .config import Settings, get_settings
from .errors import (
    DomainError,
    DuplicateError,
    InvalidOperationError,
    InvalidStatusTransitionError,
    RepositoryError,
    TemplateNotFoundError,
    TicketNotFoundError,
    ValidationError,
)

__all__ = [
    "DomainError",
    "DuplicateError",
    "InvalidOperationError",
    "InvalidStatusTransitionError",
    "RepositoryError",
    "Settings",
    "TemplateNotFoundError",
    "TicketNotFoundError",
    "ValidationError",
    "get_settings",
]
