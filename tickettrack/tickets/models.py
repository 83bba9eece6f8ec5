from __future__ import annotations

import copy
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Sequence

from tickettrack.core.errors import InvalidOperationError, ValidationError

_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")
_TIME_HOURS_RE = re.compile(r"(\d+)\s*h")
_TIME_MINUTES_RE = re.compile(r"(\d+)\s*min")


def utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so comparisons never mix offsets."""

    if not isinstance(value, datetime):
        raise TypeError(f"Expected datetime, got {type(value).__name__}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def new_id() -> str:
    return str(uuid.uuid4())


def parse_time_to_minutes(value: str | None) -> int:
    """Parse durations such as ``"2h 30min"``, ``"1h"`` or ``"45min"`` into minutes."""

    if not value or not value.strip():
        return 0
    total = 0
    hours = _TIME_HOURS_RE.search(value)
    if hours:
        total += int(hours.group(1)) * 60
    minutes = _TIME_MINUTES_RE.search(value)
    if minutes:
        total += int(minutes.group(1))
    return total


def parse_version(version: str) -> tuple[int, int, int]:
    if not _VERSION_RE.match(version or ""):
        raise ValidationError("Version must follow format: x.y.z (e.g., 1.0.0)")
    major, minor, patch = (int(part) for part in version.split("."))
    return major, minor, patch


class TicketStatus(str, Enum):
    """Lifecycle states of a ticket."""

    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class FieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SELECT = "select"
    DATE = "date"
    NUMBER = "number"
    MARKDOWN = "markdown"
    CHECKLIST = "checklist"


@dataclass(slots=True)
class TicketMetadata:
    """Ownership and time-tracking information attached to a ticket."""

    dev: str = ""
    estimate: str | None = None
    actual_time: str | None = None
    priority: str | None = None


@dataclass(slots=True)
class Ticket:
    """A unit of work created from a template and tracked through its lifecycle."""

    id: str
    title: str
    status: TicketStatus = TicketStatus.DRAFT
    template_id: str | None = None
    template_version: str | None = None
    description: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    metadata: TicketMetadata = field(default_factory=TicketMetadata)
    tags: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    def __post_init__(self) -> None:
        self.status = TicketStatus(self.status)
        self.created_at = ensure_aware(self.created_at)
        self.updated_at = ensure_aware(self.updated_at)
        if self.completed_at is not None:
            self.completed_at = ensure_aware(self.completed_at)
        normalized: list[str] = []
        for tag in self.tags:
            cleaned = tag.strip().lower()
            if cleaned and cleaned not in normalized:
                normalized.append(cleaned)
        self.tags = normalized

    def validate(self) -> None:
        if not self.id or not self.id.strip():
            raise ValidationError("Ticket id is required")
        if not self.title or not self.title.strip():
            raise ValidationError("Ticket title is required")
        if self.template_id is not None and not self.template_id.strip():
            raise ValidationError("Template id must not be blank")
        if self.status is TicketStatus.COMPLETED and self.completed_at is None:
            raise ValidationError("Completed tickets must have completion date")
        if self.completed_at is not None and self.completed_at < self.created_at:
            raise ValidationError("Completion date cannot precede creation date")

    def mark_as_completed(self, *, now: datetime | None = None) -> None:
        if self.status is TicketStatus.COMPLETED:
            raise InvalidOperationError("complete ticket", "ticket is already completed")
        if self.status is TicketStatus.ARCHIVED:
            raise InvalidOperationError("complete ticket", "archived tickets are read-only")
        moment = ensure_aware(now) if now else utcnow()
        self.status = TicketStatus.COMPLETED
        self.completed_at = moment
        self.updated_at = moment

    def mark_as_in_progress(self, *, now: datetime | None = None) -> None:
        if self.status in (TicketStatus.COMPLETED, TicketStatus.ARCHIVED):
            raise InvalidOperationError(
                "move ticket to in progress", f"ticket is {self.status.value}"
            )
        self.status = TicketStatus.IN_PROGRESS
        self.updated_at = ensure_aware(now) if now else utcnow()

    def can_be_archived(self) -> bool:
        return self.status is TicketStatus.COMPLETED

    def archive(self, *, now: datetime | None = None) -> None:
        if not self.can_be_archived():
            raise InvalidOperationError("archive ticket", "only completed tickets can be archived")
        self.status = TicketStatus.ARCHIVED
        self.updated_at = ensure_aware(now) if now else utcnow()

    def is_editable(self) -> bool:
        return self.status is not TicketStatus.ARCHIVED

    def add_tag(self, tag: str) -> None:
        cleaned = (tag or "").strip().lower()
        if not cleaned:
            raise ValidationError("Tag cannot be empty")
        if cleaned in self.tags:
            return
        self.tags.append(cleaned)
        self.updated_at = utcnow()

    def remove_tag(self, tag: str) -> None:
        cleaned = (tag or "").strip().lower()
        if cleaned in self.tags:
            self.tags.remove(cleaned)
            self.updated_at = utcnow()

    def has_tag(self, tag: str) -> bool:
        return tag.strip().lower() in self.tags

    @property
    def estimate_minutes(self) -> int | None:
        if not self.metadata.estimate:
            return None
        return parse_time_to_minutes(self.metadata.estimate)

    @property
    def actual_minutes(self) -> int | None:
        if not self.metadata.actual_time:
            return None
        return parse_time_to_minutes(self.metadata.actual_time)


@dataclass(slots=True)
class FieldOption:
    value: str
    label: str


@dataclass(slots=True)
class TemplateField:
    """Single input definition inside a template section."""

    id: str
    label: str
    type: FieldType
    required: bool = False
    order: int = 0
    placeholder: str | None = None
    options: list[FieldOption] = field(default_factory=list)
    default_value: Any = None


@dataclass(slots=True)
class Section:
    id: str
    title: str
    fields: list[TemplateField] = field(default_factory=list)
    order: int = 0
    icon: str | None = None


@dataclass(slots=True)
class Template:
    """Versioned form structure that tickets are filled from."""

    id: str
    name: str
    version: str = "1.0.0"
    sections: list[Section] = field(default_factory=list)
    description: str = ""
    is_default: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    author: str | None = None

    def __post_init__(self) -> None:
        self.created_at = ensure_aware(self.created_at)
        self.updated_at = ensure_aware(self.updated_at)

    @property
    def version_key(self) -> tuple[int, int, int]:
        return parse_version(self.version)

    def validate(self) -> None:
        name = (self.name or "").strip()
        if len(name) < 3:
            raise ValidationError("Template name must have at least 3 characters")
        if len(name) > 200:
            raise ValidationError("Template name must be at most 200 characters")
        parse_version(self.version)
        if not self.sections:
            raise ValidationError("Template must have at least one section")

        section_ids: set[str] = set()
        for index, section in enumerate(self.sections):
            if not section.id or not section.id.strip():
                raise ValidationError(f"Section at index {index} must have an ID")
            if section.id in section_ids:
                raise ValidationError(f"Duplicate section ID: {section.id}")
            section_ids.add(section.id)
            if not section.title or not section.title.strip():
                raise ValidationError(f"Section {section.id} must have a title")
            if not section.fields:
                raise ValidationError(f"Section {section.id} must have at least one field")
            self._validate_fields(section)

    @staticmethod
    def _validate_fields(section: Section) -> None:
        field_ids: set[str] = set()
        for index, item in enumerate(section.fields):
            if not item.id or not item.id.strip():
                raise ValidationError(f"Field at index {index} in section {section.id} must have an ID")
            if item.id in field_ids:
                raise ValidationError(f"Duplicate field ID in section {section.id}: {item.id}")
            field_ids.add(item.id)
            if not item.label or not item.label.strip():
                raise ValidationError(f"Field {item.id} must have a label")

    def field_by_id(self, field_id: str) -> TemplateField | None:
        for section in self.sections:
            for item in section.fields:
                if item.id == field_id:
                    return item
        return None

    def iter_fields(self) -> Sequence[TemplateField]:
        return [item for section in self.sections for item in section.fields]

    @property
    def total_field_count(self) -> int:
        return sum(len(section.fields) for section in self.sections)

    @property
    def required_field_count(self) -> int:
        return sum(1 for item in self.iter_fields() if item.required)

    def missing_required_fields(self, data: Mapping[str, Any]) -> list[TemplateField]:
        """Return required fields that have no meaningful value in ``data``."""

        missing: list[TemplateField] = []
        for item in self.iter_fields():
            if not item.required:
                continue
            value = data.get(item.id)
            if value is None or value == "" or value == [] or value == {}:
                missing.append(item)
        return missing

    def duplicate(self, new_name: str, *, now: datetime | None = None) -> Template:
        if not new_name or len(new_name.strip()) < 3:
            raise ValidationError("New template name must have at least 3 characters")
        moment = ensure_aware(now) if now else utcnow()
        return Template(
            id=new_id(),
            name=new_name.strip(),
            version="1.0.0",
            sections=copy.deepcopy(self.sections),
            description=self.description,
            is_default=False,
            created_at=moment,
            updated_at=moment,
            author=self.author,
        )

    def create_new_version(self, *, now: datetime | None = None) -> Template:
        """Copy the template under the same name with the next major version."""

        major, _, _ = self.version_key
        moment = ensure_aware(now) if now else utcnow()
        return Template(
            id=new_id(),
            name=self.name,
            version=f"{major + 1}.0.0",
            sections=copy.deepcopy(self.sections),
            description=self.description,
            is_default=False,
            created_at=moment,
            updated_at=moment,
            author=self.author,
        )
