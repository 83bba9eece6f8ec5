from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from tickettrack.metrics import MetricsRegistry, register_default_metrics
from tickettrack.tickets import FieldType, Section, Template, TemplateField, Ticket, TicketMetadata, TicketStatus

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_ticket():
    sequence = count(1)

    def factory(**overrides) -> Ticket:
        index = next(sequence)
        values = {
            "id": f"t-{index:03d}",
            "title": f"Ticket {index}",
            "created_at": BASE_TIME + timedelta(minutes=index),
            "updated_at": BASE_TIME + timedelta(minutes=index),
        }
        values.update(overrides)
        if values.get("status") == TicketStatus.COMPLETED and "completed_at" not in values:
            values["completed_at"] = values["created_at"] + timedelta(hours=1)
        if isinstance(values.get("metadata"), dict):
            values["metadata"] = TicketMetadata(**values["metadata"])
        return Ticket(**values)

    return factory


@pytest.fixture
def make_template():
    def factory(**overrides) -> Template:
        values = {
            "id": "tpl-1",
            "name": "Bug report",
            "version": "1.0.0",
            "sections": [
                Section(
                    id="details",
                    title="Details",
                    fields=[
                        TemplateField(id="summary", label="Summary", type=FieldType.TEXT, required=True),
                        TemplateField(id="type", label="Type", type=FieldType.SELECT),
                    ],
                )
            ],
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME,
        }
        values.update(overrides)
        return Template(**values)

    return factory


@pytest.fixture
def metrics() -> MetricsRegistry:
    return register_default_metrics(MetricsRegistry())
