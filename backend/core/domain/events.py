"""
core.domain.events — Tagged domain events emitted by the complaint workflow.

Each event is a frozen dataclass with a fixed field set and a class-level
``event_type`` tag.  Services construct them and hand them to
``NotificationPublisher.publish``; they never carry model instances, only
primitive ids and values, so they are safe to deliver after the request
has finished.

    ComplaintCreated   — a citizen submitted a new complaint
    StatusChanged      — the lifecycle controller moved a complaint
    AssignmentChanged  — a complaint was bound to a (new) provider
    UpdateAdded        — a public progress note was appended
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, ClassVar, Union


@dataclass(frozen=True)
class ComplaintCreated:
    event_type: ClassVar[str] = "complaint_created"

    complaint_id: int
    title: str
    category: str
    priority: str
    is_emergency: bool
    department_id: int
    submitted_by: int


@dataclass(frozen=True)
class StatusChanged:
    event_type: ClassVar[str] = "status_changed"

    complaint_id: int
    old_status: str
    new_status: str
    actor_id: int | None = None


@dataclass(frozen=True)
class AssignmentChanged:
    event_type: ClassVar[str] = "assignment_changed"

    complaint_id: int
    provider_id: int
    actor_id: int | None = None


@dataclass(frozen=True)
class UpdateAdded:
    event_type: ClassVar[str] = "update_added"

    complaint_id: int
    update_id: int
    message: str
    update_type: str
    actor_id: int | None = None


ComplaintEvent = Union[ComplaintCreated, StatusChanged, AssignmentChanged, UpdateAdded]


def to_message(event: ComplaintEvent) -> dict[str, Any]:
    """Serialise an event into the wire message sent to subscribers."""
    return {"type": event.event_type, **dataclasses.asdict(event)}
