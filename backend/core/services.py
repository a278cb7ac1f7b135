"""
Core app service layer.

Cross-app services that do not belong to any single domain app:

- ``SystemConstantsService`` — choice enumerations and limits for the
  frontend.
- ``EventStreamService``     — binds an authenticated client to the
  notification channels it may listen on and produces the
  Server-Sent-Events stream for it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Iterator

from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder

from core.constants import (
    MAX_ATTACHMENT_SIZE_BYTES,
    MAX_ATTACHMENTS_PER_COMPLAINT,
    MAX_RATING,
    MAX_TAGS_PER_COMPLAINT,
    MIN_RATING,
    NEARBY_DEFAULT_RADIUS_KM,
    NEARBY_MAX_RADIUS_KM,
)
from core.domain.access import get_user_role_name
from core.domain.exceptions import PermissionDenied
from core.domain.notifications import (
    ROLE_CHANNELS,
    ChannelRegistry,
    NotificationPublisher,
    QueueConnection,
    complaint_channel,
    get_publisher,
)

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
#  System Constants Service
# ════════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers all system-wide choice enumerations into a single dict for
    the frontend.

    This service is **stateless**: it does not depend on the requesting
    user.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from accounts.models import UserRole
        from complaints.models import (
            AttachmentType,
            ComplaintCategory,
            ComplaintPriority,
            ComplaintStatus,
            UpdateType,
        )
        from complaints.services import NEXT_STATUS
        from reviews.models import ReviewType

        to_list = SystemConstantsService._choices_to_list

        return {
            "complaint_categories": to_list(ComplaintCategory),
            "complaint_statuses": to_list(ComplaintStatus),
            "complaint_priorities": to_list(ComplaintPriority),
            "update_types": to_list(UpdateType),
            "attachment_types": to_list(AttachmentType),
            "user_roles": to_list(UserRole),
            "review_types": to_list(ReviewType),
            "status_transitions": [
                {"from_status": str(current), "to_status": str(target)}
                for current, target in NEXT_STATUS.items()
            ],
            "limits": {
                "max_tags_per_complaint": MAX_TAGS_PER_COMPLAINT,
                "max_attachments_per_complaint": MAX_ATTACHMENTS_PER_COMPLAINT,
                "max_attachment_size_bytes": MAX_ATTACHMENT_SIZE_BYTES,
                "min_rating": MIN_RATING,
                "max_rating": MAX_RATING,
                "nearby_default_radius_km": NEARBY_DEFAULT_RADIUS_KM,
                "nearby_max_radius_km": NEARBY_MAX_RADIUS_KM,
            },
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` class to a list of
        ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]


# ════════════════════════════════════════════════════════════════════
#  Event Stream Service
# ════════════════════════════════════════════════════════════════════

def format_sse(event: str, data: dict[str, Any]) -> str:
    """Encode one Server-Sent-Events frame."""
    payload = json.dumps(data, cls=DjangoJSONEncoder)
    return f"event: {event}\ndata: {payload}\n\n"


class EventStream:
    """
    Iterable SSE body bound to one ``QueueConnection``.

    ``close()`` removes the connection from every channel.  Django calls
    it when the response is closed, so channels are left even if the
    client disconnects before the first frame is sent.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        connection: QueueConnection,
        *,
        heartbeat_seconds: float,
    ) -> None:
        self.registry = registry
        self.connection = connection
        self.heartbeat_seconds = heartbeat_seconds
        self.closed = False

    def __iter__(self) -> Iterator[str]:
        return self._frames()

    def _frames(self) -> Iterator[str]:
        try:
            yield ": connected\n\n"
            while not self.closed:
                item = self.connection.receive(timeout=self.heartbeat_seconds)
                if item is None:
                    yield ": heartbeat\n\n"
                    continue
                channel, message = item
                yield format_sse(message["type"], {"channel": channel, **message})
        finally:
            self.close()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.registry.leave_all(self.connection)
        logger.info("Event stream %r closed", self.connection)


class EventStreamService:
    """
    Subscribes a user to their channels.

    Every user joins the channel of their role.  Per-complaint channels
    are joined only for complaints the user can see; unknown or hidden
    ids are rejected.
    """

    def __init__(
        self,
        user: Any,
        complaint_ids: Iterable[int] = (),
        *,
        publisher: NotificationPublisher | None = None,
    ) -> None:
        self.user = user
        self.complaint_ids = sorted(set(complaint_ids))
        self.publisher = publisher or get_publisher()

    def channels(self) -> list[str]:
        """
        Resolve the channels this user may join.

        Raises
        ------
        PermissionDenied
            The user has no role channel.
        NotFound
            A requested complaint is missing or not visible to the user.
        """
        from complaints.services import ComplaintQueryService

        role = get_user_role_name(self.user)
        if role not in ROLE_CHANNELS:
            raise PermissionDenied("Only citizens, providers and admins may subscribe.")

        channels = [role]
        for complaint_id in self.complaint_ids:
            complaint = ComplaintQueryService.get_complaint_detail(self.user, complaint_id)
            channels.append(complaint_channel(complaint.pk))
        return channels

    def open(self) -> EventStream:
        """Join every channel now and return the stream that drains them."""
        conf = settings.NOTIFICATIONS
        channels = self.channels()
        connection = QueueConnection(
            maxsize=conf["QUEUE_SIZE"],
            label=f"user-{self.user.pk}",
        )
        registry = self.publisher.registry
        for channel in channels:
            registry.join(channel, connection)

        logger.info("User %s subscribed to %s", self.user.pk, ", ".join(channels))
        return EventStream(
            registry,
            connection,
            heartbeat_seconds=conf["HEARTBEAT_SECONDS"],
        )
