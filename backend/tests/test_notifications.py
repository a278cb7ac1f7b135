"""
Unit tests for the notification layer: channel routing, the registry,
post-commit fan-out and the SSE stream body.
"""

from __future__ import annotations

import json
import logging

import pytest

from core.domain.events import (
    AssignmentChanged,
    ComplaintCreated,
    StatusChanged,
    UpdateAdded,
    to_message,
)
from core.domain.notifications import (
    ChannelRegistry,
    NotificationPublisher,
    QueueConnection,
    channels_for,
    complaint_channel,
)
from core.services import EventStream, format_sse


def _created(**overrides) -> ComplaintCreated:
    fields = {
        "complaint_id": 1,
        "title": "Pothole",
        "category": "roads",
        "priority": "medium",
        "is_emergency": False,
        "department_id": 3,
        "submitted_by": 9,
    }
    fields.update(overrides)
    return ComplaintCreated(**fields)


class _BrokenConnection:
    def deliver(self, channel, message):
        raise RuntimeError("socket gone")


# ════════════════════════════════════════════════════════════════════
#  Channel routing
# ════════════════════════════════════════════════════════════════════

class TestChannelsFor:

    @pytest.mark.parametrize(
        "event,expected",
        [
            (_created(), ["admin"]),
            (_created(is_emergency=True), ["admin", "provider"]),
            (StatusChanged(complaint_id=4, old_status="submitted", new_status="under_review"),
             ["complaint-4", "citizen"]),
            (AssignmentChanged(complaint_id=4, provider_id=2), ["complaint-4"]),
            (UpdateAdded(complaint_id=4, update_id=1, message="hi", update_type="message"),
             ["complaint-4"]),
        ],
    )
    def test_routing_table(self, event, expected):
        assert channels_for(event) == expected

    def test_unknown_event_type(self):
        with pytest.raises(TypeError):
            channels_for(object())

    def test_message_carries_type_tag(self):
        message = to_message(AssignmentChanged(complaint_id=4, provider_id=2, actor_id=1))
        assert message == {
            "type": "assignment_changed",
            "complaint_id": 4,
            "provider_id": 2,
            "actor_id": 1,
        }


# ════════════════════════════════════════════════════════════════════
#  Registry
# ════════════════════════════════════════════════════════════════════

class TestChannelRegistry:

    def test_join_and_leave(self):
        registry = ChannelRegistry()
        connection = QueueConnection()

        registry.join("admin", connection)
        registry.join(complaint_channel(5), connection)
        assert registry.channels_of(connection) == {"admin", "complaint-5"}

        registry.leave("admin", connection)
        assert registry.subscribers("admin") == []
        assert registry.subscribers("complaint-5") == [connection]

    def test_leave_all_is_idempotent(self):
        registry = ChannelRegistry()
        connection = QueueConnection()
        registry.join("citizen", connection)

        registry.leave_all(connection)
        registry.leave_all(connection)

        assert registry.channels_of(connection) == set()

    def test_full_queue_drops_message(self, caplog):
        connection = QueueConnection(maxsize=1, label="tiny")

        with caplog.at_level(logging.WARNING, logger="core.domain.notifications"):
            connection.deliver("admin", {"type": "complaint_created"})
            connection.deliver("admin", {"type": "complaint_created"})

        assert connection.receive(timeout=0) is not None
        assert connection.receive(timeout=0) is None
        assert "queue full" in caplog.text


# ════════════════════════════════════════════════════════════════════
#  Publisher
# ════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestNotificationPublisher:

    def test_delivery_waits_for_commit(self, django_capture_on_commit_callbacks):
        publisher = NotificationPublisher()
        connection = QueueConnection()
        publisher.registry.join("admin", connection)

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            publisher.publish(_created())

        assert connection.receive(timeout=0) is None
        assert len(callbacks) == 1

        callbacks[0]()
        channel, message = connection.receive(timeout=0)
        assert channel == "admin"
        assert message["type"] == "complaint_created"

    def test_failing_subscriber_does_not_block_others(self, caplog):
        publisher = NotificationPublisher()
        good = QueueConnection()
        publisher.registry.join("complaint-1", _BrokenConnection())
        publisher.registry.join("complaint-1", good)

        delivered = publisher.fan_out(["complaint-1"], {"type": "update_added", "complaint_id": 1})

        assert delivered == 1
        assert good.receive(timeout=0) is not None
        assert "failed" in caplog.text

    def test_publish_never_raises(self, caplog, django_capture_on_commit_callbacks):
        publisher = NotificationPublisher()

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            publisher.publish(object())

        assert callbacks == []
        assert "Failed to publish" in caplog.text

    def test_connection_on_several_channels_gets_one_copy(self):
        publisher = NotificationPublisher()
        both = QueueConnection()
        citizen_only = QueueConnection()
        publisher.registry.join("complaint-4", both)
        publisher.registry.join("citizen", both)
        publisher.registry.join("citizen", citizen_only)

        delivered = publisher.fan_out(
            ["complaint-4", "citizen"], {"type": "status_changed", "complaint_id": 4},
        )

        assert delivered == 2
        assert both.receive(timeout=0)[0] == "complaint-4"
        assert both.receive(timeout=0) is None
        assert citizen_only.receive(timeout=0)[0] == "citizen"

    def test_no_subscribers_is_fine(self):
        assert NotificationPublisher().fan_out(["admin"], {"type": "complaint_created"}) == 0


# ════════════════════════════════════════════════════════════════════
#  SSE stream body
# ════════════════════════════════════════════════════════════════════

class TestEventStream:

    def test_format_sse(self):
        frame = format_sse("status_changed", {"complaint_id": 3})
        event_line, data_line, *_ = frame.split("\n")

        assert event_line == "event: status_changed"
        assert json.loads(data_line.removeprefix("data: ")) == {"complaint_id": 3}
        assert frame.endswith("\n\n")

    def test_frames_and_close(self):
        registry = ChannelRegistry()
        connection = QueueConnection()
        registry.join("citizen", connection)
        stream = EventStream(registry, connection, heartbeat_seconds=0.01)
        frames = iter(stream)

        assert next(frames) == ": connected\n\n"
        assert next(frames) == ": heartbeat\n\n"

        connection.deliver("citizen", to_message(
            StatusChanged(complaint_id=8, old_status="in_progress", new_status="resolved"),
        ))
        frame = next(frames)
        assert frame.startswith("event: status_changed\n")
        payload = json.loads(frame.split("\n")[1].removeprefix("data: "))
        assert payload["channel"] == "citizen"
        assert payload["new_status"] == "resolved"

        frames.close()
        assert stream.closed
        assert registry.subscribers("citizen") == []

    def test_close_before_iteration_leaves_channels(self):
        registry = ChannelRegistry()
        connection = QueueConnection()
        registry.join("admin", connection)
        stream = EventStream(registry, connection, heartbeat_seconds=0.01)

        stream.close()
        stream.close()

        assert registry.channels_of(connection) == set()
        assert list(stream) == [": connected\n\n"]
