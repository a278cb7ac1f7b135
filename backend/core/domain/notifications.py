"""
core.domain.notifications — Best-effort fan-out of complaint events.

Centralises notification delivery so every app uses one consistent
entry-point (``get_publisher().publish(event)``) rather than talking to
the transport directly.

Design decisions
----------------
* **Topic registry owned by the publisher** — channel name → set of live
  connections, with explicit ``join`` / ``leave`` / ``leave_all`` tied to
  the transport session.  One registry per process, created by
  ``CoreConfig.ready()``.
* **After commit** — delivery is scheduled with
  ``transaction.on_commit`` so subscribers never hear about a change that
  was rolled back.  Outside an atomic block it runs immediately.
* **Fire-and-forget** — at-most-once, no acknowledgement, no persistence.
  A connection that raises is logged and skipped; ``publish`` never raises
  into the service that called it.  Offline subscribers miss the event and
  are expected to refetch.
* **Once per connection** — a connection that joined several of an
  event's channels (a citizen following their own complaint is on both
  ``citizen`` and ``complaint-{id}``) gets the event once, on the first
  channel listed below.

Channel routing
---------------
┌────────────────────┬──────────────────────────────────────────────┐
│ Event              │ Channels                                     │
├────────────────────┼──────────────────────────────────────────────┤
│ ComplaintCreated   │ admin (+ provider when is_emergency)         │
│ StatusChanged      │ complaint-{id}, citizen                      │
│ AssignmentChanged  │ complaint-{id}                               │
│ UpdateAdded        │ complaint-{id}                               │
└────────────────────┴──────────────────────────────────────────────┘

Usage::

    from core.domain.events import StatusChanged
    from core.domain.notifications import get_publisher

    get_publisher().publish(
        StatusChanged(complaint_id=c.pk, old_status=old, new_status=new)
    )
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import defaultdict
from typing import Any, Protocol

from django.apps import apps
from django.db import transaction

from core.domain.events import (
    AssignmentChanged,
    ComplaintCreated,
    ComplaintEvent,
    StatusChanged,
    UpdateAdded,
    to_message,
)

logger = logging.getLogger(__name__)

ADMIN_CHANNEL = "admin"
PROVIDER_CHANNEL = "provider"
CITIZEN_CHANNEL = "citizen"

ROLE_CHANNELS = frozenset({ADMIN_CHANNEL, PROVIDER_CHANNEL, CITIZEN_CHANNEL})


def complaint_channel(complaint_id: int) -> str:
    """Name of the per-complaint channel."""
    return f"complaint-{complaint_id}"


def channels_for(event: ComplaintEvent) -> list[str]:
    """Return the channels an event is published to."""
    if isinstance(event, ComplaintCreated):
        channels = [ADMIN_CHANNEL]
        if event.is_emergency:
            channels.append(PROVIDER_CHANNEL)
        return channels
    if isinstance(event, StatusChanged):
        return [complaint_channel(event.complaint_id), CITIZEN_CHANNEL]
    if isinstance(event, (AssignmentChanged, UpdateAdded)):
        return [complaint_channel(event.complaint_id)]
    raise TypeError(f"Unknown event type: {type(event).__name__}")


class Connection(Protocol):
    """Anything able to receive a message for a channel it joined."""

    def deliver(self, channel: str, message: dict[str, Any]) -> None: ...


class QueueConnection:
    """
    A subscriber backed by a bounded in-memory queue.

    Used by the SSE stream: the publisher enqueues, the streaming response
    drains.  A full queue drops the message rather than blocking the
    publisher.
    """

    def __init__(self, *, maxsize: int = 100, label: str = "") -> None:
        self._queue: queue.Queue[tuple[str, dict[str, Any]]] = queue.Queue(maxsize=maxsize)
        self.label = label

    def deliver(self, channel: str, message: dict[str, Any]) -> None:
        try:
            self._queue.put_nowait((channel, message))
        except queue.Full:
            logger.warning(
                "Dropping %s for %s on %s: queue full",
                message.get("type"),
                self.label or "connection",
                channel,
            )

    def receive(self, timeout: float | None = None) -> tuple[str, dict[str, Any]] | None:
        """Block up to ``timeout`` seconds for the next message."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def __repr__(self) -> str:
        return f"<QueueConnection {self.label or id(self)}>"


class ChannelRegistry:
    """Thread-safe channel → connections membership table."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._members: dict[str, set[Connection]] = defaultdict(set)

    def join(self, channel: str, connection: Connection) -> None:
        with self._lock:
            self._members[channel].add(connection)

    def leave(self, channel: str, connection: Connection) -> None:
        with self._lock:
            members = self._members.get(channel)
            if members is None:
                return
            members.discard(connection)
            if not members:
                del self._members[channel]

    def leave_all(self, connection: Connection) -> None:
        """Remove a connection from every channel (session closed)."""
        with self._lock:
            for channel in list(self._members):
                members = self._members[channel]
                members.discard(connection)
                if not members:
                    del self._members[channel]

    def subscribers(self, channel: str) -> list[Connection]:
        with self._lock:
            return list(self._members.get(channel, ()))

    def channels_of(self, connection: Connection) -> set[str]:
        with self._lock:
            return {
                channel
                for channel, members in self._members.items()
                if connection in members
            }


class NotificationPublisher:
    """
    Fans complaint events out to the channels they are routed to.

    Owns its ``ChannelRegistry``; transports join connections through
    ``publisher.registry``.
    """

    def __init__(self, registry: ChannelRegistry | None = None) -> None:
        self.registry = registry or ChannelRegistry()

    def publish(self, event: ComplaintEvent) -> None:
        """
        Schedule delivery of ``event`` once the current transaction commits.

        Never raises: a notification failure must not fail the state
        change that triggered it.
        """
        try:
            channels = channels_for(event)
            message = to_message(event)
            transaction.on_commit(lambda: self.fan_out(channels, message))
        except Exception:
            logger.exception("Failed to publish %r", event)

    def fan_out(self, channels: list[str], message: dict[str, Any]) -> int:
        """
        Deliver ``message`` to every current subscriber; return the count.

        A connection subscribed to several of ``channels`` receives the
        message once, tagged with the first of them in routing order.
        """
        delivered = 0
        reached: set[int] = set()
        for channel in channels:
            for connection in self.registry.subscribers(channel):
                if id(connection) in reached:
                    continue
                reached.add(id(connection))
                try:
                    connection.deliver(channel, message)
                except Exception:
                    logger.exception(
                        "Delivery of %s to %r on %s failed",
                        message.get("type"),
                        connection,
                        channel,
                    )
                    continue
                delivered += 1

        logger.info(
            "Published %s for complaint %s to %s (%d deliveries)",
            message.get("type"),
            message.get("complaint_id"),
            ", ".join(channels),
            delivered,
        )
        return delivered


def get_publisher() -> NotificationPublisher:
    """Return the process-wide publisher created by ``CoreConfig.ready``."""
    return apps.get_app_config("core").publisher
