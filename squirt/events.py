"""
Typed publish/subscribe channels.

Each ``Channel`` carries one payload type. ``subscribe`` returns a
``Subscription`` handle whose ``cancel`` detaches the callback; delivery
order to subscribers is unspecified. A failing subscriber is logged and
does not prevent delivery to the others.

Decision: D-008
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

if TYPE_CHECKING:
    from squirt.endpoints.models import EndpointStatus, HealthSummary

LOG = logging.getLogger("squirt.events")

T = TypeVar("T")

NOTIFICATION_KINDS = ("error", "info", "warning", "success")


class Subscription:
    """Cancellation handle returned by ``Channel.subscribe``."""

    def __init__(self, channel: "Channel[Any]", token: int) -> None:
        self._channel = channel
        self._token = token
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if self._active:
            self._channel._unsubscribe(self._token)
            self._active = False


class Channel(Generic[T]):
    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: dict[int, Callable[[T], None]] = {}
        self._tokens = itertools.count()

    def subscribe(self, callback: Callable[[T], None]) -> Subscription:
        token = next(self._tokens)
        self._subscribers[token] = callback
        return Subscription(self, token)

    def publish(self, payload: T) -> None:
        for callback in list(self._subscribers.values()):
            try:
                callback(payload)
            except Exception:
                LOG.exception("Subscriber on channel %s failed", self.name)

    def _unsubscribe(self, token: int) -> None:
        self._subscribers.pop(token, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


# ── Payloads ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Notification:
    kind: str  # one of NOTIFICATION_KINDS
    message: str
    context: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class PostEvent:
    id: str
    type: str | None = None


@dataclass(frozen=True)
class EndpointEvent:
    url: str
    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EndpointStatusEvent:
    url: str
    status: "EndpointStatus"
    error: str | None = None


@dataclass(frozen=True)
class CheckRequest:
    """Ask the monitor for a probe; ``url=None`` means every endpoint."""

    url: str | None = None


@dataclass(frozen=True)
class SyncEvent:
    endpoint: str
    graph: str | None
    quads: int
    timestamp: datetime


@dataclass
class EventBus:
    """All channels the core publishes on, constructed once in the composition root."""

    post_created: Channel[PostEvent] = field(default_factory=lambda: Channel("post_created"))
    post_updated: Channel[PostEvent] = field(default_factory=lambda: Channel("post_updated"))
    post_deleted: Channel[PostEvent] = field(default_factory=lambda: Channel("post_deleted"))
    endpoint_added: Channel[EndpointEvent] = field(default_factory=lambda: Channel("endpoint_added"))
    endpoint_removed: Channel[EndpointEvent] = field(default_factory=lambda: Channel("endpoint_removed"))
    endpoint_updated: Channel[EndpointEvent] = field(default_factory=lambda: Channel("endpoint_updated"))
    endpoint_status_changed: Channel[EndpointStatusEvent] = field(
        default_factory=lambda: Channel("endpoint_status_changed")
    )
    endpoints_checked: Channel["HealthSummary"] = field(default_factory=lambda: Channel("endpoints_checked"))
    check_requested: Channel[CheckRequest] = field(default_factory=lambda: Channel("check_requested"))
    graph_loaded: Channel[SyncEvent] = field(default_factory=lambda: Channel("graph_loaded"))
    graph_synced: Channel[SyncEvent] = field(default_factory=lambda: Channel("graph_synced"))
    notifications: Channel[Notification] = field(default_factory=lambda: Channel("notifications"))
