"""
Error taxonomy and the central error handler.

Every failure that crosses a component boundary is one of the
``SquirtError`` subclasses below. The ``ErrorHandler`` normalizes foreign
exceptions, logs them, and publishes a notification for UI collaborators;
it never renders anything itself.

Decision: D-007
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from squirt.events import Channel, Notification

LOG = logging.getLogger("squirt.errors")

MAX_ERROR_LOG = 50


class SquirtError(Exception):
    """Base class for all squirt errors."""

    code = "SQUIRT_ERROR"
    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "user_message": self.user_message,
            "timestamp": self.timestamp.isoformat(),
            "details": {k: str(v) for k, v in self.details.items()},
        }


class NetworkError(SquirtError):
    """Transport-level failure: unreachable host, DNS, refused connection, timeout."""

    code = "NETWORK_ERROR"
    user_message = "Network error. Please check your connection and try again."


class ProtocolError(SquirtError):
    """The endpoint answered with a non-2xx status or a malformed result document."""

    code = "PROTOCOL_ERROR"
    user_message = "SPARQL endpoint error. Please check your endpoint settings."

    def __init__(self, message: str, status_code: int | None = None, body: str = "", **details: Any) -> None:
        super().__init__(message, **details)
        self.status_code = status_code
        self.body = body


class DomainError(SquirtError):
    """Invariant violation in the store or projection layer."""

    code = "DOMAIN_ERROR"
    user_message = "Invalid data. Please check your input and try again."


class GraphParseError(DomainError):
    """A serialized graph could not be parsed."""

    code = "PARSE_ERROR"
    user_message = "Received graph data could not be read."


class PersistenceError(SquirtError):
    """Reading or writing the key-value store failed."""

    code = "PERSISTENCE_ERROR"
    user_message = "Storage error. Some data may not be saved."


class ConfigurationError(SquirtError):
    """Duplicate endpoint, malformed credentials or invalid settings."""

    code = "CONFIG_ERROR"
    user_message = "Configuration error. Please check your settings."


def classify(error: BaseException) -> SquirtError:
    """Map an arbitrary exception onto the taxonomy."""
    if isinstance(error, SquirtError):
        return error
    if isinstance(error, (httpx.TransportError, TimeoutError, ConnectionError)):
        return NetworkError(str(error) or type(error).__name__, original=repr(error))
    if isinstance(error, (ValueError, TypeError, KeyError)):
        return DomainError(str(error) or type(error).__name__, original=repr(error))
    if isinstance(error, OSError):
        return PersistenceError(str(error), original=repr(error))
    return SquirtError(str(error) or type(error).__name__, original=repr(error))


class ErrorHandler:
    """
    Central sink for errors raised by the core.

    Logs each error once, keeps a bounded history for diagnostics and
    forwards a user-facing notification onto the notification channel.
    """

    def __init__(self, notifications: "Channel[Notification] | None" = None, max_log: int = MAX_ERROR_LOG) -> None:
        self._notifications = notifications
        self._history: deque[SquirtError] = deque(maxlen=max_log)

    def handle(
        self,
        error: BaseException,
        context: str | None = None,
        show_to_user: bool = True,
        rethrow: bool = False,
    ) -> SquirtError:
        normalized = classify(error)
        if normalized is not error:
            normalized.__cause__ = error
        if context and "context" not in normalized.details:
            normalized.details["context"] = context

        self._history.append(normalized)
        LOG.error("[%s] %s%s", normalized.code, normalized.message, f" ({context})" if context else "")

        if show_to_user:
            self.notify("error", normalized.user_message, context=context, detail=normalized.message)

        if rethrow:
            raise normalized
        return normalized

    def notify(self, kind: str, message: str, context: str | None = None, detail: str | None = None) -> None:
        if self._notifications is None:
            return
        from squirt.events import Notification

        self._notifications.publish(Notification(kind=kind, message=message, context=context, detail=detail))

    @property
    def history(self) -> list[SquirtError]:
        return list(self._history)

    def clear(self) -> None:
        self._history.clear()
