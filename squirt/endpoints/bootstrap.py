"""
Endpoint bootstrap resolution.

The registry seeds itself from four sources in a fixed priority order:
the last-used endpoint, the persisted list, static configuration and the
hard-coded defaults. ``resolve_bootstrap_endpoints`` is the whole merge;
it touches no storage or file system so it can be tested on plain lists.

Decision: D-011
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from pydantic import ValidationError

from squirt.endpoints.models import Credentials, Endpoint, EndpointStatus, EndpointType
from squirt.errors import ConfigurationError

LOG = logging.getLogger("endpoints.bootstrap")

_DEFAULT_CREDENTIALS = Credentials(user="admin", password="admin123")

DEFAULT_ENDPOINTS: tuple[Endpoint, ...] = (
    Endpoint(
        url="http://localhost:4030/semem/query",
        label="Local Query Endpoint",
        type=EndpointType.QUERY,
        credentials=_DEFAULT_CREDENTIALS,
    ),
    Endpoint(
        url="http://localhost:4030/semem/update",
        label="Local Update Endpoint",
        type=EndpointType.UPDATE,
        credentials=_DEFAULT_CREDENTIALS,
    ),
)


def resolve_bootstrap_endpoints(
    last_used: Endpoint | None = None,
    persisted: Iterable[Endpoint] = (),
    configured: Iterable[Endpoint] = (),
    defaults: Iterable[Endpoint] = DEFAULT_ENDPOINTS,
) -> list[Endpoint]:
    """
    Merge endpoint sources by priority: last used, persisted, configured.

    The first occurrence of a URL wins, so a persisted endpoint keeps its
    user edits over a configured one with the same URL. Defaults are used
    only when every other source is empty. Every returned endpoint starts
    in ``unknown`` status with no check history.
    """
    merged: dict[str, Endpoint] = {}
    sources: list[Iterable[Endpoint]] = [[last_used] if last_used else [], persisted, configured]
    for source in sources:
        for endpoint in source:
            merged.setdefault(endpoint.url, endpoint)

    if not merged:
        LOG.warning("No endpoints found in storage or config, using defaults")
        for endpoint in defaults:
            merged.setdefault(endpoint.url, endpoint)

    return [
        endpoint.model_copy(update={"status": EndpointStatus.UNKNOWN, "last_checked": None, "last_error": None})
        for endpoint in merged.values()
    ]


def parse_endpoint_config(entries: Any) -> list[Endpoint]:
    """
    Build endpoints from decoded configuration data.

    Accepts a list of ``{url, label|name, type, credentials?}`` mappings or
    a mapping holding such a list under ``endpoints``.

    Raises:
        ConfigurationError: Not a list, missing fields or malformed credentials
    """
    if isinstance(entries, dict):
        entries = entries.get("endpoints")
    if not isinstance(entries, Sequence) or isinstance(entries, (str, bytes)):
        raise ConfigurationError("Endpoint configuration must be a list of endpoints")

    endpoints: list[Endpoint] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Endpoint entry {index} is not an object", index=index)
        data = dict(entry)
        if "label" not in data and "name" in data:
            data["label"] = data.pop("name")
        data.pop("status", None)
        try:
            endpoints.append(Endpoint.model_validate(data))
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid endpoint entry {index}: {exc.error_count()} error(s)",
                index=index,
                errors=exc.errors(),
            ) from exc
    return endpoints
