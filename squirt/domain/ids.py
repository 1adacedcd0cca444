"""
Deterministic post identifiers and timestamp helpers.

Identifiers are content-addressed: a 32-bit rolling hash of the first
non-empty field among title, content and url, prefixed with the current
UTC date. They are reproducible, not unique; two posts with the same
leading text on the same day share an id (see DESIGN.md, D-004).

Decision: D-004
"""

from __future__ import annotations

from datetime import datetime, timezone

from squirt.rdf.namespaces import SQUIRT

HASH_LENGTH = 8


def hash_content(content: str) -> str:
    """
    Non-cryptographic ``h = h * 31 + c`` hash over UTF-16 code units.

    Arithmetic wraps to a signed 32-bit integer and the result is rendered
    in hex (with a leading ``-`` for negative values), truncated to
    ``HASH_LENGTH`` characters. ``hash_content("hello") == "5e918d2"``.
    """
    h = 0
    data = content.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (((h << 5) - h) + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return format(h, "x")[:HASH_LENGTH]


def generate_post_id(
    title: str | None = None,
    content: str | None = None,
    url: str | None = None,
    now: datetime | None = None,
) -> str:
    seed = next((value for value in (title, content, url) if value), "")
    day = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).date().isoformat()
    return f"{SQUIRT}post_{day}_{hash_content(seed)}"


def format_timestamp(moment: datetime) -> str:
    """UTC timestamp with millisecond precision, e.g. ``2024-05-01T12:30:00.000Z``."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC. None when unparsable."""
    if not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
