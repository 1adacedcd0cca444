"""
Post domain: identifiers, records and the projection onto quads.

Decision: D-004, D-005
"""

from __future__ import annotations

from squirt.domain.ids import format_timestamp, generate_post_id, hash_content, parse_timestamp
from squirt.domain.models import POST_TYPES, CreatedPost, Post, PostInput, PostType
from squirt.domain.projection import PostProjection

__all__ = [
    "POST_TYPES",
    "CreatedPost",
    "Post",
    "PostInput",
    "PostProjection",
    "PostType",
    "format_timestamp",
    "generate_post_id",
    "hash_content",
    "parse_timestamp",
]
