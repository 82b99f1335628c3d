"""Input validation for user-supplied cluster metadata.

Pure functions, applied before anything reaches the registry. Each one
returns the canonical (trimmed) value or raises ``InputValidationError``
with the violated rule as its message.
"""

from __future__ import annotations

import string
import unicodedata
from collections.abc import Iterable

MAX_CLUSTER_NAME_LEN = 100
MAX_CONTEXT_NAME_LEN = 253
MAX_DESCRIPTION_LEN = 1000
MAX_TAGS_COUNT = 20
MAX_TAG_LEN = 32

_ALNUM = frozenset(string.ascii_letters + string.digits)
_NAME_CHARS = _ALNUM | frozenset(" -_.:/@+()[]")
_TAG_CHARS = _ALNUM | frozenset("-_.:/")
_ALLOWED_CONTROL = frozenset("\n\r\t")


class InputValidationError(ValueError):
    """Raised when a user-supplied field violates a validation rule."""


def _validate_identifier(value: str, label: str, max_len: int) -> str:
    trimmed = value.strip()
    if not trimmed:
        raise InputValidationError(f"{label} cannot be empty")
    if len(trimmed) > max_len:
        raise InputValidationError(f"{label} must be {max_len} characters or fewer")
    if not all(c in _NAME_CHARS for c in trimmed):
        raise InputValidationError(
            f"{label} contains invalid characters. "
            "Allowed: letters, numbers, space, - _ . : / @ + ( ) [ ]"
        )
    return trimmed


def validate_cluster_name(name: str) -> str:
    return _validate_identifier(name, "Cluster name", MAX_CLUSTER_NAME_LEN)


def validate_context_name(context_name: str) -> str:
    return _validate_identifier(context_name, "Context name", MAX_CONTEXT_NAME_LEN)


def validate_description(description: str | None) -> str | None:
    """Blank descriptions collapse to ``None`` rather than an empty string."""
    if description is None:
        return None
    trimmed = description.strip()
    if not trimmed:
        return None
    if len(trimmed) > MAX_DESCRIPTION_LEN:
        raise InputValidationError(
            f"Description must be {MAX_DESCRIPTION_LEN} characters or fewer"
        )
    for c in trimmed:
        if c not in _ALLOWED_CONTROL and unicodedata.category(c) == "Cc":
            raise InputValidationError("Description contains invalid control characters")
    return trimmed


def validate_tags(tags: Iterable[str]) -> list[str]:
    """Trim, check and de-duplicate-check tags, preserving first-seen order."""
    tags = list(tags)
    if len(tags) > MAX_TAGS_COUNT:
        raise InputValidationError(f"At most {MAX_TAGS_COUNT} tags are allowed")

    seen: set[str] = set()
    validated: list[str] = []
    for tag in tags:
        trimmed = tag.strip()
        if not trimmed:
            raise InputValidationError("Tags cannot be empty")
        if len(trimmed) > MAX_TAG_LEN:
            raise InputValidationError(
                f"Tag '{trimmed}' exceeds {MAX_TAG_LEN} characters"
            )
        if not all(c in _TAG_CHARS for c in trimmed):
            raise InputValidationError(
                f"Tag '{trimmed}' contains invalid characters. "
                "Allowed: letters, numbers, - _ . : /"
            )
        if trimmed in seen:
            raise InputValidationError(f"Duplicate tag '{trimmed}'")
        seen.add(trimmed)
        validated.append(trimmed)
    return validated
