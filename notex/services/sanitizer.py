"""
Name sanitizing for folder and document names.

Only letters, digits, space, hyphen, underscore and period survive. Runs of
periods collapse to one and leading/trailing periods are dropped, so a
sanitized name is never "." or "..", never hidden from the scanner and never
contains a path separator.
"""

import re

from notex.errors import InvalidNameError


DISALLOWED_CHARS = re.compile(r"[^\w \-.]")
DOT_RUNS = re.compile(r"\.{2,}")
MAX_NAME_LENGTH = 200

DEFAULT_PLACEHOLDER = "Untitled"


def sanitize_name(raw: str, placeholder: str = DEFAULT_PLACEHOLDER) -> str:
    """
    Normalize a user-supplied name into a single storage segment.

    Args:
        raw: Name typed by the user (may be None)
        placeholder: Name used when nothing usable is left

    Returns:
        Non-empty name free of path separators

    Raises:
        InvalidNameError: if even the placeholder is unusable
    """
    name = _clean(raw or "")
    if not name:
        name = _clean(placeholder or "")
    if not name:
        raise InvalidNameError(f"Name {raw!r} is empty after sanitizing and no placeholder is usable")
    return name


def _clean(value: str) -> str:
    value = DISALLOWED_CHARS.sub("", value)
    value = DOT_RUNS.sub(".", value)
    value = value.strip().strip(".").strip()
    return value[:MAX_NAME_LENGTH].rstrip(" .")
