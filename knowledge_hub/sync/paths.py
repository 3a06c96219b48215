"""
Path segment sanitizing for the synced file tree.
"""

import re

UNSAFE_CHARACTERS = re.compile(r"[^A-Za-z0-9_-]")

EMPTY_SEGMENT = "untitled"


def sanitize(name: str) -> str:
    """
    Map a user-chosen name to a path segment made of letters, digits,
    hyphens and underscores.

    Every other character becomes a single underscore, so different names can
    map to the same segment. Empty input maps to ``EMPTY_SEGMENT``.

    Examples:
        sanitize("My Workspace!")  # "My_Workspace_"
        sanitize("a/b")            # "a_b"
    """
    if not name:
        return EMPTY_SEGMENT
    return UNSAFE_CHARACTERS.sub("_", name)
