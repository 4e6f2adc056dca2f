"""Unified diff rendering for the change history.

Diffs are display artifacts only. Canonical state always lives in the
before/after snapshots, so nothing here is ever applied as a patch.
"""

import difflib


def unified_diff(
    name: str,
    before: str,
    after: str,
    from_label: str = "current",
    to_label: str = "updated",
) -> str:
    """Render ``before -> after`` as unified diff text with a file header."""
    lines = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"{name}\t{from_label}",
        tofile=f"{name}\t{to_label}",
    )
    # splitlines drops the newline on a final line without one
    return "".join(line if line.endswith("\n") else line + "\n" for line in lines)
