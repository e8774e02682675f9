"""Unified diffs between document states."""

import difflib


def unified_diff(before: str, after: str, before_label: str = "current", after_label: str = "proposed") -> str:
    """Render a line-based unified diff, empty when the texts are equal."""
    lines = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=before_label,
        tofile=after_label,
    )
    return "".join(line if line.endswith("\n") else line + "\n" for line in lines)
