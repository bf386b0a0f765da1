"""Path containment checks.

Every read or write that leaves the already-validated job directory goes
through one of these first.
"""

import os
from pathlib import Path

from .errors import PathEscapeError


def assert_contained_in(
    candidate: str | Path, anchor: str | Path, label: str,
) -> Path:
    """Resolve *candidate* against *anchor* and require it to stay inside.

    Relative candidates are joined onto the anchor; absolute ones are
    taken as-is. Returns the resolved absolute path.

    Raises:
        PathEscapeError: The resolved path is outside the anchor.
    """
    resolved_anchor = Path(os.path.abspath(anchor))
    resolved = Path(os.path.abspath(resolved_anchor / candidate))
    if resolved != resolved_anchor and resolved_anchor not in resolved.parents:
        raise PathEscapeError(
            f"{label} resolves outside its allowed directory. "
            f"Resolved: {resolved}, Anchor: {resolved_anchor}"
        )
    return resolved


def assert_resolved_contained_in(
    path: str | Path, anchor: str | Path, label: str,
) -> None:
    """Like assert_contained_in, for a path that is already absolute."""
    assert_contained_in(os.path.abspath(path), anchor, label)


def assert_safe_filename(filename: str, label: str) -> None:
    """Reject anything that is not a plain basename."""
    if (
        not filename
        or "/" in filename
        or "\\" in filename
        or ".." in filename
        or filename == "."
    ):
        raise PathEscapeError(
            f"{label} contains invalid path components: '{filename}'"
        )
