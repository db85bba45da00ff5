"""Diff indexer: which after-side lines of a PR accept inline comments.

GitHub only accepts review comments on lines shown in the PR diff: added
lines and the unchanged context lines inside a hunk. This module parses the
per-file ``patch`` text returned by the "list pull request files" endpoint
into a ``DiffLineMap`` (path -> set of commentable line numbers).
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

DiffLineMap = dict[str, set[int]]

# @@ -old_start[,old_count] +new_start[,new_count] @@ optional section header
HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


def index_patch(patch: str | None) -> set[int]:
    """Return the after-side line numbers shown in a unified-diff patch."""
    lines: set[int] = set()
    if not patch:
        return lines

    new_line = 0
    old_left = new_left = 0
    for raw in patch.splitlines():
        header = HUNK_HEADER.match(raw)
        if header:
            new_line = int(header.group(3))
            old_left = int(header.group(2) or 1)
            new_left = int(header.group(4) or 1)
            continue
        if old_left <= 0 and new_left <= 0:
            # Outside a hunk: file headers (diff --git, ---/+++) or trailing text.
            continue
        if raw.startswith("\\"):
            # "\ No newline at end of file"
            continue
        if raw.startswith("-"):
            old_left -= 1
            continue
        if raw.startswith("+"):
            lines.add(new_line)
            new_line += 1
            new_left -= 1
            continue
        # Context; a bare empty line is blank context whose leading space
        # was stripped in transit.
        lines.add(new_line)
        new_line += 1
        old_left -= 1
        new_left -= 1
    return lines


def build_diff_line_map(files: Iterable[dict[str, Any]]) -> DiffLineMap:
    """Build the DiffLineMap from a PR file listing.

    Args:
        files: Entries from ``GET /repos/{repo}/pulls/{n}/files``; each needs
            ``filename`` and optionally ``patch`` and ``status``.

    Returns:
        Mapping of path to commentable lines. Removed files are omitted;
        files without a patch (binary, too large) map to an empty set.
    """
    diff_map: DiffLineMap = {}
    for entry in files:
        filename = entry.get("filename")
        if not filename or entry.get("status") == "removed":
            continue
        diff_map[filename] = index_patch(entry.get("patch"))
    return diff_map


def is_commentable(diff_map: DiffLineMap, path: str, line: int | None) -> bool:
    return line is not None and line in diff_map.get(path, ())
