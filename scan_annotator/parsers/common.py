"""Helpers shared by the per-tool report parsers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


class MalformedReport(ValueError):
    """A report decoded fine but does not have the tool's expected shape."""


@dataclass(frozen=True, slots=True)
class ParseContext:
    """Run-level settings every parser may need."""

    workspace: str = ""
    iac_dir: str = "Terraform"
    # Raw bytes of the plan-enrichment file; only the checkov parser reads it.
    enrichment: bytes | str | None = None


def normalize_path(raw: Any, workspace: str = "") -> str:
    """Return ``raw`` as a repo-relative path with forward slashes.

    Strips the workspace prefix, any leading ``./`` and leading slashes.
    """
    if raw is None:
        return ""
    path = str(raw).strip().replace("\\", "/")
    if workspace:
        prefix = workspace.replace("\\", "/").rstrip("/") + "/"
        if path.startswith(prefix):
            path = path[len(prefix):]
    while path.startswith("./") or path.startswith("/"):
        path = path[2:] if path.startswith("./") else path[1:]
    return path


def positive_int(value: Any) -> int | None:
    """Coerce ``value`` to a positive int, or None."""
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def decode_json(raw: bytes | str | None, tool: str) -> tuple[Any, str | None]:
    """Decode a raw report.

    Returns ``(payload, None)`` on success or ``(None, error message)``
    when the input is empty, not UTF-8, or not JSON.
    """
    if raw is None:
        return None, f"{tool}: no report content"
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            return None, f"{tool}: report is not valid UTF-8 ({exc})"
    else:
        text = raw
    if not text.strip():
        return None, f"{tool}: report is empty"
    try:
        return json.loads(text), None
    except json.JSONDecodeError as exc:
        return None, f"{tool}: invalid JSON ({exc})"


def compact(text: Any) -> str:
    """Collapse whitespace in a tool message to a single line."""
    return " ".join(str(text or "").split())


def counter(value: Any) -> int:
    """Coerce a summary counter to a non-negative int; unusable values count 0."""
    return positive_int(value) or 0


def array_field(container: dict[str, Any], key: str) -> list[Any]:
    """Return ``container[key]`` as a list, [] when absent.

    Raises:
        MalformedReport: If the field is present but not an array.
    """
    value = container.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedReport(f"'{key}' is not an array")
    return value


def text_or_none(value: Any) -> str | None:
    """Return ``value`` as a non-empty string, or None."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None
