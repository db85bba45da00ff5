"""Tool report parsers.

One parser per scanner family, selected by tool id::

    from scan_annotator.parsers import parse, load_tool_report

    findings = parse("bandit", raw_bytes)
    report = load_tool_report(
        "checkov", Path("reports/checkov.json"), context=ParseContext(enrichment=raw)
    )

Parsers never raise on bad input: an unreadable, undecodable or
unexpectedly-shaped report yields a ``ToolReport`` with no findings and
``status="error"`` (``"missing"`` when the file does not exist).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..models import Finding, ToolReport
from . import bandit, checkov, hadolint, pylint, trivy
from .common import MalformedReport, ParseContext, decode_json, normalize_path

logger = logging.getLogger(__name__)

PayloadParser = Callable[[Any, ParseContext], ToolReport]

PARSERS: dict[str, PayloadParser] = {
    "pylint": pylint.parse_payload,
    "bandit": bandit.parse_payload,
    "trivy": trivy.parse_payload,
    "hadolint": hadolint.parse_payload,
    "checkov": checkov.parse_payload,
}


def _failed(tool: str, status: str, message: str) -> ToolReport:
    logger.warning("Skipping %s report: %s", tool, message)
    return ToolReport(tool=tool, status=status, messages=[message])  # type: ignore[arg-type]


def parse_report(
    tool: str,
    raw: bytes | str | None,
    *,
    context: ParseContext | None = None,
) -> ToolReport:
    """Parse one tool's raw report into a :class:`ToolReport`.

    Raises:
        ValueError: If ``tool`` is not a known tool id.
    """
    try:
        parser = PARSERS[tool]
    except KeyError:
        raise ValueError(f"Unknown tool {tool!r}; expected one of {sorted(PARSERS)}") from None

    context = context or ParseContext()
    payload, error = decode_json(raw, tool)
    if error:
        return _failed(tool, "error", error)
    try:
        report = parser(payload, context)
    except MalformedReport as exc:
        return _failed(tool, "error", f"{tool}: unexpected report shape ({exc})")
    except (TypeError, ValueError, AttributeError) as exc:
        # A field with a type the parser did not anticipate.
        return _failed(tool, "error", f"{tool}: unexpected value in report ({exc})")

    logger.info("Parsed %d %s finding(s)", len(report.findings), tool)
    return report


def parse(tool: str, raw: bytes | str | None, *, context: ParseContext | None = None) -> list[Finding]:
    """Parse one tool's raw report into findings."""
    return parse_report(tool, raw, context=context).findings


def read_report(path: Path) -> bytes | None:
    """Read a report file, returning None when it does not exist."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.warning("Cannot read %s: %s", path, exc)
        return None


def load_tool_report(
    tool: str,
    path: Path,
    *,
    context: ParseContext | None = None,
) -> ToolReport:
    """Read and parse the report file for ``tool``."""
    if not path.exists():
        return _failed(tool, "missing", f"{tool}: report not found at {path}")
    raw = read_report(path)
    if raw is None:
        return _failed(tool, "error", f"{tool}: report at {path} could not be read")
    return parse_report(tool, raw, context=context)


__all__ = [
    "PARSERS",
    "MalformedReport",
    "ParseContext",
    "load_tool_report",
    "normalize_path",
    "parse",
    "parse_report",
    "read_report",
]
