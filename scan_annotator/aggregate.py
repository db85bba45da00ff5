"""Finding aggregator: merge per-tool findings in a fixed tool order."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jsonschema import ValidationError

from .models import TOOL_ORDER, Finding, ToolReport
from .schema import validate_findings

logger = logging.getLogger(__name__)


def _stage_findings(tool: str, stage: Any) -> list[Finding]:
    """Return a stage's findings, or [] when the stage is malformed."""
    if isinstance(stage, ToolReport):
        stage = stage.findings
    if not isinstance(stage, list):
        logger.warning(
            "Ignoring %s stage: expected a list of findings, got %s",
            tool,
            type(stage).__name__,
        )
        return []
    if not all(isinstance(item, Finding) for item in stage):
        logger.warning("Ignoring %s stage: contains non-finding entries", tool)
        return []
    return stage


def aggregate(stages: Mapping[str, Any]) -> list[Finding]:
    """Concatenate findings from every tool stage.

    Tools are merged in ``TOOL_ORDER`` and findings keep their order within
    a tool. Duplicates across tools are kept: each tool is an independent
    analysis.

    Args:
        stages: Tool id to its ``ToolReport`` or list of findings.

    Returns:
        The merged finding list (a new list; inputs are not modified).
    """
    for tool in stages:
        if tool not in TOOL_ORDER:
            logger.warning("Ignoring findings from unknown tool %r", tool)

    merged: list[Finding] = []
    for tool in TOOL_ORDER:
        if tool in stages:
            merged.extend(_stage_findings(tool, stages[tool]))
    return merged


def findings_to_json(findings: list[Finding]) -> str:
    """Serialize findings in the unified finding schema."""
    return json.dumps([f.to_dict() for f in findings], indent=2)


def write_findings(findings: list[Finding], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(findings_to_json(findings) + "\n", encoding="utf-8")
    return path


def load_findings(path: Path) -> list[Finding]:
    """Load a persisted unified-finding artifact.

    Like the tool parsers, an unreadable or invalid artifact yields [].
    """
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Cannot load findings from %s: %s", path, exc)
        return []
    try:
        validate_findings(payload)
    except ValidationError as exc:
        logger.warning("Findings file %s does not match the schema: %s", path, exc.message)
        return []
    return [Finding.from_dict(item) for item in payload]
