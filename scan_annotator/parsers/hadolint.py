"""Parse hadolint ``-f json`` reports."""

from __future__ import annotations

import logging
from typing import Any

from ..models import Finding, ToolReport, normalize_severity
from .common import (
    MalformedReport,
    ParseContext,
    compact,
    normalize_path,
    positive_int,
    text_or_none,
)

logger = logging.getLogger(__name__)

TOOL = "hadolint"

SEVERITY_MAP = {
    "error": "ERROR",
    "warning": "WARNING",
    "info": "INFO",
    "style": "INFO",
}


def parse_payload(payload: Any, context: ParseContext) -> ToolReport:
    if not isinstance(payload, list):
        raise MalformedReport("expected a JSON array of rule violations")

    findings: list[Finding] = []
    for entry in payload:
        if not isinstance(entry, dict):
            logger.debug("hadolint: skipping non-object entry %r", entry)
            continue
        path = normalize_path(entry.get("file"), context.workspace)
        if not path:
            continue
        findings.append(
            Finding(
                tool=TOOL,
                path=path,
                line=positive_int(entry.get("line")),
                severity=normalize_severity(entry.get("level"), SEVERITY_MAP),
                rule_id=text_or_none(entry.get("code")),
                message=compact(entry.get("message")),
            )
        )

    return ToolReport(
        tool=TOOL,
        status="ok",
        findings=findings,
        metrics={"failed": len(findings)},
    )
