"""Parse bandit ``-f json`` reports."""

from __future__ import annotations

import logging
from typing import Any

from ..models import Finding, ToolReport, normalize_severity
from .common import (
    MalformedReport,
    ParseContext,
    array_field,
    compact,
    normalize_path,
    positive_int,
    text_or_none,
)

logger = logging.getLogger(__name__)

TOOL = "bandit"

SEVERITY_MAP = {
    "high": "HIGH",
    "medium": "MEDIUM",
    "low": "LOW",
    "undefined": "INFO",
}


def parse_payload(payload: Any, context: ParseContext) -> ToolReport:
    if not isinstance(payload, dict):
        raise MalformedReport("expected an object with a 'results' array")

    findings: list[Finding] = []
    for result in array_field(payload, "results"):
        if not isinstance(result, dict):
            logger.debug("bandit: skipping non-object result %r", result)
            continue
        path = normalize_path(result.get("filename"), context.workspace)
        if not path:
            logger.debug("bandit: skipping result without filename: %r", result)
            continue
        message = compact(result.get("issue_text"))
        confidence = result.get("issue_confidence")
        if confidence:
            message = f"{message} (confidence: {str(confidence).lower()})"
        findings.append(
            Finding(
                tool=TOOL,
                path=path,
                line=positive_int(result.get("line_number")),
                severity=normalize_severity(result.get("issue_severity"), SEVERITY_MAP),
                rule_id=text_or_none(result.get("test_id")),
                message=message,
            )
        )

    # Files bandit could not analyse are reported beside the results.
    messages = []
    for error in array_field(payload, "errors"):
        if isinstance(error, dict):
            messages.append(
                f"{normalize_path(error.get('filename'), context.workspace)}: "
                f"{compact(error.get('reason'))}"
            )

    return ToolReport(
        tool=TOOL,
        status="ok",
        findings=findings,
        metrics={"failed": len(findings)},
        messages=messages,
    )
