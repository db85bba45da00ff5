"""Parse pylint JSON output.

Accepts both ``--output-format=json`` (a bare array of messages) and
``--output-format=json2`` (an object with ``messages`` and ``statistics``).
"""

from __future__ import annotations

import logging
from typing import Any

from ..models import Finding, ToolReport, normalize_severity
from .common import MalformedReport, ParseContext, compact, normalize_path, positive_int

logger = logging.getLogger(__name__)

TOOL = "pylint"

SEVERITY_MAP = {
    "fatal": "ERROR",
    "error": "ERROR",
    "warning": "WARNING",
    "convention": "INFO",
    "refactor": "INFO",
    "info": "INFO",
}


def parse_payload(payload: Any, context: ParseContext) -> ToolReport:
    if isinstance(payload, dict) and isinstance(payload.get("messages"), list):
        messages = payload["messages"]
    elif isinstance(payload, list):
        messages = payload
    else:
        raise MalformedReport("expected a JSON array of messages")

    findings: list[Finding] = []
    for entry in messages:
        if not isinstance(entry, dict):
            logger.debug("pylint: skipping non-object message %r", entry)
            continue
        path = normalize_path(entry.get("path") or entry.get("module"), context.workspace)
        if not path:
            logger.debug("pylint: skipping message without a path: %r", entry)
            continue
        rule_id = entry.get("message-id") or entry.get("messageId") or entry.get("symbol")
        message = compact(entry.get("message"))
        if entry.get("symbol"):
            message = f"{message} ({entry['symbol']})"
        findings.append(
            Finding(
                tool=TOOL,
                path=path,
                line=positive_int(entry.get("line")),
                severity=normalize_severity(entry.get("type"), SEVERITY_MAP),
                rule_id=str(rule_id) if rule_id else None,
                message=message,
            )
        )

    return ToolReport(
        tool=TOOL,
        status="ok",
        findings=findings,
        metrics={"failed": len(findings)},
    )
