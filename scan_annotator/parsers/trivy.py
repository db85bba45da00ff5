"""Parse trivy JSON reports (``trivy config`` / ``trivy fs -f json``).

Failed misconfigurations become line-scoped findings anchored at the cause's
start line. Vulnerabilities, when present, have no line and become
file-level findings on their target (e.g. ``requirements.txt``).
"""

from __future__ import annotations

import logging
from typing import Any

from ..models import Finding, ToolReport, normalize_severity
from .common import (
    MalformedReport,
    ParseContext,
    array_field,
    compact,
    counter,
    normalize_path,
    positive_int,
    text_or_none,
)

logger = logging.getLogger(__name__)

TOOL = "trivy"

SEVERITY_MAP = {"unknown": "INFO"}


def _misconfiguration(target: str, misconf: dict[str, Any]) -> Finding | None:
    status = str(misconf.get("Status") or "FAIL").upper()
    if status != "FAIL":
        return None
    cause = misconf.get("CauseMetadata") or {}
    title = compact(misconf.get("Title"))
    detail = compact(misconf.get("Message") or misconf.get("Description"))
    message = f"{title}: {detail}" if title and detail and detail != title else title or detail
    return Finding(
        tool=TOOL,
        path=target,
        line=positive_int(cause.get("StartLine")) if isinstance(cause, dict) else None,
        severity=normalize_severity(misconf.get("Severity"), SEVERITY_MAP),
        rule_id=text_or_none(misconf.get("AVDID")) or text_or_none(misconf.get("ID")),
        message=message,
    )


def _vulnerability(target: str, vuln: dict[str, Any]) -> Finding:
    package = " ".join(
        str(part) for part in (vuln.get("PkgName") or "unknown", vuln.get("InstalledVersion")) if part
    )
    fixed = vuln.get("FixedVersion") or "no fix available"
    title = compact(vuln.get("Title") or vuln.get("Description"))
    return Finding(
        tool=TOOL,
        path=target,
        line=None,
        severity=normalize_severity(vuln.get("Severity"), SEVERITY_MAP),
        rule_id=text_or_none(vuln.get("VulnerabilityID")),
        message=f"{package}: {title} (fixed in {fixed})",
    )


def parse_payload(payload: Any, context: ParseContext) -> ToolReport:
    if not isinstance(payload, dict):
        raise MalformedReport("expected an object with a 'Results' array")
    results = array_field(payload, "Results")

    findings: list[Finding] = []
    metrics = {"passed": 0, "failed": 0, "skipped": 0}
    has_summary = False

    for result in results:
        if not isinstance(result, dict):
            logger.debug("trivy: skipping non-object result %r", result)
            continue
        target = normalize_path(result.get("Target"), context.workspace)
        if not target:
            continue

        summary = result.get("MisconfSummary")
        if isinstance(summary, dict):
            has_summary = True
            metrics["passed"] += counter(summary.get("Successes"))
            metrics["failed"] += counter(summary.get("Failures"))
            metrics["skipped"] += counter(summary.get("Exceptions"))

        for misconf in array_field(result, "Misconfigurations"):
            if isinstance(misconf, dict):
                finding = _misconfiguration(target, misconf)
                if finding is not None:
                    findings.append(finding)
        for vuln in array_field(result, "Vulnerabilities"):
            if isinstance(vuln, dict):
                findings.append(_vulnerability(target, vuln))

    if not has_summary:
        metrics = {"failed": len(findings)}

    return ToolReport(tool=TOOL, status="ok", findings=findings, metrics=metrics)
