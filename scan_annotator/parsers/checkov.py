"""Parse checkov ``-o json`` reports for Terraform plans.

Checkov reports findings per resource. When scanning a plan JSON, the
reported file is the plan itself, so locations are recovered from the
plan-enrichment file, a JSON document mapping resource addresses to their
source location. Accepted layouts (a list may also sit under a
``resources`` key, and a bare string value means a file without a line)::

    {"aws_s3_bucket.data": {"file": "Terraform/s3.tf", "line": 12}}
    [{"address": "aws_s3_bucket.data", "file": "Terraform/s3.tf", "line": 12}]

Resolution order for each failed check:

1. enrichment entry for the resource address;
2. the reported source file and the start of ``file_line_range``;
3. the reported source file without a line (file-level);
4. ``<iac_dir>/<unknown>`` without a line.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from ..models import UNKNOWN_PATH, Finding, ToolReport, normalize_severity
from .common import (
    MalformedReport,
    ParseContext,
    array_field,
    compact,
    counter,
    decode_json,
    normalize_path,
    positive_int,
    text_or_none,
)

logger = logging.getLogger(__name__)

TOOL = "checkov"

_INDEX_SUFFIX = re.compile(r"\[[^\]]*\]$")
_SUMMARY_KEYS = {"passed", "failed", "skipped", "resource_count"}

Location = tuple[str, int | None]


def load_enrichment(raw: bytes | str | None, workspace: str = "") -> dict[str, Location]:
    """Decode the plan-enrichment file into ``address -> (path, line)``.

    A missing or malformed file yields an empty mapping.
    """
    if raw is None:
        return {}
    payload, error = decode_json(raw, "checkov enrichment")
    if error:
        logger.warning("Ignoring plan enrichment: %s", error)
        return {}

    if isinstance(payload, dict) and isinstance(payload.get("resources"), list):
        payload = payload["resources"]

    entries: list[tuple[str, Any]] = []
    if isinstance(payload, dict):
        entries = list(payload.items())
    elif isinstance(payload, list):
        entries = [
            (str(item.get("address")), item)
            for item in payload
            if isinstance(item, dict) and item.get("address")
        ]
    else:
        logger.warning("Ignoring plan enrichment: unexpected top-level JSON type")
        return {}

    locations: dict[str, Location] = {}
    for address, value in entries:
        if isinstance(value, str):
            value = {"file": value}
        if not isinstance(value, dict):
            continue
        path = normalize_path(value.get("file") or value.get("file_path"), workspace)
        if path:
            locations[address] = (path, positive_int(value.get("line") or value.get("start_line")))
    return locations


def _lookup(locations: dict[str, Location], address: str) -> Location | None:
    while address:
        if address in locations:
            return locations[address]
        stripped = _INDEX_SUFFIX.sub("", address)
        if stripped == address:
            return None
        address = stripped
    return None


def _is_plan_artifact(path: str, check_type: str) -> bool:
    return check_type == "terraform_plan" and path.endswith(".json")


def _resolve(
    check: dict[str, Any],
    check_type: str,
    locations: dict[str, Location],
    context: ParseContext,
) -> Location:
    resource = str(check.get("resource") or "")
    enriched = _lookup(locations, resource) if resource else None
    if enriched is not None:
        return enriched

    path = normalize_path(check.get("repo_file_path") or check.get("file_path"), context.workspace)
    if path and not _is_plan_artifact(path, check_type):
        line_range = check.get("file_line_range") or []
        start = line_range[0] if isinstance(line_range, list) and line_range else None
        return path, positive_int(start)

    return f"{context.iac_dir}/{UNKNOWN_PATH}", None


def _framework_reports(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        if not all(isinstance(item, dict) for item in payload):
            raise MalformedReport("expected an array of framework reports")
        return payload
    if isinstance(payload, dict):
        if "results" in payload or _SUMMARY_KEYS & payload.keys():
            return [payload]
    raise MalformedReport("expected a framework report object or an array of them")


def parse_payload(payload: Any, context: ParseContext) -> ToolReport:
    reports = _framework_reports(payload)
    locations = load_enrichment(context.enrichment, context.workspace)

    findings: list[Finding] = []
    metrics = {"passed": 0, "failed": 0, "skipped": 0}

    for report in reports:
        check_type = str(report.get("check_type") or "")
        summary = report.get("summary")
        # Checkov prints a bare summary when there was nothing to scan.
        if summary is None and "results" not in report:
            summary = report
        if isinstance(summary, dict):
            for key in metrics:
                metrics[key] += counter(summary.get(key))

        results = report.get("results") or {}
        if not isinstance(results, dict):
            raise MalformedReport("'results' is not an object")

        for check in array_field(results, "failed_checks"):
            if not isinstance(check, dict):
                logger.debug("checkov: skipping non-object check %r", check)
                continue
            path, line = _resolve(check, check_type, locations, context)
            message = compact(check.get("check_name"))
            if check.get("resource"):
                message = f"{message} ({check['resource']})"
            findings.append(
                Finding(
                    tool=TOOL,
                    path=path,
                    line=line,
                    severity=normalize_severity(check.get("severity")),
                    rule_id=text_or_none(check.get("check_id")),
                    message=message,
                )
            )

    return ToolReport(tool=TOOL, status="ok", findings=findings, metrics=metrics)
