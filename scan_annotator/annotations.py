"""Annotation filter: keep only findings anchored on lines in the PR diff."""

from __future__ import annotations

from collections.abc import Iterable

from .diff_index import DiffLineMap, is_commentable
from .models import TOOL_TITLES, AnnotationBreakdown, AnnotationRequest, Finding


def format_annotation_body(finding: Finding) -> str:
    """Render one finding as a review-comment body."""
    title = TOOL_TITLES.get(finding.tool, finding.tool)
    rule = f" `{finding.rule_id}`" if finding.rule_id else ""
    return f"**[{finding.severity}] {title}**{rule}: {finding.message}"


def filter_findings(findings: Iterable[Finding], diff_map: DiffLineMap) -> list[AnnotationRequest]:
    """Turn diff-anchored findings into annotation requests, in input order."""
    return [
        AnnotationRequest(
            path=finding.path,
            line=finding.line,  # type: ignore[arg-type]
            body=format_annotation_body(finding),
        )
        for finding in findings
        if is_commentable(diff_map, finding.path, finding.line)
    ]


def breakdown(findings: Iterable[Finding], diff_map: DiffLineMap) -> AnnotationBreakdown:
    """Count findings by whether they can be annotated inline."""
    eligible = outside = file_level = 0
    for finding in findings:
        if finding.line is None:
            file_level += 1
        elif is_commentable(diff_map, finding.path, finding.line):
            eligible += 1
        else:
            outside += 1
    return AnnotationBreakdown(eligible=eligible, outside_diff=outside, file_level=file_level)
