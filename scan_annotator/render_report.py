"""Report renderer: produce the markdown summary from the full finding set.

Rendering is a pure function of its inputs: no clock, no environment, no
mutation. Identical findings and commit SHA give byte-identical markdown,
which keeps summary-comment updates idempotent.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from urllib.parse import quote

from .models import (
    BLOCKING_SEVERITIES,
    SEVERITIES,
    TOOL_ORDER,
    TOOL_TITLES,
    AnnotationBreakdown,
    Finding,
    PostingStats,
    ToolReport,
    is_synthetic_path,
)

REPORT_TITLE = "## Static Analysis Report"

MAX_ROWS_PER_TOOL = 100
MAX_MESSAGE_CHARS = 300
# GitHub rejects comment bodies over 65536 characters; the rest is left for
# the summary marker line.
MAX_REPORT_CHARS = 65000

STATUS_FAIL = "❌ Failing"
STATUS_WARN = "⚠️ Issues"
STATUS_PASS = "✅ Passing"
STATUS_ERROR = "⚠️ Unreadable report"
STATUS_MISSING = "➖ No report"


def escape_cell(text: str) -> str:
    """Make ``text`` safe inside a single markdown table cell."""
    return " ".join(text.split()).replace("|", "\\|")


def truncate(text: str, limit: int = MAX_MESSAGE_CHARS) -> str:
    """Shorten ``text`` to at most ``limit`` characters, marking the cut with …."""
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


def finding_link(finding: Finding, *, repository: str, head_sha: str, server_url: str) -> str:
    """Return the blob URL for a finding, or "" when none can be built."""
    if not (repository and head_sha) or is_synthetic_path(finding.path):
        return ""
    url = f"{server_url.rstrip('/')}/{repository}/blob/{head_sha}/{quote(finding.path)}"
    if finding.line is not None:
        url += f"#L{finding.line}"
    return url


def _location(finding: Finding, link: str) -> str:
    label = f"{finding.path}:{finding.line}" if finding.line is not None else finding.path
    if link:
        return f"[{escape_cell(label)}]({link})"
    return f"`{label.replace('`', '')}`"


def tool_status(findings: Sequence[Finding], report: ToolReport | None) -> str:
    if report is not None and report.status == "missing" and not findings:
        return STATUS_MISSING
    if report is not None and report.status == "error":
        return STATUS_ERROR
    if any(f.severity in BLOCKING_SEVERITIES for f in findings):
        return STATUS_FAIL
    if findings:
        return STATUS_WARN
    return STATUS_PASS


def _metric(report: ToolReport | None, key: str) -> str:
    if report is None or key not in report.metrics:
        return "-"
    return str(report.metrics[key])


def _summary_table(
    by_tool: Mapping[str, list[Finding]],
    tool_reports: Mapping[str, ToolReport],
) -> list[str]:
    lines = [
        "| Tool | Status | Findings | Passed | Failed | Skipped |",
        "|------|--------|----------|--------|--------|---------|",
    ]
    for tool in TOOL_ORDER:
        findings = by_tool[tool]
        report = tool_reports.get(tool)
        lines.append(
            f"| {TOOL_TITLES[tool]} | {tool_status(findings, report)} | {len(findings)} "
            f"| {_metric(report, 'passed')} | {_metric(report, 'failed')} "
            f"| {_metric(report, 'skipped')} |"
        )
    return lines


def _annotation_section(
    breakdown: AnnotationBreakdown | None,
    stats: PostingStats | None,
    skipped_reason: str | None,
) -> list[str]:
    lines = ["### Inline annotations", ""]
    if skipped_reason:
        lines.append(f"Inline annotations were skipped: {skipped_reason}")
        lines.append("")
        return lines
    if breakdown is None:
        return []
    lines.append(f"- On changed lines: {breakdown.eligible}")
    lines.append(f"- Outside the PR diff (summary only): {breakdown.outside_diff}")
    lines.append(f"- File-level, no line (summary only): {breakdown.file_level}")
    if stats is not None:
        lines.append(f"- Posted: {stats.succeeded}")
        if stats.failed:
            lines.append(f"- Failed to post: {stats.failed}")
        if stats.dropped:
            lines.append(f"- Rejected by GitHub as outside the diff: {stats.dropped}")
    lines.append("")
    return lines


def _finding_row(finding: Finding, *, repository: str, head_sha: str, server_url: str) -> str:
    link = finding_link(finding, repository=repository, head_sha=head_sha, server_url=server_url)
    rule = f"`{finding.rule_id}`" if finding.rule_id else "-"
    return (
        f"| {finding.severity} | {_location(finding, link)} | {rule} "
        f"| {escape_cell(truncate(finding.message))} |"
    )


def _detail_section(tool: str, rows: Sequence[str], shown: int) -> list[str]:
    noun = "finding" if len(rows) == 1 else "findings"
    lines = [
        "<details>",
        f"<summary><b>{TOOL_TITLES[tool]}</b> ({len(rows)} {noun})</summary>",
        "",
        "| Severity | Location | Rule | Message |",
        "|----------|----------|------|---------|",
    ]
    lines.extend(rows[:shown])
    hidden = len(rows) - shown
    if hidden > 0:
        lines.append("")
        lines.append(f"_…and {hidden} more {TOOL_TITLES[tool]} findings not shown._")
    lines.extend(["", "</details>", ""])
    return lines


def _drop_rows(rows: Mapping[str, Sequence[str]], shown: dict[str, int], overflow: int) -> None:
    """Hide detail rows, last tool first, until ``overflow`` characters are freed."""
    for tool in reversed(TOOL_ORDER):
        while overflow > 0 and shown.get(tool, 0) > 0:
            shown[tool] -= 1
            overflow -= len(rows[tool][shown[tool]]) + 1
        if overflow <= 0:
            return


def render_report(
    findings: Sequence[Finding],
    *,
    repository: str,
    head_sha: str,
    server_url: str = "https://github.com",
    tool_reports: Mapping[str, ToolReport] | None = None,
    breakdown: AnnotationBreakdown | None = None,
    stats: PostingStats | None = None,
    annotations_skipped: str | None = None,
) -> str:
    """Render the full, unfiltered finding set as a markdown document.

    Args:
        findings: Aggregated findings, in aggregation order.
        repository: ``owner/name`` used for deep links.
        head_sha: PR head commit used for deep links.
        server_url: GitHub web base URL.
        tool_reports: Per-tool parse results, for status and raw metrics.
        breakdown: Inline vs summary-only counts from the annotation filter.
        stats: Batcher outcome, when annotations were posted.
        annotations_skipped: Reason the annotation phase did not run.

    Returns:
        Markdown text ending with a newline.
    """
    tool_reports = tool_reports or {}
    by_tool: dict[str, list[Finding]] = {tool: [] for tool in TOOL_ORDER}
    for finding in findings:
        by_tool.setdefault(finding.tool, []).append(finding)

    severity_counts = {sev: 0 for sev in SEVERITIES}
    for finding in findings:
        severity_counts[finding.severity] = severity_counts.get(finding.severity, 0) + 1

    lines = [REPORT_TITLE, ""]
    commit = f"`{head_sha[:7]}`" if head_sha else "unknown"
    lines.append(f"**Commit**: {commit} · **Total findings**: {len(findings)}")
    counted = [f"{sev}: {n}" for sev, n in severity_counts.items() if n]
    if counted:
        lines.append("")
        lines.append(f"**By severity**: {', '.join(counted)}")
    lines.append("")

    lines.extend(_summary_table(by_tool, tool_reports))
    lines.append("")
    lines.extend(_annotation_section(breakdown, stats, annotations_skipped))

    problems = [
        message
        for tool in TOOL_ORDER
        if tool in tool_reports and tool_reports[tool].status == "error"
        for message in tool_reports[tool].messages
    ]
    if problems:
        lines.append("### Report problems")
        lines.append("")
        lines.extend(f"- {escape_cell(truncate(message))}" for message in problems)
        lines.append("")

    rows = {
        tool: [
            _finding_row(f, repository=repository, head_sha=head_sha, server_url=server_url)
            for f in by_tool[tool]
        ]
        for tool in TOOL_ORDER
        if by_tool[tool]
    }
    shown = {tool: min(len(tool_rows), MAX_ROWS_PER_TOOL) for tool, tool_rows in rows.items()}

    footer = ["No findings reported by any scanner.", ""] if not findings else []

    while True:
        details = [line for tool in rows for line in _detail_section(tool, rows[tool], shown[tool])]
        report = "\n".join(lines + details + footer).rstrip("\n") + "\n"
        overflow = len(report) - MAX_REPORT_CHARS
        if overflow <= 0 or not any(shown.values()):
            return report
        _drop_rows(rows, shown, overflow)
