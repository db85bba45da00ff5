"""End-to-end run: reports -> findings -> inline annotations + summary comment.

The annotation phase and the summary phase are independent: if the PR's
changed files cannot be listed, annotations are skipped but the summary is
still rendered and published, since it only needs findings and the commit.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from .aggregate import aggregate, write_findings
from .annotations import breakdown as annotation_breakdown
from .annotations import filter_findings
from .batcher import AnnotationBatcher
from .config import ENRICHMENT_KEY, Config, ReportsConfig
from .diff_index import build_diff_line_map
from .errors import GitHubAPIError
from .github import GitHubClient
from .models import TOOL_ORDER, AnnotationBreakdown, Finding, PostingStats, ToolReport
from .parsers import ParseContext, load_tool_report, read_report
from .render_report import render_report
from .retry import Sleep
from .summary import Action, SummaryCommentManager

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """What a run produced, for logging and the CLI exit code."""

    findings: list[Finding]
    tool_reports: dict[str, ToolReport]
    report: str = ""
    breakdown: AnnotationBreakdown | None = None
    stats: PostingStats | None = None
    annotations_skipped: str | None = None
    summary_action: Action | None = None
    errors: list[str] = field(default_factory=list)


def collect_tool_reports(reports: ReportsConfig) -> dict[str, ToolReport]:
    """Parse every configured scanner report."""
    enrichment_path = reports.path_for(ENRICHMENT_KEY)
    enrichment = read_report(enrichment_path) if enrichment_path.exists() else None
    context = ParseContext(
        workspace=reports.workspace,
        iac_dir=reports.iac_dir,
        enrichment=enrichment,
    )
    return {
        tool: load_tool_report(tool, reports.path_for(tool), context=context)
        for tool in TOOL_ORDER
    }


def collect_findings(reports: ReportsConfig) -> tuple[list[Finding], dict[str, ToolReport]]:
    tool_reports = collect_tool_reports(reports)
    findings = aggregate(tool_reports)
    logger.info("Aggregated %d finding(s) from %d tool(s)", len(findings), len(tool_reports))
    return findings, tool_reports


def render_for(config: Config, result: PipelineResult) -> str:
    return render_report(
        result.findings,
        repository=config.github.repository,
        head_sha=config.github.head_sha,
        server_url=config.github.server_url,
        tool_reports=result.tool_reports,
        breakdown=result.breakdown,
        stats=result.stats,
        annotations_skipped=result.annotations_skipped,
    )


async def annotate(
    config: Config,
    client: GitHubClient,
    result: PipelineResult,
    sleep: Sleep = asyncio.sleep,
) -> None:
    """Annotation phase; records its outcome on ``result``."""
    pr_number = config.github.pr_number or 0
    try:
        files = await client.list_pull_files(pr_number)
    except GitHubAPIError as exc:
        logger.error("Cannot list files of PR #%d, skipping inline annotations: %s", pr_number, exc)
        result.annotations_skipped = "the list of changed files could not be read"
        result.errors.append(str(exc))
        return

    diff_map = build_diff_line_map(files)
    result.breakdown = annotation_breakdown(result.findings, diff_map)
    requests = filter_findings(result.findings, diff_map)
    logger.info(
        "%d finding(s) on changed lines, %d outside the diff, %d file-level",
        result.breakdown.eligible,
        result.breakdown.outside_diff,
        result.breakdown.file_level,
    )
    batcher = AnnotationBatcher.from_config(client, config, sleep=sleep)
    result.stats = await batcher.post(requests)


async def run_pipeline(
    config: Config,
    client: GitHubClient,
    *,
    findings_out: Path | None = None,
    sleep: Sleep = asyncio.sleep,
) -> PipelineResult:
    """Run both phases against the configured pull request."""
    findings, tool_reports = collect_findings(config.reports)
    result = PipelineResult(findings=findings, tool_reports=tool_reports)
    if findings_out is not None:
        write_findings(findings, findings_out)

    await annotate(config, client, result, sleep=sleep)

    result.report = render_for(config, result)
    manager = SummaryCommentManager.from_config(client, config, sleep=sleep)
    try:
        result.summary_action = await manager.upsert(result.report)
    except GitHubAPIError as exc:
        logger.error("Could not publish the summary comment: %s", exc)
        result.errors.append(str(exc))
    return result
