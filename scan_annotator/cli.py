"""Command-line entry point.

Usage:
  scan-annotator run [--findings-out PATH]
  scan-annotator render [--output PATH]
  scan-annotator findings [--output PATH]

``run`` posts inline annotations and the summary comment to the pull request
named by GITHUB_REPOSITORY / PR_NUMBER. ``render`` and ``findings`` only read
the scanner reports and never touch the network.

Exit codes: 0 when the run completed (even if some annotations failed to
post), 2 on configuration errors.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

from .aggregate import findings_to_json
from .config import Config, get_config
from .errors import ConfigError
from .github import GitHubClient
from .pipeline import PipelineResult, collect_findings, render_for, run_pipeline

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="scan-annotator", description=__doc__.split("\n")[0])
    parser.add_argument("--reports-dir", help="Directory holding scanner reports")
    parser.add_argument("--iac-dir", help="Infrastructure root for unresolved checkov findings")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Annotate the pull request and update the summary")
    run.add_argument("--findings-out", help="Also write the unified findings JSON here")

    render = sub.add_parser("render", help="Write the markdown report without posting")
    render.add_argument("--output", help="Output file (default: stdout)")

    findings = sub.add_parser("findings", help="Write the unified findings JSON")
    findings.add_argument("--output", help="Output file (default: stdout)")

    return parser.parse_args(argv)


def _apply_args(config: Config, args: argparse.Namespace) -> Config:
    reports = config.reports
    if args.reports_dir:
        reports = dataclasses.replace(reports, reports_dir=Path(args.reports_dir))
    if args.iac_dir:
        reports = dataclasses.replace(reports, iac_dir=args.iac_dir.strip("/"))
    return dataclasses.replace(config, reports=reports)


def _emit(text: str, output: str | None) -> None:
    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        logger.info("Wrote %s", path)
    else:
        sys.stdout.write(text)


async def _run(config: Config, findings_out: str | None) -> PipelineResult:
    async with GitHubClient(config.github) as client:
        return await run_pipeline(
            config,
            client,
            findings_out=Path(findings_out) if findings_out else None,
        )


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = _apply_args(get_config(), args)
    except (ConfigError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    level = logging.DEBUG if args.verbose else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(message)s")

    if args.command == "findings":
        findings, _ = collect_findings(config.reports)
        _emit(findings_to_json(findings) + "\n", args.output)
        return 0

    if args.command == "render":
        findings, tool_reports = collect_findings(config.reports)
        result = PipelineResult(findings=findings, tool_reports=tool_reports)
        _emit(render_for(config, result), args.output)
        return 0

    try:
        config.github.validate()
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    result = asyncio.run(_run(config, args.findings_out))
    if result.errors:
        logger.warning("Run finished with %d error(s); see log above", len(result.errors))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
