"""Publish static-analysis findings on pull requests.

Parses scanner reports into one finding model, posts findings that sit on
changed lines as inline review comments, and keeps a single summary comment
with the full report up to date.
"""

from .aggregate import aggregate
from .diff_index import build_diff_line_map, index_patch
from .models import AnnotationRequest, Finding, PostingStats, ToolReport
from .parsers import parse, parse_report
from .render_report import render_report
from .summary import reconcile

__version__ = "0.1.0"

__all__ = [
    "AnnotationRequest",
    "Finding",
    "PostingStats",
    "ToolReport",
    "aggregate",
    "build_diff_line_map",
    "index_patch",
    "parse",
    "parse_report",
    "reconcile",
    "render_report",
]
