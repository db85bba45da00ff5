"""Shared data models for scan-annotator.

These models define the unified finding schema consumed by every stage of
the pipeline: the tool parsers produce ``Finding`` objects, the diff-aware
filter turns eligible ones into ``AnnotationRequest`` objects, and the
batcher reports its outcome as ``PostingStats``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Tool = Literal["pylint", "bandit", "trivy", "hadolint", "checkov"]
Severity = Literal["CRITICAL", "HIGH", "MEDIUM", "LOW", "INFO", "ERROR", "WARNING"]
ReportStatus = Literal["ok", "missing", "error"]

# Fixed aggregation and rendering order.
TOOL_ORDER: tuple[str, ...] = ("pylint", "bandit", "trivy", "hadolint", "checkov")

TOOL_TITLES: dict[str, str] = {
    "pylint": "Pylint",
    "bandit": "Bandit",
    "trivy": "Trivy",
    "hadolint": "Hadolint",
    "checkov": "Checkov",
}

SEVERITIES: tuple[str, ...] = (
    "CRITICAL",
    "HIGH",
    "ERROR",
    "MEDIUM",
    "WARNING",
    "LOW",
    "INFO",
)

# Severities that mark a tool as failing in the summary table.
BLOCKING_SEVERITIES: frozenset[str] = frozenset({"CRITICAL", "HIGH", "ERROR"})

UNKNOWN_PATH = "<unknown>"


def normalize_severity(value: Any, mapping: dict[str, str] | None = None) -> Severity:
    """Map a tool-native severity onto the shared vocabulary.

    ``mapping`` keys are compared case-insensitively. Values that are neither
    in ``mapping`` nor already a shared severity fall back to ``INFO``.
    """
    if value is None:
        return "INFO"
    cleaned = str(value).strip()
    if mapping:
        lowered = {k.lower(): v for k, v in mapping.items()}
        mapped = lowered.get(cleaned.lower())
        if mapped is not None:
            return mapped  # type: ignore[return-value]
    upper = cleaned.upper()
    if upper in SEVERITIES:
        return upper  # type: ignore[return-value]
    return "INFO"


def is_synthetic_path(path: str) -> bool:
    """Return True for placeholder paths that point at no real file."""
    return path.rsplit("/", 1)[-1] == UNKNOWN_PATH


@dataclass(frozen=True, slots=True)
class Finding:
    """Canonical finding representation across all scanners."""

    tool: str
    path: str
    line: int | None
    severity: Severity
    rule_id: str | None
    message: str

    @property
    def is_file_level(self) -> bool:
        return self.line is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "line": self.line,
            "tool": self.tool,
            "severity": self.severity,
            "ruleId": self.rule_id,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        return cls(
            tool=data["tool"],
            path=data["path"],
            line=data.get("line"),
            severity=data["severity"],
            rule_id=data.get("ruleId"),
            message=data.get("message", ""),
        )


@dataclass(slots=True)
class ToolReport:
    """Normalized result of parsing one scanner's report."""

    tool: str
    status: ReportStatus
    findings: list[Finding] = field(default_factory=list)
    # Raw pass/fail/skip counters where the tool reports them.
    metrics: dict[str, int] = field(default_factory=dict)
    messages: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "status": self.status,
            "findings": [f.to_dict() for f in self.findings],
            "metrics": dict(self.metrics),
            "messages": list(self.messages),
        }


@dataclass(frozen=True, slots=True)
class AnnotationRequest:
    """A single line-anchored review comment waiting to be posted."""

    path: str
    line: int
    body: str
    side: Literal["RIGHT"] = "RIGHT"

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "line": self.line,
            "side": self.side,
            "body": self.body,
        }


@dataclass(frozen=True, slots=True)
class AnnotationBreakdown:
    """How the finding set split between inline and summary-only surfaces."""

    eligible: int = 0
    outside_diff: int = 0
    file_level: int = 0


@dataclass(slots=True)
class PostingStats:
    """Outcome counters reported by the annotation batcher."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    dropped: int = 0
    chunks_posted: int = 0
    chunks_failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "dropped": self.dropped,
            "chunks_posted": self.chunks_posted,
            "chunks_failed": self.chunks_failed,
        }
