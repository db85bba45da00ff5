"""Configuration management for scan-annotator.

Environment variables:
    GITHUB_TOKEN: Token used for the GitHub REST API
    GITHUB_REPOSITORY: Repository in ``owner/name`` form
    PR_NUMBER: Pull request number to annotate
    HEAD_SHA: PR head commit (falls back to GITHUB_SHA)
    GITHUB_API_URL: API base URL (default: https://api.github.com)
    GITHUB_SERVER_URL: Web base URL for deep links (default: https://github.com)
    ANNOTATOR_BATCH_SIZE: Review comments per submission (default: 20)
    ANNOTATOR_CHUNK_DELAY: Seconds to wait between submissions (default: 3)
    ANNOTATOR_MAX_ATTEMPTS: Rate-limit retries per call (default: 5)
    ANNOTATOR_BASE_DELAY_MS: First backoff delay in milliseconds (default: 3000)
    ANNOTATOR_REPORTS_DIR: Directory holding scanner reports (default: reports)
    ANNOTATOR_REPORTS_FILE: Optional YAML file mapping tools to report paths
    ANNOTATOR_IAC_DIR: Infrastructure root used for unresolved findings (default: Terraform)
    ANNOTATOR_WORKSPACE: Absolute prefix stripped from report paths (default: GITHUB_WORKSPACE)
    ANNOTATOR_LOG_LEVEL: Logging level (default: INFO)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import ConfigError
from .models import TOOL_ORDER

logger = logging.getLogger(__name__)

ENRICHMENT_KEY = "checkov_enrichment"

DEFAULT_REPORT_FILES: dict[str, str] = {
    "pylint": "pylint.json",
    "bandit": "bandit.json",
    "trivy": "trivy.json",
    "hadolint": "hadolint.json",
    "checkov": "checkov.json",
    ENRICHMENT_KEY: "checkov-enrichment.json",
}


@dataclass
class GitHubConfig:
    """Pull request identity and API endpoints."""

    token: str = ""
    repository: str = ""
    pr_number: int | None = None
    head_sha: str = ""
    api_url: str = "https://api.github.com"
    server_url: str = "https://github.com"

    @classmethod
    def from_env(cls) -> GitHubConfig:
        raw_pr = os.environ.get("PR_NUMBER", "").strip()
        try:
            pr_number = int(raw_pr) if raw_pr else None
        except ValueError as exc:
            raise ConfigError(f"PR_NUMBER must be an integer, got {raw_pr!r}") from exc

        return cls(
            token=os.environ.get("GITHUB_TOKEN", ""),
            repository=os.environ.get("GITHUB_REPOSITORY", ""),
            pr_number=pr_number,
            head_sha=os.environ.get("HEAD_SHA") or os.environ.get("GITHUB_SHA", ""),
            api_url=os.environ.get("GITHUB_API_URL", "https://api.github.com").rstrip("/"),
            server_url=os.environ.get("GITHUB_SERVER_URL", "https://github.com").rstrip("/"),
        )

    def validate(self) -> None:
        """Raise ConfigError unless everything needed to post is present."""
        missing = []
        if not self.token:
            missing.append("GITHUB_TOKEN")
        if not self.repository or "/" not in self.repository:
            missing.append("GITHUB_REPOSITORY")
        if self.pr_number is None or self.pr_number <= 0:
            missing.append("PR_NUMBER")
        if missing:
            raise ConfigError(
                f"Missing or invalid configuration: {', '.join(missing)}"
            )


@dataclass
class PostingConfig:
    """Batching and retry behaviour for GitHub writes."""

    batch_size: int = 20
    chunk_delay_seconds: float = 3.0
    max_attempts: int = 5
    base_delay_ms: int = 3000

    @classmethod
    def from_env(cls) -> PostingConfig:
        batch_size = int(os.environ.get("ANNOTATOR_BATCH_SIZE", "20"))
        if batch_size <= 0:
            raise ConfigError("ANNOTATOR_BATCH_SIZE must be positive")
        return cls(
            batch_size=batch_size,
            chunk_delay_seconds=float(os.environ.get("ANNOTATOR_CHUNK_DELAY", "3")),
            max_attempts=int(os.environ.get("ANNOTATOR_MAX_ATTEMPTS", "5")),
            base_delay_ms=int(os.environ.get("ANNOTATOR_BASE_DELAY_MS", "3000")),
        )


@dataclass
class ReportsConfig:
    """Where scanner reports live and how their paths are normalized."""

    reports_dir: Path = Path("reports")
    # Explicit per-tool paths; tools not listed use reports_dir/<default name>.
    overrides: dict[str, Path] = field(default_factory=dict)
    iac_dir: str = "Terraform"
    workspace: str = ""

    @classmethod
    def from_env(cls) -> ReportsConfig:
        overrides: dict[str, Path] = {}
        reports_file = os.environ.get("ANNOTATOR_REPORTS_FILE")
        if reports_file:
            overrides = {
                key: Path(value)
                for key, value in load_report_overrides(Path(reports_file)).items()
            }

        return cls(
            reports_dir=Path(os.environ.get("ANNOTATOR_REPORTS_DIR", "reports")),
            overrides=overrides,
            iac_dir=os.environ.get("ANNOTATOR_IAC_DIR", "Terraform").strip("/"),
            workspace=os.environ.get("ANNOTATOR_WORKSPACE")
            or os.environ.get("GITHUB_WORKSPACE", ""),
        )

    def path_for(self, key: str) -> Path:
        if key in self.overrides:
            return self.overrides[key]
        return self.reports_dir / DEFAULT_REPORT_FILES[key]


def load_report_overrides(path: Path) -> dict[str, str]:
    """Load a YAML mapping of tool id to report path.

    Raises:
        ConfigError: If the file is unreadable or not a mapping.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read reports file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Reports file {path} must contain a mapping")

    known = set(TOOL_ORDER) | {ENRICHMENT_KEY}
    overrides: dict[str, str] = {}
    for key, value in data.items():
        if key not in known:
            logger.warning("Ignoring unknown key %r in reports file %s", key, path)
            continue
        overrides[key] = str(value)
    return overrides


@dataclass
class Config:
    """Complete configuration for scan-annotator."""

    github: GitHubConfig = field(default_factory=GitHubConfig.from_env)
    posting: PostingConfig = field(default_factory=PostingConfig.from_env)
    reports: ReportsConfig = field(default_factory=ReportsConfig.from_env)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Config:
        """Load complete configuration from environment variables."""
        return cls(
            github=GitHubConfig.from_env(),
            posting=PostingConfig.from_env(),
            reports=ReportsConfig.from_env(),
            log_level=os.environ.get("ANNOTATOR_LOG_LEVEL", "INFO").upper(),
        )


# Global config instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
