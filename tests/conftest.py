"""Pytest fixtures for scan-annotator tests."""

from pathlib import Path

import pytest
import respx

from scan_annotator.config import Config, GitHubConfig, PostingConfig, ReportsConfig, reset_config
from scan_annotator.github import GitHubClient

API = "https://api.github.com/repos/acme/app"
PR_NUMBER = 7
HEAD_SHA = "abc1234def5678"

# =============================================================================
# Environment Setup
# =============================================================================


@pytest.fixture(autouse=True)
def setup_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("GITHUB_TOKEN", "test-token")
    monkeypatch.setenv("GITHUB_REPOSITORY", "acme/app")
    monkeypatch.setenv("PR_NUMBER", str(PR_NUMBER))
    monkeypatch.setenv("HEAD_SHA", HEAD_SHA)
    for var in (
        "ANNOTATOR_REPORTS_FILE",
        "ANNOTATOR_WORKSPACE",
        "GITHUB_WORKSPACE",
        "ANNOTATOR_BATCH_SIZE",
        "ANNOTATOR_CHUNK_DELAY",
        "ANNOTATOR_MAX_ATTEMPTS",
        "ANNOTATOR_BASE_DELAY_MS",
        "ANNOTATOR_REPORTS_DIR",
        "ANNOTATOR_IAC_DIR",
        "ANNOTATOR_LOG_LEVEL",
        "GITHUB_API_URL",
        "GITHUB_SERVER_URL",
        "GITHUB_SHA",
    ):
        monkeypatch.delenv(var, raising=False)

    # Reset global config after each test
    yield
    reset_config()


@pytest.fixture
def reports_dir(tmp_path) -> Path:
    path = tmp_path / "reports"
    path.mkdir()
    return path


@pytest.fixture
def config(reports_dir):
    """Get test configuration."""
    return Config(
        github=GitHubConfig(
            token="test-token",
            repository="acme/app",
            pr_number=PR_NUMBER,
            head_sha=HEAD_SHA,
        ),
        posting=PostingConfig(),
        reports=ReportsConfig(reports_dir=reports_dir),
    )


@pytest.fixture
def gh_client(config):
    """Get a GitHub client configured for testing."""
    return GitHubClient(config.github)


# =============================================================================
# Mock GitHub API
# =============================================================================


@pytest.fixture
def mock_github():
    """Mock GitHub API responses."""
    with respx.mock(assert_all_called=False) as respx_mock:
        yield respx_mock


class RecordingSleep:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep():
    return RecordingSleep()


# =============================================================================
# Sample reports
# =============================================================================


@pytest.fixture
def bandit_report():
    return {
        "errors": [],
        "results": [
            {
                "filename": "./app/main.py",
                "line_number": 42,
                "issue_severity": "HIGH",
                "issue_confidence": "MEDIUM",
                "issue_text": "Possible hardcoded password: 'hunter2'",
                "test_id": "B105",
                "test_name": "hardcoded_password_string",
            },
            {
                "filename": "./app/main.py",
                "line_number": 12,
                "issue_severity": "LOW",
                "issue_confidence": "HIGH",
                "issue_text": "Consider possible security implications of subprocess.",
                "test_id": "B404",
                "test_name": "blacklist",
            },
        ],
        "metrics": {"_totals": {"loc": 120, "SEVERITY.HIGH": 1, "SEVERITY.LOW": 1}},
    }


@pytest.fixture
def pylint_report():
    return [
        {
            "type": "convention",
            "module": "app.main",
            "obj": "",
            "line": 1,
            "column": 0,
            "path": "app/main.py",
            "symbol": "missing-module-docstring",
            "message": "Missing module docstring",
            "message-id": "C0114",
        },
        {
            "type": "error",
            "module": "app.util",
            "obj": "helper",
            "line": 8,
            "column": 4,
            "path": "app/util.py",
            "symbol": "undefined-variable",
            "message": "Undefined variable 'x'",
            "message-id": "E0602",
        },
    ]


@pytest.fixture
def trivy_report():
    return {
        "SchemaVersion": 2,
        "Results": [
            {
                "Target": "Dockerfile",
                "Class": "config",
                "Type": "dockerfile",
                "MisconfSummary": {"Successes": 25, "Failures": 1, "Exceptions": 0},
                "Misconfigurations": [
                    {
                        "ID": "DS002",
                        "AVDID": "AVD-DS-0002",
                        "Title": "Image user should not be 'root'",
                        "Message": "Specify at least 1 USER command in Dockerfile",
                        "Severity": "HIGH",
                        "Status": "FAIL",
                        "CauseMetadata": {"StartLine": 1, "EndLine": 1},
                    },
                    {
                        "ID": "DS001",
                        "AVDID": "AVD-DS-0001",
                        "Title": "':latest' tag used",
                        "Severity": "MEDIUM",
                        "Status": "PASS",
                        "CauseMetadata": {},
                    },
                ],
            }
        ],
    }


@pytest.fixture
def hadolint_report():
    return [
        {
            "code": "DL3008",
            "column": 1,
            "file": "./Dockerfile",
            "level": "warning",
            "line": 5,
            "message": "Pin versions in apt get install",
        },
        {
            "code": "DL3059",
            "column": 1,
            "file": "./Dockerfile",
            "level": "info",
            "line": 7,
            "message": "Multiple consecutive RUN instructions",
        },
    ]


@pytest.fixture
def checkov_report():
    return {
        "check_type": "terraform_plan",
        "results": {
            "passed_checks": [],
            "failed_checks": [
                {
                    "check_id": "CKV_AWS_20",
                    "check_name": "S3 Bucket has an ACL defined which allows public READ access",
                    "file_path": "/tfplan.json",
                    "repo_file_path": "/tfplan.json",
                    "file_line_range": [0, 0],
                    "resource": "aws_s3_bucket.data",
                    "severity": "HIGH",
                },
                {
                    "check_id": "CKV_AWS_18",
                    "check_name": "Ensure the S3 bucket has access logging enabled",
                    "file_path": "/tfplan.json",
                    "repo_file_path": "/tfplan.json",
                    "file_line_range": [0, 0],
                    "resource": "aws_s3_bucket.logs",
                    "severity": None,
                },
            ],
            "skipped_checks": [],
            "parsing_errors": [],
        },
        "summary": {"passed": 12, "failed": 2, "skipped": 1, "parsing_errors": 0},
    }
