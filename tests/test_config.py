"""Tests for configuration loading."""

from pathlib import Path

import pytest

from scan_annotator.config import (
    Config,
    GitHubConfig,
    PostingConfig,
    ReportsConfig,
    get_config,
    load_report_overrides,
    reset_config,
)
from scan_annotator.errors import ConfigError


class TestGitHubConfig:
    """Tests for GitHubConfig."""

    def test_from_env(self):
        config = GitHubConfig.from_env()

        assert config.token == "test-token"
        assert config.repository == "acme/app"
        assert config.pr_number == 7
        assert config.head_sha == "abc1234def5678"
        assert config.api_url == "https://api.github.com"

    def test_head_sha_falls_back_to_github_sha(self, monkeypatch):
        monkeypatch.delenv("HEAD_SHA")
        monkeypatch.setenv("GITHUB_SHA", "fedcba9")

        assert GitHubConfig.from_env().head_sha == "fedcba9"

    def test_enterprise_urls_lose_trailing_slash(self, monkeypatch):
        monkeypatch.setenv("GITHUB_API_URL", "https://ghe.example.com/api/v3/")

        assert GitHubConfig.from_env().api_url == "https://ghe.example.com/api/v3"

    def test_bad_pr_number(self, monkeypatch):
        monkeypatch.setenv("PR_NUMBER", "seven")

        with pytest.raises(ConfigError, match="PR_NUMBER"):
            GitHubConfig.from_env()

    def test_validate_lists_missing_values(self):
        with pytest.raises(ConfigError) as excinfo:
            GitHubConfig(repository="no-slash").validate()

        message = str(excinfo.value)
        assert "GITHUB_TOKEN" in message
        assert "GITHUB_REPOSITORY" in message
        assert "PR_NUMBER" in message

    def test_validate_passes(self):
        GitHubConfig.from_env().validate()


class TestPostingConfig:
    """Tests for PostingConfig."""

    def test_defaults(self):
        config = PostingConfig.from_env()

        assert (config.batch_size, config.chunk_delay_seconds) == (20, 3.0)
        assert (config.max_attempts, config.base_delay_ms) == (5, 3000)

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("ANNOTATOR_BATCH_SIZE", "10")
        monkeypatch.setenv("ANNOTATOR_CHUNK_DELAY", "0.5")

        config = PostingConfig.from_env()

        assert config.batch_size == 10
        assert config.chunk_delay_seconds == 0.5

    def test_batch_size_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("ANNOTATOR_BATCH_SIZE", "0")

        with pytest.raises(ConfigError):
            PostingConfig.from_env()


class TestReportsConfig:
    """Tests for report locations."""

    def test_default_paths(self, monkeypatch):
        monkeypatch.setenv("ANNOTATOR_REPORTS_DIR", "out")

        config = ReportsConfig.from_env()

        assert config.path_for("bandit") == Path("out/bandit.json")
        assert config.path_for("checkov_enrichment") == Path("out/checkov-enrichment.json")
        assert config.iac_dir == "Terraform"

    def test_yaml_overrides(self, tmp_path, monkeypatch, caplog):
        reports_file = tmp_path / "reports.yaml"
        reports_file.write_text("bandit: build/bandit-results.json\nsemgrep: x.json\n")
        monkeypatch.setenv("ANNOTATOR_REPORTS_FILE", str(reports_file))

        config = ReportsConfig.from_env()

        assert config.path_for("bandit") == Path("build/bandit-results.json")
        assert config.path_for("pylint") == Path("reports/pylint.json")
        assert "semgrep" in caplog.text

    def test_workspace_from_github_env(self, monkeypatch):
        monkeypatch.setenv("GITHUB_WORKSPACE", "/github/workspace")

        assert ReportsConfig.from_env().workspace == "/github/workspace"

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "reports.yaml"
        path.write_text("")

        assert load_report_overrides(path) == {}

    @pytest.mark.parametrize("content", ["- just\n- a list\n", "key: [unclosed\n"])
    def test_bad_yaml(self, tmp_path, content):
        path = tmp_path / "reports.yaml"
        path.write_text(content)

        with pytest.raises(ConfigError):
            load_report_overrides(path)

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_report_overrides(tmp_path / "absent.yaml")


class TestGlobalConfig:
    """Tests for the lazily loaded global config."""

    def test_cached_until_reset(self, monkeypatch):
        first = get_config()
        assert get_config() is first

        monkeypatch.setenv("ANNOTATOR_LOG_LEVEL", "debug")
        reset_config()

        config = get_config()
        assert config is not first
        assert config.log_level == "DEBUG"

    def test_from_env_builds_every_section(self):
        config = Config.from_env()

        assert config.github.pr_number == 7
        assert config.posting.batch_size == 20
        assert config.reports.reports_dir == Path("reports")
