"""Error types and GitHub error classification."""

from __future__ import annotations

import re
from typing import Any, Literal

import httpx

ErrorClass = Literal["rate_limit", "line_not_in_diff", "other"]

_RATE_LIMIT_MARKERS = ("secondary rate limit", "rate limit exceeded", "abuse detection")
_LINE_NOT_IN_DIFF_MARKERS = (
    "must be part of the diff",
    "could not be resolved",
    "pull_request_review_thread.line",
    "pull_request_review_thread.path",
    "is outside the diff",
)


class ConfigError(ValueError):
    """Raised when required configuration is missing or invalid."""


class GitHubAPIError(Exception):
    """A failed GitHub REST call.

    ``status_code`` is 0 when the request never produced a response
    (connection reset, timeout).
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        errors: list[str] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.status_code = status_code
        self.message = message
        self.errors = errors or []
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        super().__init__(self.describe())

    def describe(self) -> str:
        detail = f"{self.message} ({'; '.join(self.errors)})" if self.errors else self.message
        return f"GitHub API error {self.status_code}: {detail}"

    @property
    def text(self) -> str:
        """Message and error details lowercased, for pattern matching."""
        return " ".join([self.message, *self.errors]).lower()

    @classmethod
    def from_response(cls, response: httpx.Response) -> GitHubAPIError:
        message = response.reason_phrase or "request failed"
        errors: list[str] = []
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            message = str(data.get("message") or message)
            errors = [_error_text(e) for e in data.get("errors") or []]
        elif response.text:
            message = response.text.strip()[:500]
        return cls(
            status_code=response.status_code,
            message=message,
            errors=errors,
            headers=dict(response.headers),
        )


def _error_text(error: Any) -> str:
    if isinstance(error, dict):
        if error.get("message"):
            return str(error["message"])
        parts = [str(error[k]) for k in ("resource", "field", "code") if error.get(k)]
        return " ".join(parts)
    return str(error)


def classify_error(exc: GitHubAPIError) -> ErrorClass:
    """Sort a GitHub error into the retry taxonomy."""
    if exc.status_code == 429:
        return "rate_limit"
    if exc.status_code == 403:
        if exc.headers.get("x-ratelimit-remaining") == "0":
            return "rate_limit"
        if any(marker in exc.text for marker in _RATE_LIMIT_MARKERS):
            return "rate_limit"
    if exc.status_code == 422 and any(
        marker in exc.text for marker in _LINE_NOT_IN_DIFF_MARKERS
    ):
        return "line_not_in_diff"
    return "other"


_COMMENT_INDEX = re.compile(r"comments\[(\d+)\]")


def rejected_comment_index(exc: GitHubAPIError) -> int | None:
    """Return the index of the rejected review comment when GitHub names it."""
    match = _COMMENT_INDEX.search(exc.text)
    return int(match.group(1)) if match else None
