"""Summary comment manager: keep exactly one marked report comment per PR.

The decision of what to do is a pure function, :func:`reconcile`, over the
PR's existing comments; :class:`SummaryCommentManager` only performs the
GitHub calls that decision asks for.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .config import Config
from .github import GitHubClient
from .retry import RetryState, Sleep, call_with_retry

logger = logging.getLogger(__name__)

MARKER = "<!-- scan-annotator:summary -->"


@dataclass(frozen=True, slots=True)
class Create:
    """No marked comment exists yet."""


@dataclass(frozen=True, slots=True)
class Update:
    """Rewrite the marked comment ``comment_id``."""

    comment_id: int


@dataclass(frozen=True, slots=True)
class Unchanged:
    """The marked comment already carries this exact body."""

    comment_id: int


Action = Create | Update | Unchanged


def wrap_body(report: str) -> str:
    """Prefix the rendered report with the invisible marker."""
    return f"{MARKER}\n{report}"


def reconcile(existing_comments: Iterable[dict[str, Any]], rendered_body: str) -> Action:
    """Decide how to publish ``rendered_body`` given the PR's comments.

    The first comment containing the marker is the summary; later marked
    comments (left by an interrupted run) are ignored.
    """
    for comment in existing_comments:
        body = comment.get("body") or ""
        if MARKER in body:
            comment_id = int(comment["id"])
            if body == rendered_body:
                return Unchanged(comment_id)
            return Update(comment_id)
    return Create()


class SummaryCommentManager:
    """Creates or updates the single summary comment on a pull request."""

    def __init__(
        self,
        client: GitHubClient,
        pr_number: int,
        *,
        max_attempts: int = 5,
        base_delay_ms: int = 3000,
        sleep: Sleep = asyncio.sleep,
    ):
        self._client = client
        self._pr_number = pr_number
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        client: GitHubClient,
        config: Config,
        sleep: Sleep = asyncio.sleep,
    ) -> SummaryCommentManager:
        return cls(
            client,
            config.github.pr_number or 0,
            max_attempts=config.posting.max_attempts,
            base_delay_ms=config.posting.base_delay_ms,
            sleep=sleep,
        )

    def _retry_state(self) -> RetryState:
        return RetryState(max_attempts=self._max_attempts, base_delay_ms=self._base_delay_ms)

    async def upsert(self, report: str) -> Action:
        """Publish ``report`` as the PR's summary comment.

        Raises:
            GitHubAPIError: When listing or writing fails after retries.
        """
        body = wrap_body(report)
        comments = await call_with_retry(
            lambda: self._client.list_issue_comments(self._pr_number),
            state=self._retry_state(),
            description="list PR comments",
            sleep=self._sleep,
        )
        action = reconcile(comments, body)

        if isinstance(action, Update):
            await call_with_retry(
                lambda: self._client.update_issue_comment(action.comment_id, body),
                state=self._retry_state(),
                description="update summary comment",
                sleep=self._sleep,
            )
            logger.info("Updated summary comment %d", action.comment_id)
        elif isinstance(action, Create):
            created = await call_with_retry(
                lambda: self._client.create_issue_comment(self._pr_number, body),
                state=self._retry_state(),
                description="create summary comment",
                sleep=self._sleep,
            )
            logger.info("Created summary comment %s", created.get("id"))
        else:
            logger.info("Summary comment %d is already up to date", action.comment_id)
        return action
