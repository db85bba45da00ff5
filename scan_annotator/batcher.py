"""Annotation batcher: post review comments in bounded, retried chunks.

Each chunk of up to ``batch_size`` annotations is submitted as one review
(a single API call), chunks are posted strictly one after another with a
fixed pause between them, and each chunk handles its own errors:

* rate limit (429, or 403 secondary limit): exponential backoff via
  :class:`RetryState`; after the last retry the chunk is failed;
* line not in diff (422): the offending comment is dropped and the rest of
  the chunk is resubmitted, without spending a retry;
* anything else: the chunk is failed without retry.

A failed chunk never stops the run; the outcome is reported as
:class:`PostingStats`.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from typing import TypeVar

from .config import Config
from .errors import GitHubAPIError, classify_error, rejected_comment_index
from .github import GitHubClient
from .models import AnnotationRequest, PostingStats
from .retry import RetryState, Sleep, next_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    """Split ``items`` into consecutive lists of at most ``size``."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def locate_rejected(exc: GitHubAPIError, pending: Sequence[AnnotationRequest]) -> int | None:
    """Find which pending comment a line-not-in-diff error refers to."""
    index = rejected_comment_index(exc)
    if index is not None and index < len(pending):
        return index
    text = exc.text
    for i, request in enumerate(pending):
        # Whole path and whole number only: "a.py" must not match "data.py".
        path = rf"(?<![\w./-]){re.escape(request.path.lower())}(?![\w/-])"
        line = rf"(?<![\w.]){request.line}(?!\w)"
        if re.search(path, text) and re.search(line, text):
            return i
    return None


class AnnotationBatcher:
    """Posts annotation requests as chunked PR reviews."""

    def __init__(
        self,
        client: GitHubClient,
        pr_number: int,
        *,
        commit_id: str = "",
        batch_size: int = 20,
        chunk_delay_seconds: float = 3.0,
        max_attempts: int = 5,
        base_delay_ms: int = 3000,
        sleep: Sleep = asyncio.sleep,
    ):
        self._client = client
        self._pr_number = pr_number
        self._commit_id = commit_id
        self._batch_size = batch_size
        self._chunk_delay = chunk_delay_seconds
        self._max_attempts = max_attempts
        self._base_delay_ms = base_delay_ms
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        client: GitHubClient,
        config: Config,
        sleep: Sleep = asyncio.sleep,
    ) -> AnnotationBatcher:
        return cls(
            client,
            config.github.pr_number or 0,
            commit_id=config.github.head_sha,
            batch_size=config.posting.batch_size,
            chunk_delay_seconds=config.posting.chunk_delay_seconds,
            max_attempts=config.posting.max_attempts,
            base_delay_ms=config.posting.base_delay_ms,
            sleep=sleep,
        )

    def _retry_state(self) -> RetryState:
        return RetryState(max_attempts=self._max_attempts, base_delay_ms=self._base_delay_ms)

    async def post(self, requests: Sequence[AnnotationRequest]) -> PostingStats:
        """Post all requests and return the outcome counters."""
        stats = PostingStats(attempted=len(requests))
        chunks = chunked(requests, self._batch_size)
        for number, chunk in enumerate(chunks, 1):
            if number > 1:
                await self._sleep(self._chunk_delay)
            await self._post_chunk(f"chunk {number}/{len(chunks)}", chunk, stats)

        logger.info(
            "Annotations: %d attempted, %d posted, %d failed, %d dropped (not in diff)",
            stats.attempted,
            stats.succeeded,
            stats.failed,
            stats.dropped,
        )
        return stats

    async def _post_chunk(
        self,
        label: str,
        chunk: list[AnnotationRequest],
        stats: PostingStats,
    ) -> None:
        pending = list(chunk)
        state = self._retry_state()

        while pending:
            try:
                await self._client.create_review(
                    self._pr_number,
                    [request.to_dict() for request in pending],
                    commit_id=self._commit_id,
                )
            except GitHubAPIError as exc:
                kind = classify_error(exc)

                if kind == "rate_limit":
                    retry = next_retry(exc, state, label)
                    if retry is None:
                        logger.error("%s: %d annotation(s) not posted", label, len(pending))
                        self._fail(stats, pending)
                        return
                    await self._sleep(state.delay_seconds)
                    state = retry
                    continue

                if kind == "line_not_in_diff":
                    offender = locate_rejected(exc, pending)
                    if offender is None and len(pending) == 1:
                        offender = 0
                    if offender is not None:
                        dropped = pending.pop(offender)
                        stats.dropped += 1
                        logger.warning(
                            "%s: %s:%d is not part of the diff, dropping it",
                            label,
                            dropped.path,
                            dropped.line,
                        )
                        continue
                    # GitHub did not say which comment; isolate it by halves.
                    middle = len(pending) // 2
                    await self._post_chunk(f"{label} (first half)", pending[:middle], stats)
                    await self._sleep(self._chunk_delay)
                    await self._post_chunk(f"{label} (second half)", pending[middle:], stats)
                    return

                logger.error("%s: %s; %d annotation(s) not posted", label, exc, len(pending))
                self._fail(stats, pending)
                return

            stats.succeeded += len(pending)
            stats.chunks_posted += 1
            logger.debug("%s: posted %d annotation(s)", label, len(pending))
            return

    @staticmethod
    def _fail(stats: PostingStats, pending: list[AnnotationRequest]) -> None:
        stats.failed += len(pending)
        stats.chunks_failed += 1
