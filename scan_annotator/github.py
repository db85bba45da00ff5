"""Async GitHub REST client for the pull-request surfaces we touch.

Usage:
    async with GitHubClient(config.github) as gh:
        files = await gh.list_pull_files(42)

Every non-2xx response is raised as :class:`GitHubAPIError` so callers can
classify it (rate limit, line not in diff, other).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .config import GitHubConfig, get_config
from .errors import GitHubAPIError

logger = logging.getLogger(__name__)

PER_PAGE = 100


class GitHubClient:
    """Thin wrapper over the five endpoints scan-annotator uses."""

    def __init__(self, config: GitHubConfig | None = None, client: httpx.AsyncClient | None = None):
        self._config = config
        self._client = client

    @property
    def config(self) -> GitHubConfig:
        if self._config is None:
            self._config = get_config().github
        return self._config

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_url,
                headers=self._headers(),
                timeout=30.0,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.config.token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.config.repository}"

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise GitHubAPIError(0, f"{method} {url} failed: {exc}") from exc
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise GitHubAPIError.from_response(exc.response) from exc
        return response

    @staticmethod
    def _json(response: httpx.Response, *, required: bool = True) -> Any:
        """Decode a 2xx body.

        Raises:
            GitHubAPIError: If the body is not JSON and ``required`` is set;
                otherwise an unreadable body yields {}.
        """
        try:
            return response.json()
        except ValueError as exc:
            where = f"{response.request.method} {response.request.url}"
            if required:
                raise GitHubAPIError(
                    response.status_code, f"Invalid JSON from {where}: {exc}"
                ) from exc
            logger.warning("Ignoring unreadable response body from %s", where)
            return {}

    async def _paginate(self, url: str) -> list[dict[str, Any]]:
        """GET every page of a list endpoint, following ``Link: rel=next``."""
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        params: dict[str, Any] | None = {"per_page": PER_PAGE}
        while next_url:
            response = await self._request("GET", next_url, params=params)
            page = self._json(response)
            if not isinstance(page, list):
                raise GitHubAPIError(
                    response.status_code, f"Expected a JSON array from {next_url}"
                )
            items.extend(page)
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries per_page and page.
            params = None
        return items

    async def list_pull_files(self, pr_number: int) -> list[dict[str, Any]]:
        """List changed files (with ``patch`` text) of a pull request."""
        return await self._paginate(f"{self.repo_path}/pulls/{pr_number}/files")

    async def list_issue_comments(self, pr_number: int) -> list[dict[str, Any]]:
        """List issue-level (conversation) comments of a pull request."""
        return await self._paginate(f"{self.repo_path}/issues/{pr_number}/comments")

    async def create_review(
        self,
        pr_number: int,
        comments: list[dict[str, Any]],
        *,
        commit_id: str = "",
        body: str = "",
    ) -> dict[str, Any]:
        """Submit one review carrying ``comments`` as line comments."""
        payload: dict[str, Any] = {"event": "COMMENT", "comments": comments}
        if commit_id:
            payload["commit_id"] = commit_id
        if body:
            payload["body"] = body
        response = await self._request(
            "POST", f"{self.repo_path}/pulls/{pr_number}/reviews", json=payload
        )
        return self._json(response, required=False)  # type: ignore[no-any-return]

    async def create_issue_comment(self, pr_number: int, body: str) -> dict[str, Any]:
        response = await self._request(
            "POST", f"{self.repo_path}/issues/{pr_number}/comments", json={"body": body}
        )
        return self._json(response, required=False)  # type: ignore[no-any-return]

    async def update_issue_comment(self, comment_id: int, body: str) -> dict[str, Any]:
        response = await self._request(
            "PATCH", f"{self.repo_path}/issues/comments/{comment_id}", json={"body": body}
        )
        return self._json(response, required=False)  # type: ignore[no-any-return]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
