"""Tests for summary-comment reconciliation and publishing."""

import json

import httpx
import pytest

from scan_annotator.errors import GitHubAPIError
from scan_annotator.summary import (
    MARKER,
    Create,
    SummaryCommentManager,
    Unchanged,
    Update,
    reconcile,
    wrap_body,
)

API = "https://api.github.com/repos/acme/app"
COMMENTS = f"{API}/issues/7/comments"


class TestReconcile:
    """Tests for the pure reconcile() decision."""

    def test_no_comments_creates(self):
        assert reconcile([], wrap_body("report")) == Create()

    def test_unmarked_comments_are_ignored(self):
        comments = [{"id": 1, "body": "LGTM"}, {"id": 2, "body": None}]

        assert reconcile(comments, wrap_body("report")) == Create()

    def test_marked_comment_is_updated(self):
        comments = [{"id": 1, "body": "LGTM"}, {"id": 5, "body": wrap_body("old report")}]

        assert reconcile(comments, wrap_body("new report")) == Update(5)

    def test_identical_body_is_unchanged(self):
        body = wrap_body("report")

        assert reconcile([{"id": 5, "body": body}], body) == Unchanged(5)

    def test_first_marked_comment_wins(self):
        comments = [{"id": 3, "body": f"{MARKER}\nfirst"}, {"id": 9, "body": f"{MARKER}\nsecond"}]

        assert reconcile(comments, wrap_body("new")) == Update(3)


class FakeIssueComments:
    """Stateful stand-in for the issue-comments endpoints."""

    def __init__(self, existing=None):
        self.comments = list(existing or [])
        self.next_id = 100

    def list(self, request):
        return httpx.Response(200, json=self.comments)

    def create(self, request):
        body = json.loads(request.content)["body"]
        comment = {"id": self.next_id, "body": body}
        self.next_id += 1
        self.comments.append(comment)
        return httpx.Response(201, json=comment)

    def update(self, request):
        comment_id = int(str(request.url).rsplit("/", 1)[-1])
        body = json.loads(request.content)["body"]
        for comment in self.comments:
            if comment["id"] == comment_id:
                comment["body"] = body
        return httpx.Response(200, json={"id": comment_id, "body": body})


@pytest.fixture
def issue_comments(mock_github):
    fake = FakeIssueComments([{"id": 1, "body": "Nice work"}])
    mock_github.get(url__startswith=COMMENTS).mock(side_effect=fake.list)
    mock_github.post(COMMENTS).mock(side_effect=fake.create)
    mock_github.patch(url__startswith=f"{API}/issues/comments/").mock(side_effect=fake.update)
    return fake


@pytest.fixture
def manager(gh_client, sleep):
    return SummaryCommentManager(gh_client, 7, sleep=sleep)


class TestUpsert:
    """Tests for SummaryCommentManager.upsert()."""

    @pytest.mark.asyncio
    async def test_creates_then_updates_a_single_comment(self, manager, issue_comments):
        first = await manager.upsert("report v1")
        second = await manager.upsert("report v2")

        assert first == Create()
        assert second == Update(100)
        marked = [c for c in issue_comments.comments if MARKER in c["body"]]
        assert len(marked) == 1
        assert marked[0]["body"] == wrap_body("report v2")

    @pytest.mark.asyncio
    async def test_rerun_with_same_report_is_unchanged(self, manager, issue_comments, mock_github):
        await manager.upsert("report")
        action = await manager.upsert("report")

        assert action == Unchanged(100)
        assert len(issue_comments.comments) == 2
        assert not any(call.request.method == "PATCH" for call in mock_github.calls)

    @pytest.mark.asyncio
    async def test_rate_limited_listing_is_retried(self, manager, mock_github, sleep):
        mock_github.get(url__startswith=COMMENTS).mock(
            side_effect=[
                httpx.Response(429, json={"message": "Too Many Requests"}),
                httpx.Response(200, json=[]),
            ]
        )
        mock_github.post(COMMENTS).mock(return_value=httpx.Response(201, json={"id": 1}))

        assert await manager.upsert("report") == Create()
        assert sleep.delays == [3.0]

    @pytest.mark.asyncio
    async def test_permission_error_propagates(self, manager, mock_github):
        mock_github.get(url__startswith=COMMENTS).mock(
            return_value=httpx.Response(403, json={"message": "Resource not accessible by integration"})
        )

        with pytest.raises(GitHubAPIError, match="403"):
            await manager.upsert("report")
