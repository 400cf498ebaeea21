"""
Test helpers shared by the Repo Events test suite.
"""

import asyncio
from typing import Any

import httpx

from repo_events.github_client import GitHubResponse


def make_response(
    status_code: int = 200,
    data: Any = None,
    etag: str | None = None,
    poll_interval: int | str | None = None,
    reason: str | None = None,
    rate_limit_remaining: int | None = None,
) -> GitHubResponse:
    """Build a GitHubResponse as the request executor would return it."""
    headers = {}
    if etag is not None:
        headers["ETag"] = etag
    if poll_interval is not None:
        headers["X-Poll-Interval"] = str(poll_interval)
    if rate_limit_remaining is not None:
        headers["X-RateLimit-Remaining"] = str(rate_limit_remaining)
    return GitHubResponse(
        status_code=status_code,
        reason=reason if reason is not None else httpx.codes.get_reason_phrase(status_code),
        headers=httpx.Headers(headers),
        data=data,
    )


def event(event_id: int | str, event_type: str = "PushEvent") -> dict[str, Any]:
    """Sample raw event as returned by the events endpoint."""
    return {
        "id": str(event_id),
        "type": event_type,
        "actor": {"login": "octocat"},
        "repo": {"name": "acme/widgets"},
        "payload": {"ref": "refs/heads/main"},
        "public": True,
        "created_at": "2024-01-15T10:00:00Z",
    }


class FakeGitHubClient:
    """
    Request executor stub replaying queued responses.

    Queued exceptions are raised instead of returned. Once the queue is
    empty, requests hang like a fetch that never completes.
    """

    def __init__(self, responses: list[Any] | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []

    def queue(self, *responses: Any) -> None:
        self.responses.extend(responses)

    async def request(
        self,
        access_token: str,
        method: str,
        path: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> GitHubResponse:
        self.calls.append(
            {
                "access_token": access_token,
                "method": method,
                "path": path,
                "headers": headers,
            }
        )
        if not self.responses:
            await asyncio.Event().wait()

        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response
