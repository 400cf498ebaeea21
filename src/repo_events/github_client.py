"""
GitHub API client for Repo Events.

This module provides the authenticated request executor used by the polling
engine, plus convenience calls for branches, commits, users, repositories
and issues.
"""

from typing import Any

import httpx
import structlog

from .config import Settings, get_settings
from .exceptions import GitHubAPIError, TransportError

logger = structlog.get_logger(__name__)


class GitHubResponse:
    """Decoded payload and metadata of a single GitHub API response."""

    def __init__(
        self,
        status_code: int,
        reason: str,
        headers: httpx.Headers,
        data: Any,
    ):
        self.status_code = status_code
        self.reason = reason
        self.headers = headers
        self.data = data

    @property
    def status(self) -> str:
        """HTTP status line, e.g. ``200 OK``."""
        return f"{self.status_code} {self.reason}".strip()

    @property
    def ok(self) -> bool:
        """True for 2xx responses."""
        return 200 <= self.status_code < 300

    @property
    def is_not_modified(self) -> bool:
        """True when a conditional request matched the held ETag."""
        return self.status_code == 304

    @property
    def etag(self) -> str | None:
        """Cache-validation token to present on the next conditional request."""
        return self.headers.get("etag")

    @property
    def poll_interval(self) -> int | None:
        """Server-dictated minimum delay before the next poll, in seconds."""
        value = self.headers.get("x-poll-interval")
        if value is None:
            return None
        try:
            interval = int(value)
        except ValueError:
            logger.warning("Invalid X-Poll-Interval header", value=value)
            return None
        if interval <= 0:
            logger.warning("Non-positive X-Poll-Interval header", value=value)
            return None
        return interval

    @property
    def rate_limit_remaining(self) -> int | None:
        """Remaining core API calls reported by GitHub, if present."""
        value = self.headers.get("x-ratelimit-remaining")
        return int(value) if value and value.isdigit() else None


class GitHubClient:
    """
    GitHub REST API client.

    Every call takes the caller's access token, so one client can serve
    requests for many users. The underlying HTTP connection pool is shared
    and closed with ``aclose()``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the GitHub client.

        Args:
            settings: Application settings (defaults to the global settings)
            transport: Optional httpx transport, used to stub the network
        """
        self.settings = settings or get_settings()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get the shared HTTP client, creating it on first use."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.github_api_url,
                headers={
                    "User-Agent": self.settings.user_agent,
                    "Accept": "application/vnd.github.v3+json",
                },
                timeout=self.settings.request_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the shared HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def request(
        self,
        access_token: str,
        method: str,
        path: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
    ) -> GitHubResponse:
        """
        Perform one authenticated GitHub API request.

        Args:
            access_token: User's OAuth access token
            method: HTTP method
            path: API path, e.g. ``/repos/{owner}/{repo}/events``
            body: Optional JSON-serializable request body
            headers: Optional extra headers, applied last
            params: Optional query parameters

        Returns:
            Response with decoded payload (None when empty or undecodable)

        Raises:
            TransportError: If the request could not be completed
        """
        request_headers = {"Authorization": f"token {access_token}"}
        if headers:
            request_headers.update(headers)

        try:
            response = await self._get_client().request(
                method, path, json=body, headers=request_headers, params=params
            )
        except httpx.TransportError as e:
            logger.error(
                "GitHub request failed", method=method, path=path, error=str(e)
            )
            raise TransportError(
                f"{method} {path} failed: {e}",
                context={"method": method, "path": path},
            ) from e

        return GitHubResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            headers=response.headers,
            data=self._decode_body(response, method, path),
        )

    def _decode_body(self, response: httpx.Response, method: str, path: str) -> Any:
        """Decode a JSON body, returning None for empty or malformed content."""
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(
                "Failed to decode GitHub response",
                method=method,
                path=path,
                status_code=response.status_code,
                error=str(e),
            )
            return None

    async def _call(
        self,
        access_token: str,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Perform a request and return its payload, raising on error status."""
        response = await self.request(
            access_token, method, path, body=body, params=params
        )
        if not response.ok:
            logger.error(
                "GitHub API error",
                method=method,
                path=path,
                status_code=response.status_code,
            )
            raise GitHubAPIError(
                f"{method} {path} returned {response.status}",
                status_code=response.status_code,
                context={"method": method, "path": path, "body": response.data},
            )
        return response.data

    async def get_all_branches(
        self, access_token: str, owner: str, repo: str
    ) -> list[dict[str, Any]]:
        """List a repository's branches."""
        return await self._call(
            access_token, "GET", f"/repos/{owner}/{repo}/branches"
        )

    async def get_branch(
        self, access_token: str, owner: str, repo: str, branch: str
    ) -> dict[str, Any]:
        """Get a single branch."""
        return await self._call(
            access_token, "GET", f"/repos/{owner}/{repo}/branches/{branch}"
        )

    async def get_commit(
        self, access_token: str, owner: str, repo: str, sha: str
    ) -> dict[str, Any]:
        """Get a single commit by SHA."""
        return await self._call(
            access_token, "GET", f"/repos/{owner}/{repo}/commits/{sha}"
        )

    async def get_user(self, access_token: str) -> dict[str, Any]:
        """Get the authenticated user."""
        return await self._call(access_token, "GET", "/user")

    async def get_repos(
        self, access_token: str, type: str = "all"
    ) -> list[dict[str, Any]]:
        """
        List repositories of the authenticated user, newest first.

        Args:
            access_token: User's OAuth access token
            type: One of all, owner, public, private, member

        Returns:
            List of repository objects
        """
        return await self._call(
            access_token,
            "GET",
            "/user/repos",
            params={"sort": "created", "type": type},
        )

    async def find_issue_by_title(
        self, access_token: str, owner: str, repo: str, title: str
    ) -> dict[str, Any] | None:
        """
        Find an issue by title.

        When several issues share the title, the last one listed wins.

        Args:
            access_token: User's OAuth access token
            owner: Repository owner
            repo: Repository name
            title: Issue title to search for

        Returns:
            Issue object if found, None otherwise
        """
        issues = await self._call(access_token, "GET", f"/repos/{owner}/{repo}/issues")

        found = None
        for issue in issues or []:
            if issue.get("title") == title:
                found = issue

        if found is None:
            logger.info("Issue not found by title", repo=f"{owner}/{repo}", title=title)
        return found

    async def create_issue_on_repo(
        self, access_token: str, owner: str, repo: str, title: str, body: str
    ) -> dict[str, Any] | None:
        """
        Create an issue unless one with the same title already exists.

        Returns:
            The created issue, or None if an issue with that title exists
        """
        if await self.find_issue_by_title(access_token, owner, repo, title):
            return None

        issue = await self._call(
            access_token,
            "POST",
            f"/repos/{owner}/{repo}/issues",
            body={"title": title, "body": body},
        )
        logger.info(
            "Issue created successfully",
            repo=f"{owner}/{repo}",
            issue_number=issue.get("number") if issue else None,
            title=title,
        )
        return issue

    async def close_issue_on_repo(
        self, access_token: str, owner: str, repo: str, title: str
    ) -> dict[str, Any] | None:
        """
        Close the issue with the given title, if there is one.

        Returns:
            The updated issue, or None if no issue has that title
        """
        issue = await self.find_issue_by_title(access_token, owner, repo, title)
        if issue is None:
            return None

        closed = await self._call(
            access_token,
            "PATCH",
            f"/repos/{owner}/{repo}/issues/{issue['number']}",
            body={"state": "closed"},
        )
        logger.info(
            "Issue closed successfully",
            repo=f"{owner}/{repo}",
            issue_number=issue["number"],
        )
        return closed
