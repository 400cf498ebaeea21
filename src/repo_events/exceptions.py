"""
Custom exceptions for Repo Events.

This module defines the exception hierarchy shared by the request executor,
the OAuth handshake and the polling engine.
"""

from typing import Any


class RepoEventsError(Exception):
    """Base exception for Repo Events errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code or "REPO_EVENTS_ERROR"
        self.context = context or {}


class GitHubAPIError(RepoEventsError):
    """Exception for GitHub API responses with an error status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "GITHUB_API_ERROR", context)
        self.status_code = status_code


class TransportError(RepoEventsError):
    """Exception for network failures while talking to GitHub."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "TRANSPORT_ERROR", context)


class AuthenticationError(RepoEventsError):
    """Exception for authentication related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "AUTHENTICATION_ERROR", context)


class OAuthError(AuthenticationError):
    """Exception for failures of the OAuth authorization-code exchange."""

    def __init__(
        self,
        message: str,
        domain: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.code = "OAUTH_ERROR"
        self.domain = domain


class ConfigurationError(RepoEventsError):
    """Exception for configuration related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "CONFIGURATION_ERROR", context)


class PollingError(RepoEventsError):
    """Exception recorded when a repository's poll session terminates."""

    def __init__(
        self,
        message: str,
        repo: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "POLLING_ERROR", context)
        self.repo = repo
