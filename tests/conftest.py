"""
Pytest configuration and fixtures for Repo Events tests.
"""

import pytest

from helpers import FakeGitHubClient
from repo_events.config import Settings
from repo_events.exceptions import TransportError
from repo_events.polling import EventRegistry


@pytest.fixture
def mock_settings() -> Settings:
    """Settings for testing."""
    return Settings(
        github_api_url="https://api.github.test",
        github_oauth_url="https://github.test/login/oauth",
        user_agent="repo-events-tests",
        default_poll_interval_seconds=60,
        debug=True,
        log_level="DEBUG",
    )


@pytest.fixture
def fake_client() -> FakeGitHubClient:
    """Request executor with an empty response queue."""
    return FakeGitHubClient()


@pytest.fixture
def registry() -> EventRegistry:
    """Empty event registry."""
    return EventRegistry()


@pytest.fixture
def transport_error() -> TransportError:
    """A network failure as raised by the request executor."""
    return TransportError("GET /repos/acme/widgets/events failed: connection reset")
