"""
Repo Events

A GitHub API integration layer: authenticated requests, the OAuth handshake,
and polling of repository activity feeds with dispatch to registered handlers.
"""

__version__ = "0.1.0"

from .config import Settings
from .events import EventRecord, EventType
from .exceptions import RepoEventsError
from .github_client import GitHubClient, GitHubResponse
from .oauth import OAuthAppRegistry, OAuthFlow, OAuthListener
from .polling import RepoEventWatcher

__all__ = [
    "Settings",
    "EventRecord",
    "EventType",
    "GitHubClient",
    "GitHubResponse",
    "OAuthAppRegistry",
    "OAuthFlow",
    "OAuthListener",
    "RepoEventWatcher",
    "RepoEventsError",
]
