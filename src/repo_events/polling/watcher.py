"""
Repository event watcher.

The watcher is the entry point of the polling engine. It owns the handler
registry and the session supervisor, so independent watchers never share
state.
"""

from typing import Any

import structlog

from ..config import Settings, get_settings
from ..events import EventType
from ..exceptions import PollingError
from ..github_client import GitHubClient
from .registry import EventHandler, EventRegistry
from .session import HandlerErrorCallback, PollSession, SessionEndedCallback
from .supervisor import PollSupervisor

logger = structlog.get_logger(__name__)


class RepoEventWatcher:
    """
    Watches repository event feeds and dispatches events to handlers.

    Example::

        async with RepoEventWatcher(client) as watcher:
            watcher.add_event_on_repo(token, "acme", "widgets", EventType.PUSH, on_push)
            ...
    """

    def __init__(
        self,
        github_client: GitHubClient,
        settings: Settings | None = None,
        on_session_ended: SessionEndedCallback | None = None,
        on_handler_error: HandlerErrorCallback | None = None,
    ):
        """
        Initialize the watcher.

        Args:
            github_client: Request executor shared by all sessions
            settings: Application settings (defaults to the global settings)
            on_session_ended: Called with the final state of any session that ends
            on_handler_error: Called when an event handler raises
        """
        self.github_client = github_client
        self.settings = settings or get_settings()
        self.on_session_ended = on_session_ended
        self.on_handler_error = on_handler_error

        self.registry = EventRegistry()
        self.supervisor = PollSupervisor()
        self._closed = False

    def add_event_on_repo(
        self,
        access_token: str,
        owner: str,
        repo: str,
        event_type: EventType | str,
        handler: EventHandler,
    ) -> PollSession:
        """
        Listen for an event type on a repository.

        The first registration for a repository starts its poll session with
        the given access token; later registrations reuse that session and
        its credentials. Must be called from a running event loop.

        Args:
            access_token: User's OAuth access token
            owner: Repository owner
            repo: Repository name
            event_type: Event type member or wire tag
            handler: Callable (or coroutine function) taking ``(event, event_type)``

        Returns:
            The repository's poll session
        """
        if self._closed:
            raise PollingError("Watcher has been shut down", repo=f"{owner}/{repo}")

        full_name = f"{owner}/{repo}"
        self.registry.register(full_name, event_type, handler)

        return self.supervisor.ensure_started(
            full_name, lambda: self._start_session(access_token, owner, repo)
        )

    def restart_session(self, access_token: str, owner: str, repo: str) -> PollSession:
        """Start a fresh session for a repository whose session has ended."""
        if self._closed:
            raise PollingError("Watcher has been shut down", repo=f"{owner}/{repo}")

        return self.supervisor.restart(
            f"{owner}/{repo}", lambda: self._start_session(access_token, owner, repo)
        )

    def _start_session(self, access_token: str, owner: str, repo: str) -> PollSession:
        session = PollSession(
            github_client=self.github_client,
            registry=self.registry,
            access_token=access_token,
            owner=owner,
            repo=repo,
            default_interval=self.settings.default_poll_interval_seconds,
            on_ended=self.on_session_ended,
            on_handler_error=self.on_handler_error,
        )
        session.start()
        return session

    def session(self, owner: str, repo: str) -> PollSession | None:
        """Get the poll session of a repository, if one was started."""
        return self.supervisor.get(f"{owner}/{repo}")

    def get_sessions_summary(self) -> dict[str, dict[str, Any]]:
        """Get the state of every session for monitoring."""
        return {
            repo: session.state.to_dict()
            for repo, session in self.supervisor.sessions().items()
        }

    async def shutdown(self) -> None:
        """Stop all poll sessions. The watcher accepts no registrations afterwards."""
        if self._closed:
            return

        self._closed = True
        logger.info("Shutting down event watcher")
        await self.supervisor.stop_all()

    async def __aenter__(self) -> "RepoEventWatcher":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()
