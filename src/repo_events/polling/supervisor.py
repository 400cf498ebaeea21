"""
Poll supervisor ensuring one poll session per repository.
"""

import asyncio
import threading
from collections.abc import Callable

import structlog

from .session import PollSession

logger = structlog.get_logger(__name__)


class PollSupervisor:
    """
    Tracks poll sessions by repository.

    A repository keeps its session slot after the session has stopped or
    failed; further registrations do not start a new one. Use ``restart``
    to replace an ended session explicitly.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, PollSession] = {}
        self._lock = threading.Lock()

    def ensure_started(
        self, repo: str, start_session: Callable[[], PollSession]
    ) -> PollSession:
        """
        Start a session for a repository unless one was already started.

        Args:
            repo: Repository full name (owner/repo)
            start_session: Creates and starts the session; called at most once

        Returns:
            The repository's session
        """
        with self._lock:
            session = self._sessions.get(repo)
            if session is not None:
                return session

            session = start_session()
            self._sessions[repo] = session

        logger.info("Poll session registered", repository=repo)
        return session

    def restart(
        self, repo: str, start_session: Callable[[], PollSession]
    ) -> PollSession:
        """
        Replace an ended session with a fresh one.

        Returns the current session unchanged if it is still active.
        """
        with self._lock:
            session = self._sessions.get(repo)
            if session is not None and session.is_active:
                return session

            session = start_session()
            self._sessions[repo] = session

        logger.info("Poll session restarted", repository=repo)
        return session

    def get(self, repo: str) -> PollSession | None:
        """Get the session for a repository, if one was started."""
        with self._lock:
            return self._sessions.get(repo)

    def is_active(self, repo: str) -> bool:
        """Check whether a repository has a running session."""
        session = self.get(repo)
        return session is not None and session.is_active

    def sessions(self) -> dict[str, PollSession]:
        """Get all sessions by repository."""
        with self._lock:
            return dict(self._sessions)

    async def stop_all(self) -> None:
        """Stop every session and wait for them to finish."""
        sessions = list(self.sessions().values())
        if not sessions:
            return

        logger.info("Stopping poll sessions", count=len(sessions))
        await asyncio.gather(*(session.stop() for session in sessions))
