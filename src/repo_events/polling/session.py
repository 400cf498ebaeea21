"""
Per-repository poll session.

A session repeatedly fetches a repository's events feed with a conditional
GET, dispatches events that are newer than the last one it has seen, and
sleeps for the interval the server asks for before polling again.
"""

import asyncio
import inspect
from collections.abc import Callable
from enum import Enum
from typing import Any

import structlog

from ..events import EventRecord, parse_events
from ..exceptions import PollingError
from ..github_client import GitHubClient, GitHubResponse
from .registry import EventHandler, EventRegistry

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 60

# Statuses after which the endpoint will not recover without operator action
TERMINAL_STATUS_CODES = frozenset({401, 404, 410})


class SessionStatus(str, Enum):
    """Lifecycle of a poll session."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class PollSessionState:
    """Point-in-time view of a poll session."""

    def __init__(
        self,
        repo: str,
        status: SessionStatus,
        etag: str | None,
        last_event_id: str | None,
        poll_count: int,
        last_interval: int | None,
        failure: BaseException | None,
        rate_limit_remaining: int | None = None,
    ):
        self.repo = repo
        self.status = status
        self.etag = etag
        self.last_event_id = last_event_id
        self.poll_count = poll_count
        self.last_interval = last_interval
        self.failure = failure
        self.rate_limit_remaining = rate_limit_remaining

    @property
    def is_active(self) -> bool:
        return self.status in (SessionStatus.PENDING, SessionStatus.RUNNING)

    def to_dict(self) -> dict[str, Any]:
        return {
            "repository": self.repo,
            "status": self.status.value,
            "etag": self.etag,
            "last_event_id": self.last_event_id,
            "poll_count": self.poll_count,
            "last_interval_seconds": self.last_interval,
            "failure": str(self.failure) if self.failure else None,
            "rate_limit_remaining": self.rate_limit_remaining,
        }


SessionEndedCallback = Callable[[PollSessionState], Any]
HandlerErrorCallback = Callable[[EventRecord, EventHandler, Exception], Any]


class PollSession:
    """
    Polls the events feed of one repository and dispatches new events.

    The session owns its ETag and last-seen event id; nothing else reads or
    writes them. Each iteration schedules the next one only after it has
    finished, so a session never has two fetches in flight.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        registry: EventRegistry,
        access_token: str,
        owner: str,
        repo: str,
        default_interval: int = DEFAULT_POLL_INTERVAL_SECONDS,
        on_ended: SessionEndedCallback | None = None,
        on_handler_error: HandlerErrorCallback | None = None,
    ):
        """
        Initialize the poll session.

        Args:
            github_client: Request executor used for every fetch
            registry: Registry consulted when dispatching events
            access_token: Credentials captured for the session's lifetime
            owner: Repository owner
            repo: Repository name
            default_interval: Delay used when no X-Poll-Interval is returned
            on_ended: Called with the final state when the session stops or fails
            on_handler_error: Called when an event handler raises
        """
        self.github_client = github_client
        self.registry = registry
        self.access_token = access_token
        self.owner = owner
        self.repo_name = repo
        self.repo = f"{owner}/{repo}"
        self.default_interval = default_interval
        self.on_ended = on_ended
        self.on_handler_error = on_handler_error

        self.etag: str | None = None
        self.last_event_id: str | None = None
        self.status = SessionStatus.PENDING
        self.failure: BaseException | None = None
        self.poll_count = 0
        self.last_interval: int | None = None
        self.rate_limit_remaining: int | None = None

        self._task: asyncio.Task[None] | None = None

    @property
    def events_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo_name}/events"

    @property
    def is_active(self) -> bool:
        return self.status in (SessionStatus.PENDING, SessionStatus.RUNNING)

    @property
    def state(self) -> PollSessionState:
        return PollSessionState(
            repo=self.repo,
            status=self.status,
            etag=self.etag,
            last_event_id=self.last_event_id,
            poll_count=self.poll_count,
            last_interval=self.last_interval,
            failure=self.failure,
            rate_limit_remaining=self.rate_limit_remaining,
        )

    def start(self) -> None:
        """Start polling in a background task on the running event loop."""
        if self._task is not None:
            logger.warning("Poll session already started", repository=self.repo)
            return

        self.status = SessionStatus.RUNNING
        self._task = asyncio.create_task(self._run(), name=f"poll:{self.repo}")
        logger.info("Poll session started", repository=self.repo)

    async def stop(self) -> None:
        """Stop polling and wait for the background task to finish."""
        if self._task is None:
            if self.status is SessionStatus.PENDING:
                self._finish(SessionStatus.STOPPED)
            return

        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

        # Cancelled before the loop got to run
        if self.is_active:
            self._finish(SessionStatus.STOPPED)

    async def wait(self) -> PollSessionState:
        """Wait until the session ends and return its final state."""
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        return self.state

    async def _run(self) -> None:
        """Poll loop: fetch, dispatch, sleep for the server-provided interval."""
        try:
            while True:
                delay = await self.poll_once()
                logger.debug(
                    "Next poll scheduled", repository=self.repo, delay_seconds=delay
                )
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self._finish(SessionStatus.STOPPED)
            raise
        except Exception as e:
            logger.error(
                "Poll session failed, polling stopped",
                repository=self.repo,
                error=str(e),
                polls=self.poll_count,
                exc_info=True,
            )
            self._finish(SessionStatus.FAILED, e)

    async def poll_once(self) -> int:
        """
        Run a single poll iteration.

        Returns:
            Seconds to wait before the next iteration

        Raises:
            TransportError: If the fetch could not be completed
            PollingError: If GitHub rejected the request permanently
        """
        headers = {"If-None-Match": self.etag} if self.etag else None
        response = await self.github_client.request(
            self.access_token, "GET", self.events_path, headers=headers
        )
        self.poll_count += 1
        if response.rate_limit_remaining is not None:
            self.rate_limit_remaining = response.rate_limit_remaining
        logger.debug(
            "Events fetched",
            repository=self.repo,
            status_code=response.status_code,
            rate_limit_remaining=self.rate_limit_remaining,
        )

        if response.is_not_modified:
            logger.debug("Events not modified", repository=self.repo)
        elif response.status_code in TERMINAL_STATUS_CODES:
            raise PollingError(
                f"Events feed for {self.repo} returned {response.status}",
                repo=self.repo,
                context={"status_code": response.status_code},
            )
        elif not response.ok:
            logger.warning(
                "Events fetch returned error status, retrying later",
                repository=self.repo,
                status_code=response.status_code,
            )
        elif response.data is None:
            logger.debug("Events response had no usable body", repository=self.repo)
        else:
            events = parse_events(response.data)
            if events is not None:
                await self._dispatch_new_events(events)

        if response.etag and (response.ok or response.is_not_modified):
            self.etag = response.etag

        self.last_interval = self._next_interval(response)
        return self.last_interval

    def _next_interval(self, response: GitHubResponse) -> int:
        interval = response.poll_interval
        if interval is None:
            return self.default_interval
        return interval

    async def _dispatch_new_events(self, events: list[EventRecord]) -> None:
        """Deliver events newer than the last seen one, newest first."""
        if not events:
            return

        newest_id = events[0].id

        if self.last_event_id is None:
            logger.info(
                "Recorded baseline event",
                repository=self.repo,
                event_id=newest_id,
                skipped_events=len(events),
            )
        else:
            # Handlers registered during this walk apply from the next cycle
            handlers = self.registry.snapshot(self.repo)
            dispatched = 0
            for event in events:
                if event.id == self.last_event_id:
                    break
                for handler in handlers.get(event.type, ()):
                    await self._invoke(handler, event)
                dispatched += 1

            if dispatched:
                logger.info(
                    "Dispatched new events",
                    repository=self.repo,
                    count=dispatched,
                    newest_event_id=newest_id,
                )

        self.last_event_id = newest_id

    async def _invoke(self, handler: EventHandler, event: EventRecord) -> None:
        """Call one handler, reporting rather than propagating its failure."""
        try:
            result = handler(event, event.type)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(
                "Event handler failed",
                repository=self.repo,
                event_id=event.id,
                event_type=event.type,
                handler=getattr(handler, "__qualname__", repr(handler)),
                error=str(e),
                exc_info=True,
            )
            if self.on_handler_error is not None:
                try:
                    self.on_handler_error(event, handler, e)
                except Exception as callback_error:
                    logger.error(
                        "Handler error callback failed",
                        repository=self.repo,
                        error=str(callback_error),
                    )

    def _finish(
        self, status: SessionStatus, failure: BaseException | None = None
    ) -> None:
        self.status = status
        self.failure = failure
        logger.info(
            "Poll session ended",
            repository=self.repo,
            status=status.value,
            polls=self.poll_count,
        )

        if self.on_ended is not None:
            try:
                self.on_ended(self.state)
            except Exception as e:
                logger.error(
                    "Session ended callback failed",
                    repository=self.repo,
                    error=str(e),
                )
