"""
Event handler registry for the polling engine.

Maps a repository to its event types and, per type, to the ordered list of
handlers registered for it. Registrations are append-only.
"""

import threading
from collections.abc import Callable
from typing import Any

import structlog

from ..events import EventRecord, EventType, event_type_tag

logger = structlog.get_logger(__name__)

EventHandler = Callable[[EventRecord, str], Any]


class EventRegistry:
    """
    Registry of event handlers keyed by repository and event type.

    Lookups for unknown repositories or types return an empty sequence.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, dict[str, list[EventHandler]]] = {}
        self._lock = threading.Lock()

    def register(
        self, repo: str, event_type: EventType | str, handler: EventHandler
    ) -> None:
        """
        Append a handler for an event type on a repository.

        Registering the same handler twice makes it run twice per event.

        Args:
            repo: Repository full name (owner/repo)
            event_type: Event type member or wire tag
            handler: Callable invoked with ``(event, event_type)``
        """
        tag = event_type_tag(event_type)
        with self._lock:
            self._handlers.setdefault(repo, {}).setdefault(tag, []).append(handler)
            count = len(self._handlers[repo][tag])

        logger.debug(
            "Event handler registered",
            repository=repo,
            event_type=tag,
            handler_count=count,
        )

    def lookup(self, repo: str, event_type: EventType | str) -> tuple[EventHandler, ...]:
        """Get the handlers for an event type on a repository, in order."""
        tag = event_type_tag(event_type)
        with self._lock:
            return tuple(self._handlers.get(repo, {}).get(tag, ()))

    def snapshot(self, repo: str) -> dict[str, tuple[EventHandler, ...]]:
        """Get a frozen copy of every handler list registered for a repository."""
        with self._lock:
            return {
                tag: tuple(handlers)
                for tag, handlers in self._handlers.get(repo, {}).items()
            }

    def repositories(self) -> list[str]:
        """Get repositories with at least one handler."""
        with self._lock:
            return list(self._handlers)

    def event_types(self, repo: str) -> list[str]:
        """Get event types with at least one handler on a repository."""
        with self._lock:
            return list(self._handlers.get(repo, {}))

    def __len__(self) -> int:
        with self._lock:
            return sum(
                len(handlers)
                for types in self._handlers.values()
                for handlers in types.values()
            )
