"""
Polling system for Repo Events.

This package contains the event polling and dispatch engine: the handler
registry, the per-repository poll sessions and their supervisor.
"""

from .registry import EventHandler, EventRegistry
from .session import PollSession, PollSessionState, SessionStatus
from .supervisor import PollSupervisor
from .watcher import RepoEventWatcher

__all__ = [
    "EventHandler",
    "EventRegistry",
    "PollSession",
    "PollSessionState",
    "PollSupervisor",
    "RepoEventWatcher",
    "SessionStatus",
]
