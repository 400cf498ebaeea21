#!/usr/bin/env python3
"""
Watch a repository's activity feed from the command line.

Prints every new event as it is dispatched. Set GITHUB_TOKEN to a token
with read access to the repository.

Usage: python scripts/watch_repo.py owner/repo [EventType ...]
"""

import asyncio
import os
import sys
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from repo_events.config import get_settings
from repo_events.events import EventRecord, EventType
from repo_events.github_client import GitHubClient
from repo_events.main import setup_logging
from repo_events.polling import PollSessionState, RepoEventWatcher


def print_event(event: EventRecord, event_type: str) -> None:
    actor = (event.actor or {}).get("login", "?")
    print(f"📣 {event_type} #{event.id} by {actor} at {event.created_at}")


async def watch(full_name: str, event_types: list[str]) -> int:
    token = os.environ.get("GITHUB_TOKEN")
    if not token:
        print("❌ GITHUB_TOKEN is not set")
        return 1

    owner, _, repo = full_name.partition("/")
    if not owner or not repo:
        print(f"❌ Expected owner/repo, got {full_name!r}")
        return 1

    settings = get_settings()
    ended = asyncio.Event()

    def on_session_ended(state: PollSessionState) -> None:
        print(f"🛑 Polling stopped: {state.failure or state.status.value}")
        ended.set()

    async with GitHubClient(settings) as client:
        async with RepoEventWatcher(
            client, settings, on_session_ended=on_session_ended
        ) as watcher:
            for event_type in event_types:
                watcher.add_event_on_repo(token, owner, repo, event_type, print_event)

            print(f"👀 Watching {full_name} for {', '.join(event_types)}")
            await ended.wait()

    return 0


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    setup_logging()
    event_types = sys.argv[2:] or [member.value for member in EventType]

    try:
        sys.exit(asyncio.run(watch(sys.argv[1], event_types)))
    except KeyboardInterrupt:
        print("\n👋 Stopped")


if __name__ == "__main__":
    main()
