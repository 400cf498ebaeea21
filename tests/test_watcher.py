"""
Tests for the repository event watcher and the session supervisor.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest

from helpers import FakeGitHubClient, event, make_response
from repo_events.events import EventType
from repo_events.exceptions import PollingError
from repo_events.polling import PollSupervisor, RepoEventWatcher, SessionStatus


class TestRepoEventWatcher:
    """Test handler registration and session management."""

    @pytest.mark.asyncio
    async def test_single_session_per_repository(self, fake_client, mock_settings):
        """Test that N registrations for one repository start one session."""
        watcher = RepoEventWatcher(fake_client, mock_settings)

        sessions = {
            watcher.add_event_on_repo("token", "acme", "widgets", event_type, Mock())
            for event_type in (EventType.PUSH, EventType.ISSUES, EventType.PUSH, "ForkEvent")
        }

        assert len(sessions) == 1
        assert list(watcher.supervisor.sessions()) == ["acme/widgets"]
        assert len(watcher.registry) == 4

        await watcher.shutdown()

    @pytest.mark.asyncio
    async def test_credentials_captured_at_session_start(
        self, fake_client, mock_settings
    ):
        """Test that later registrations do not change the session's token."""
        watcher = RepoEventWatcher(fake_client, mock_settings)

        session = watcher.add_event_on_repo("first", "acme", "widgets", "PushEvent", Mock())
        watcher.add_event_on_repo("second", "acme", "widgets", "IssuesEvent", Mock())
        await asyncio.sleep(0)

        assert session.access_token == "first"
        assert fake_client.calls[0]["access_token"] == "first"

        await watcher.shutdown()

    @pytest.mark.asyncio
    async def test_sessions_per_repository_are_independent(
        self, fake_client, mock_settings
    ):
        """Test that different repositories get separate sessions."""
        watcher = RepoEventWatcher(fake_client, mock_settings)

        widgets = watcher.add_event_on_repo("token", "acme", "widgets", "PushEvent", Mock())
        gadgets = watcher.add_event_on_repo("token", "acme", "gadgets", "PushEvent", Mock())

        assert widgets is not gadgets
        assert watcher.session("acme", "widgets") is widgets
        assert watcher.session("acme", "gadgets") is gadgets
        assert watcher.session("acme", "unknown") is None

        await watcher.shutdown()

    @pytest.mark.asyncio
    async def test_end_to_end_dispatch(self, mock_settings):
        """Test registration through dispatch with a live session task."""
        received = asyncio.Event()
        events = []

        def on_push(e, event_type):
            events.append((e.id, event_type))
            received.set()

        client = FakeGitHubClient(
            [
                make_response(200, [event(5)], etag='"a"', poll_interval=5),
                make_response(
                    200,
                    [event(7), event(6, "IssuesEvent"), event(5)],
                    etag='"b"',
                    poll_interval=5,
                ),
            ]
        )
        watcher = RepoEventWatcher(client, mock_settings)

        with patch(
            "repo_events.polling.session.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            watcher.add_event_on_repo(
                "token", "acme", "widgets", EventType.PUSH, on_push
            )
            await asyncio.wait_for(received.wait(), timeout=1)

            assert events == [("7", "PushEvent")]
            assert watcher.session("acme", "widgets").last_event_id == "7"
            mock_sleep.assert_awaited_with(5)

            await watcher.shutdown()

    @pytest.mark.asyncio
    async def test_session_ended_notification(
        self, fake_client, mock_settings, transport_error
    ):
        """Test that a failing session is reported and not restarted implicitly."""
        on_session_ended = Mock()
        fake_client.queue(transport_error)
        watcher = RepoEventWatcher(
            fake_client, mock_settings, on_session_ended=on_session_ended
        )

        session = watcher.add_event_on_repo("token", "acme", "widgets", "PushEvent", Mock())
        state = await session.wait()

        assert state.status is SessionStatus.FAILED
        on_session_ended.assert_called_once()
        assert on_session_ended.call_args.args[0].repo == "acme/widgets"

        again = watcher.add_event_on_repo("token", "acme", "widgets", "IssuesEvent", Mock())
        assert again is session
        assert len(fake_client.calls) == 1

        summary = watcher.get_sessions_summary()
        assert summary["acme/widgets"]["status"] == "failed"
        assert "connection reset" in summary["acme/widgets"]["failure"]

        await watcher.shutdown()

    @pytest.mark.asyncio
    async def test_restart_session_after_failure(
        self, fake_client, mock_settings, transport_error
    ):
        """Test that an ended session can be replaced explicitly."""
        fake_client.queue(transport_error)
        watcher = RepoEventWatcher(fake_client, mock_settings)

        failed = watcher.add_event_on_repo("token", "acme", "widgets", "PushEvent", Mock())
        await failed.wait()

        restarted = watcher.restart_session("new-token", "acme", "widgets")

        assert restarted is not failed
        assert restarted.is_active
        assert restarted.access_token == "new-token"
        assert watcher.restart_session("other", "acme", "widgets") is restarted

        await watcher.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_stops_sessions(self, fake_client, mock_settings):
        """Test that shutdown stops every session and rejects new handlers."""
        async with RepoEventWatcher(fake_client, mock_settings) as watcher:
            session = watcher.add_event_on_repo("token", "acme", "widgets", "PushEvent", Mock())

        assert session.status is SessionStatus.STOPPED
        with pytest.raises(PollingError):
            watcher.add_event_on_repo("token", "acme", "widgets", "PushEvent", Mock())

    @pytest.mark.asyncio
    async def test_watchers_do_not_share_state(self, fake_client, mock_settings):
        """Test that two watchers keep separate registries and sessions."""
        first = RepoEventWatcher(fake_client, mock_settings)
        second = RepoEventWatcher(fake_client, mock_settings)

        first.add_event_on_repo("token", "acme", "widgets", "PushEvent", Mock())

        assert second.session("acme", "widgets") is None
        assert second.registry.lookup("acme/widgets", "PushEvent") == ()

        await first.shutdown()
        await second.shutdown()


class TestPollSupervisor:
    """Test the one-session-per-repository guarantee."""

    def test_ensure_started_invokes_factory_once(self):
        """Test that the start function runs only for the first call."""
        supervisor = PollSupervisor()
        session = Mock(is_active=True)
        start_session = Mock(return_value=session)

        results = [supervisor.ensure_started("acme/widgets", start_session) for _ in range(3)]

        start_session.assert_called_once_with()
        assert all(result is session for result in results)
        assert supervisor.is_active("acme/widgets")
        assert not supervisor.is_active("acme/gadgets")

    def test_restart_keeps_active_session(self):
        """Test that restart does not replace a running session."""
        supervisor = PollSupervisor()
        running = Mock(is_active=True)
        supervisor.ensure_started("acme/widgets", lambda: running)
        start_session = Mock()

        assert supervisor.restart("acme/widgets", start_session) is running
        start_session.assert_not_called()
