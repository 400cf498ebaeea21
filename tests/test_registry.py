"""
Tests for the event handler registry.
"""

from repo_events.events import EventType
from repo_events.polling import EventRegistry


def handler_a(event, event_type):
    pass


def handler_b(event, event_type):
    pass


class TestEventRegistry:
    """Test registration and lookup."""

    def test_lookup_unknown_returns_empty(self, registry):
        """Test that missing repositories and types are not errors."""
        assert registry.lookup("acme/widgets", "PushEvent") == ()

        registry.register("acme/widgets", "PushEvent", handler_a)
        assert registry.lookup("acme/widgets", "IssuesEvent") == ()
        assert registry.lookup("acme/gadgets", "PushEvent") == ()

    def test_registration_order_is_preserved(self, registry):
        """Test that handlers come back in insertion order."""
        registry.register("acme/widgets", "PushEvent", handler_a)
        registry.register("acme/widgets", "PushEvent", handler_b)

        assert registry.lookup("acme/widgets", "PushEvent") == (handler_a, handler_b)

    def test_duplicate_registration_is_kept(self, registry):
        """Test that registering a handler twice stores it twice."""
        registry.register("acme/widgets", "PushEvent", handler_a)
        registry.register("acme/widgets", "PushEvent", handler_a)

        assert registry.lookup("acme/widgets", "PushEvent") == (handler_a, handler_a)
        assert len(registry) == 2

    def test_enum_and_tag_are_equivalent(self, registry):
        """Test that EventType members key the same list as their wire tags."""
        registry.register("acme/widgets", EventType.PUSH, handler_a)
        registry.register("acme/widgets", "PushEvent", handler_b)

        assert registry.lookup("acme/widgets", EventType.PUSH) == (handler_a, handler_b)
        assert registry.event_types("acme/widgets") == ["PushEvent"]

    def test_snapshot_is_detached(self, registry):
        """Test that later registrations do not change an existing snapshot."""
        registry.register("acme/widgets", "PushEvent", handler_a)
        snapshot = registry.snapshot("acme/widgets")

        registry.register("acme/widgets", "PushEvent", handler_b)
        registry.register("acme/widgets", "IssuesEvent", handler_b)

        assert snapshot == {"PushEvent": (handler_a,)}
        assert registry.snapshot("acme/gadgets") == {}

    def test_repositories_are_independent(self):
        """Test that two registries never share entries."""
        first = EventRegistry()
        second = EventRegistry()

        first.register("acme/widgets", "PushEvent", handler_a)

        assert first.repositories() == ["acme/widgets"]
        assert second.repositories() == []
        assert len(second) == 0
