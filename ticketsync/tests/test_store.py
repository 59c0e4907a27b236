"""Tests for subscription handles and store paths"""
from unittest.mock import MagicMock

from ticketsync.services.store import (
    Subscription,
    SubscriptionSet,
    context_tags_path,
    ticket_path,
)


def test_ticket_path_skips_empty_parts():
    assert ticket_path("ticket-uuid-0001") == "tickets/ticket-uuid-0001"
    assert ticket_path("ticket-uuid-0001", "", "Agent", "10:00:00") == "tickets/ticket-uuid-0001/Agent/10:00:00"


def test_context_tags_path():
    assert context_tags_path("t1") == "tickets/t1/interaction_log/code/details/context_tags"


class TestSubscription:
    def test_close_is_idempotent(self):
        release = MagicMock()
        subscription = Subscription("tickets/t1/Agent", release)

        subscription.close()
        subscription.close()

        release.assert_called_once()
        assert subscription.closed is True

    def test_release_failure_is_logged_not_raised(self):
        subscription = Subscription("tickets/t1/Agent", MagicMock(side_effect=RuntimeError("gone")))

        subscription.close()

        assert subscription.closed is True


class TestSubscriptionSet:
    def test_context_manager_releases_newest_first(self):
        order = []

        with SubscriptionSet() as subs:
            subs.add(Subscription("a", lambda: order.append("a")))
            subs.add(Subscription("b", lambda: order.append("b")))
            assert len(subs) == 2

        assert order == ["b", "a"]
        assert len(subs) == 0

    def test_reusable_after_close(self):
        subs = SubscriptionSet()
        first = subs.add(Subscription("a"))
        subs.close()

        second = subs.add(Subscription("b"))

        assert first.closed is True
        assert second.closed is False
        assert len(subs) == 1
