from __future__ import annotations

from pointcloud_relay.core import SubscriptionRegistry


def test_join_adds_member() -> None:
    reg = SubscriptionRegistry()
    reg.register("c1")
    assert reg.join("c1", "d1") is None
    assert reg.members_of("d1") == frozenset({"c1"})
    assert reg.subscription_of("c1") == "d1"


def test_rejoin_replaces_subscription() -> None:
    reg = SubscriptionRegistry()
    reg.join("c1", "d1")
    previous = reg.join("c1", "d2")

    assert previous == "d1"
    assert "c1" not in reg.members_of("d1")
    assert reg.members_of("d2") == frozenset({"c1"})


def test_leave_removes_member() -> None:
    reg = SubscriptionRegistry()
    reg.join("c1", "d1")
    reg.join("c2", "d1")

    assert reg.leave("c1", "d1") is True
    assert reg.members_of("d1") == frozenset({"c2"})
    assert reg.subscription_of("c1") is None
    # still connected, still on the dashboard feed
    assert "c1" in reg.all_connections()


def test_leave_other_source_is_noop() -> None:
    reg = SubscriptionRegistry()
    reg.join("c1", "d1")
    assert reg.leave("c1", "d2") is False
    assert reg.members_of("d1") == frozenset({"c1"})


def test_drop_forgets_connection() -> None:
    reg = SubscriptionRegistry()
    reg.register("c1")
    reg.join("c1", "d1")
    reg.drop("c1")

    assert reg.members_of("d1") == frozenset()
    assert "c1" not in reg.all_connections()
    reg.drop("c1")


def test_all_connections_includes_unsubscribed() -> None:
    reg = SubscriptionRegistry()
    reg.register("watcher")
    reg.join("c1", "d1")
    assert reg.all_connections() == frozenset({"watcher", "c1"})
