import pytest

from microws.topictree import IteratorFlags, TopicTree, TopicTreeError


class Recorder:
    def __init__(self, stop_after=None):
        self.calls = []
        self.stop_after = stop_after

    def __call__(self, subscriber, message, flags):
        self.calls.append((subscriber, message, flags))
        if self.stop_after is not None and len(self.calls) >= self.stop_after:
            return True
        return False


def make_tree(**kwargs):
    rec = Recorder(**kwargs)
    return TopicTree(rec), rec


def test_subscribe_creates_topic_and_links_both_ways():
    tree, _ = make_tree()
    s = tree.create_subscriber()
    topic = tree.subscribe(s, "news")
    assert topic is tree.lookup_topic("news")
    assert topic.name == "news"
    assert s in topic
    assert topic in s.topics


def test_subscribe_twice_returns_none():
    tree, _ = make_tree()
    s = tree.create_subscriber()
    tree.subscribe(s, "news")
    assert tree.subscribe(s, "news") is None
    assert len(tree.lookup_topic("news")) == 1


def test_lookup_missing_topic():
    tree, _ = make_tree()
    assert tree.lookup_topic("nothing") is None


def test_publish_and_drain_single_message_flags():
    tree, rec = make_tree()
    s = tree.create_subscriber()
    tree.subscribe(s, "news")
    assert tree.publish(None, "news", "hello") is True
    assert s.needs_drainage
    tree.drain()
    assert rec.calls == [(s, "hello", IteratorFlags.FIRST | IteratorFlags.LAST)]
    assert not s.needs_drainage


def test_drain_flags_for_several_messages():
    tree, rec = make_tree()
    s = tree.create_subscriber()
    tree.subscribe(s, "t")
    messages = ["a", "b", "c"]
    for m in messages:
        tree.publish(None, "t", m)
    tree.drain(s)
    assert [c[1] for c in rec.calls] == messages
    assert rec.calls[0][2] == IteratorFlags.FIRST
    assert rec.calls[1][2] == IteratorFlags.NONE
    assert rec.calls[-1][2] == IteratorFlags.LAST


def test_callback_returning_true_stops_drain_short():
    tree, rec = make_tree(stop_after=1)
    s = tree.create_subscriber()
    tree.subscribe(s, "t")
    tree.publish(None, "t", "a")
    tree.publish(None, "t", "b")
    tree.drain()
    assert [c[1] for c in rec.calls] == ["a"]
    assert not s.needs_drainage


def test_sender_is_excluded():
    tree, rec = make_tree()
    a = tree.create_subscriber()
    b = tree.create_subscriber()
    tree.subscribe(a, "t")
    tree.subscribe(b, "t")
    assert tree.publish(a, "t", "msg") is True
    tree.drain()
    assert [c[0] for c in rec.calls] == [b]


def test_publish_only_to_sender_is_unreferenced():
    tree, rec = make_tree()
    a = tree.create_subscriber()
    tree.subscribe(a, "t")
    assert tree.publish(a, "t", "msg") is False
    tree.drain()
    assert rec.calls == []


def test_publish_to_missing_topic():
    tree, _ = make_tree()
    assert tree.publish(None, "missing", "msg") is False


def test_drain_order_most_recent_first():
    tree, rec = make_tree()
    a = tree.create_subscriber()
    b = tree.create_subscriber()
    tree.subscribe(a, "one")
    tree.subscribe(b, "two")
    tree.publish(None, "one", "to-a")
    tree.publish(None, "two", "to-b")
    tree.drain()
    assert [c[0] for c in rec.calls] == [b, a]


def test_single_drain_leaves_others_pending():
    tree, rec = make_tree()
    a = tree.create_subscriber()
    b = tree.create_subscriber()
    tree.subscribe(a, "t")
    tree.subscribe(b, "t")
    tree.publish(None, "t", "msg")
    tree.drain(a)
    assert [c[0] for c in rec.calls] == [a]
    assert b.needs_drainage
    tree.drain()
    assert [c[0] for c in rec.calls] == [a, b]
    assert all(c[1] == "msg" for c in rec.calls)


def test_thirty_two_messages_trigger_automatic_drain():
    tree, rec = make_tree()
    s = tree.create_subscriber()
    tree.subscribe(s, "t")
    messages = [f"m{i}" for i in range(33)]
    for m in messages:
        tree.publish(None, "t", m)
    assert [c[1] for c in rec.calls] == messages[:32]
    tree.drain()
    assert [c[1] for c in rec.calls] == messages


def test_unsubscribe_results():
    tree, _ = make_tree()
    a = tree.create_subscriber()
    b = tree.create_subscriber()
    tree.subscribe(a, "t")
    tree.subscribe(b, "t")
    tree.subscribe(a, "u")
    assert tree.unsubscribe(a, "t") == (True, False, 1)
    assert tree.unsubscribe(a, "u") == (True, True, 0)
    assert tree.lookup_topic("u") is None
    assert tree.lookup_topic("t") is not None and len(tree.lookup_topic("t")) == 1


def test_unsubscribe_failures():
    tree, _ = make_tree()
    a = tree.create_subscriber()
    b = tree.create_subscriber()
    tree.subscribe(b, "t")
    assert tree.unsubscribe(a, "missing") == (False, False, -1)
    assert tree.unsubscribe(a, "t") == (False, False, -1)


def test_free_subscriber_removes_topics_and_pending():
    tree, rec = make_tree()
    a = tree.create_subscriber()
    b = tree.create_subscriber()
    tree.subscribe(a, "solo")
    tree.subscribe(a, "shared")
    tree.subscribe(b, "shared")
    tree.publish(None, "shared", "msg")
    tree.free_subscriber(a)
    assert tree.lookup_topic("solo") is None
    assert a not in tree.lookup_topic("shared")
    tree.drain()
    assert [c[0] for c in rec.calls] == [b]


def test_free_none_is_ignored():
    tree, _ = make_tree()
    tree.free_subscriber(None)
    assert tree.lookup_topic("") is None


def test_iterating_subscriber_cannot_change_subscriptions():
    tree, _ = make_tree()
    s = tree.create_subscriber()
    tree.subscribe(s, "t")
    tree.iterating_subscriber = s
    with pytest.raises(TopicTreeError):
        tree.subscribe(s, "u")
    with pytest.raises(TopicTreeError):
        tree.unsubscribe(s, "t")


def test_publish_big_bypasses_buffer():
    tree, rec = make_tree()
    a = tree.create_subscriber()
    b = tree.create_subscriber()
    tree.subscribe(a, "t")
    tree.subscribe(b, "t")
    got = []
    assert tree.publish_big(a, "t", "big", lambda s, m: got.append((s, m))) is True
    assert got == [(b, "big")]
    assert not b.needs_drainage
    tree.drain()
    assert rec.calls == []


def test_publish_big_missing_topic():
    tree, _ = make_tree()
    got = []
    assert tree.publish_big(None, "none", "big", lambda s, m: got.append(m)) is False
    assert got == []


def test_messages_shared_by_subscribers_after_drain_reset():
    tree, rec = make_tree()
    s = tree.create_subscriber()
    tree.subscribe(s, "t")
    tree.publish(None, "t", "first")
    tree.drain()
    tree.publish(None, "t", "second")
    tree.drain()
    assert [c[1] for c in rec.calls] == ["first", "second"]