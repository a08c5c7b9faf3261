"""Topic based publish/subscribe with buffered, per-subscriber delivery."""

from __future__ import annotations

import enum
from typing import Any, Callable, Iterator, Optional

MAX_OUTGOING_MESSAGES = 0xFFFF
MAX_MESSAGES_PER_SUBSCRIBER = 32


class IteratorFlags(enum.IntFlag):
    """Position of a message among those drained to one subscriber."""

    NONE = 0
    LAST = 1
    FIRST = 2


class TopicTreeError(Exception):
    """Raised when a subscriber changes its subscriptions while they are iterated."""


class Topic:
    """A named topic and the subscribers attached to it."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: dict[Subscriber, None] = {}

    def add(self, subscriber: Subscriber) -> None:
        self._subscribers[subscriber] = None

    def discard(self, subscriber: Subscriber) -> None:
        self._subscribers.pop(subscriber, None)

    def __contains__(self, subscriber: object) -> bool:
        return subscriber in self._subscribers

    def __iter__(self) -> Iterator[Subscriber]:
        return iter(tuple(self._subscribers))

    def __len__(self) -> int:
        return len(self._subscribers)

    def __repr__(self) -> str:
        return f"Topic({self.name!r}, subscribers={len(self)})"


class Subscriber:
    """One party that can subscribe to topics and receive published messages."""

    def __init__(self) -> None:
        self.topics: set[Topic] = set()
        self.user: Any = None
        self._message_indices: list[int] = []

    @property
    def needs_drainage(self) -> bool:
        """True while published messages wait to be delivered to this subscriber."""
        return bool(self._message_indices)


DrainCallback = Callable[[Subscriber, Any, IteratorFlags], bool]


class TopicTree:
    """Buffers published messages and delivers them to subscribers on drain.

    The callback receives (subscriber, message, flags) and returns True to
    stop delivering further messages to that subscriber in this drain.
    """

    def __init__(self, callback: DrainCallback) -> None:
        self._callback = callback
        self.iterating_subscriber: Optional[Subscriber] = None
        self._topics: dict[str, Topic] = {}
        # Ordered set; the most recently added subscriber is drained first.
        self._drainable: dict[Subscriber, None] = {}
        self._outgoing: list[Any] = []
        self._draining_all = False

    def _check_iterating(self, subscriber: Subscriber) -> None:
        if self.iterating_subscriber is subscriber:
            raise TopicTreeError(
                "a subscriber must not subscribe or unsubscribe while iterating its topics"
            )

    def _drain_one(self, subscriber: Subscriber) -> None:
        indices = subscriber._message_indices
        subscriber._message_indices = []
        last = len(indices) - 1
        for position, index in enumerate(indices):
            flags = IteratorFlags.NONE
            if position == last:
                flags |= IteratorFlags.LAST
            if position == 0:
                flags |= IteratorFlags.FIRST
            if self._callback(subscriber, self._outgoing[index], flags):
                break

    def lookup_topic(self, name: str) -> Optional[Topic]:
        """Return the topic with this name, or None."""
        return self._topics.get(name)

    def subscribe(self, subscriber: Subscriber, topic: str) -> Optional[Topic]:
        """Subscribe to topic; None if the subscriber already was subscribed."""
        self._check_iterating(subscriber)
        topic_obj = self._topics.get(topic)
        if topic_obj is None:
            topic_obj = Topic(topic)
            self._topics[topic] = topic_obj
        if topic_obj in subscriber.topics:
            return None
        subscriber.topics.add(topic_obj)
        topic_obj.add(subscriber)
        return topic_obj

    def unsubscribe(self, subscriber: Subscriber, topic: str) -> tuple[bool, bool, int]:
        """Return (ok, no_topics_left, remaining_subscriber_count)."""
        self._check_iterating(subscriber)
        topic_obj = self._topics.get(topic)
        if topic_obj is None or topic_obj not in subscriber.topics:
            return False, False, -1
        subscriber.topics.discard(topic_obj)
        topic_obj.discard(subscriber)
        count = len(topic_obj)
        if not count:
            del self._topics[topic]
        return True, not subscriber.topics, count

    def create_subscriber(self) -> Subscriber:
        """Create a new subscriber with no subscriptions."""
        return Subscriber()

    def free_subscriber(self, subscriber: Optional[Subscriber]) -> None:
        """Detach a subscriber from all its topics and pending deliveries."""
        if subscriber is None:
            return
        for topic_obj in tuple(subscriber.topics):
            if len(topic_obj) == 1:
                self._topics.pop(topic_obj.name, None)
            else:
                topic_obj.discard(subscriber)
        subscriber.topics.clear()
        if subscriber.needs_drainage:
            self._drainable.pop(subscriber, None)
            subscriber._message_indices = []

    def drain(self, subscriber: Optional[Subscriber] = None) -> None:
        """Deliver pending messages to one subscriber, or to all when none is given."""
        if subscriber is not None:
            if not subscriber.needs_drainage:
                return
            self._drainable.pop(subscriber, None)
            self._drain_one(subscriber)
            if not self._drainable and not self._draining_all:
                self._outgoing.clear()
            return

        if not self._drainable:
            return
        self._draining_all = True
        try:
            for pending in reversed(tuple(self._drainable)):
                self._drain_one(pending)
        finally:
            self._draining_all = False
            self._drainable.clear()
            self._outgoing.clear()

    def publish_big(self, sender: Optional[Subscriber], topic: str, message: Any,
                    callback: Callable[[Subscriber, Any], Any]) -> bool:
        """Hand message straight to callback for every subscriber but the sender."""
        topic_obj = self._topics.get(topic)
        if topic_obj is None:
            return False
        for subscriber in topic_obj:
            if subscriber is not sender:
                callback(subscriber, message)
        return True

    def publish(self, sender: Optional[Subscriber], topic: str, message: Any) -> bool:
        """Buffer message for every subscriber of topic but the sender.

        Returns True if at least one subscriber will receive it.
        """
        topic_obj = self._topics.get(topic)
        if topic_obj is None:
            return False

        if len(self._outgoing) == MAX_OUTGOING_MESSAGES:
            self.drain()

        referenced = False
        for subscriber in topic_obj:
            if subscriber is sender:
                continue
            referenced = True
            if len(subscriber._message_indices) == MAX_MESSAGES_PER_SUBSCRIBER:
                self.drain(subscriber)
            subscriber._message_indices.append(len(self._outgoing))
            if len(subscriber._message_indices) == 1:
                self._drainable[subscriber] = None

        if referenced:
            self._outgoing.append(message)
        return referenced