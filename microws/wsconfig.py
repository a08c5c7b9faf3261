"""Settings and published message types of a WebSocket route."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from microws.topictree import TopicTree

MIN_MARGIN = 4
MAX_MARGIN = 16


@dataclass
class TopicTreeMessage:
    """A published message buffered in the topic tree."""

    message: bytes
    op_code: int
    compress: bool


@dataclass
class TopicTreeBigMessage:
    """A large published message handed straight to subscribers."""

    message: bytes
    op_code: int
    compress: bool


def idle_timeout_components(idle_timeout: int,
                            send_pings_automatically: bool) -> tuple[int, int]:
    """Split an idle timeout into (idle part, ping/end margin) in seconds.

    The margin is 4, 8 or 16 seconds. When pings are sent automatically the
    idle part is shortened by the margin; like the rest of the timeouts it
    is kept as a 16-bit unsigned value.
    """
    margin = MIN_MARGIN
    while idle_timeout - margin * 2 >= margin * 2 and margin < MAX_MARGIN:
        margin <<= 1
    idle = idle_timeout - (margin if send_pings_automatically else 0)
    return idle & 0xFFFF, margin


Handler = Optional[Callable[..., Any]]


@dataclass(eq=False)
class WebSocketSettings:
    """Handlers and limits of one WebSocket route, sharing the app's topic tree."""

    topic_tree: Optional[TopicTree] = None
    open_handler: Handler = None
    message_handler: Handler = None
    drain_handler: Handler = None
    subscription_handler: Handler = None
    close_handler: Handler = None
    ping_handler: Handler = None
    pong_handler: Handler = None
    max_payload_length: int = 0
    compression: int = 0
    max_backpressure: int = 0
    close_on_backpressure_limit: bool = False
    reset_idle_timeout_on_send: bool = False
    send_pings_automatically: bool = False
    max_lifetime: int = 0
    idle_timeout: int = 0
    idle_timeout_components: tuple[int, int] = field(init=False)

    def __post_init__(self) -> None:
        if not 0 <= self.idle_timeout <= 0xFFFF:
            raise ValueError("idle_timeout must fit in 16 bits")
        self.idle_timeout_components = idle_timeout_components(
            self.idle_timeout, self.send_pings_automatically
        )