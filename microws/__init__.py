"""Building blocks for a small HTTP and WebSocket server: routing, request parsing, pub/sub and a loop core."""

__version__ = "0.1.0"

__all__ = [
    "httpparser",
    "loop",
    "messageparser",
    "proxy",
    "request",
    "responsedata",
    "router",
    "topictree",
    "wsconfig",
]