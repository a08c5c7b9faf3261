"""Method and URL pattern router with parameters, wildcards and priorities."""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

HANDLER_MASK = 0x0FFFFFFF
MAX_URL_SEGMENTS = 100


class RoutingError(Exception):
    """Raised when a freshly added route cannot be found again in the tree."""


@dataclass(eq=False)
class _Node:
    name: str
    is_high_priority: bool = False
    children: list[_Node] = field(default_factory=list)
    handlers: list[int] = field(default_factory=list)


def _lexical_order(name: str) -> int:
    """Static segments sort first, then parameters, then wildcards."""
    if name.startswith(":"):
        return 1
    if name.startswith("*"):
        return 0
    return 2


def _split_url(url: str) -> list[str]:
    """Split a URL into its segments, stepping over one leading slash per segment."""
    segments: list[str] = []
    rest = url
    while rest and len(segments) < MAX_URL_SEGMENTS:
        rest = rest[1:]
        end = rest.find("/")
        if end == -1:
            end = len(rest)
        segments.append(rest[:end])
        rest = rest[end:]
    return segments


Handler = Callable[["HttpRouter"], bool]


class HttpRouter:
    """Routes a method and URL to the first handler that accepts it.

    Handlers are called with the router and return True when they handled
    the request; returning False lets routing continue to the next match.
    """

    HIGH_PRIORITY = 0xD0000000
    MEDIUM_PRIORITY = 0xE0000000
    LOW_PRIORITY = 0xF0000000

    def __init__(self) -> None:
        self.upper_cased_methods = [
            "GET", "POST", "HEAD", "PUT", "DELETE",
            "CONNECT", "OPTIONS", "TRACE", "PATCH",
        ]
        self.priority = {method: i for i, method in enumerate(self.upper_cased_methods)}
        self.user_data: Any = None
        self._handlers: list[Handler] = []
        self._root = _Node("rootNode")
        self._segments: list[str] = []
        self._params: list[str] = []

    @property
    def parameters(self) -> tuple[str, ...]:
        """Values captured by parameter segments of the route being executed."""
        return tuple(self._params)

    def _sorts_before(self, parent: _Node, new: _Node, existing: _Node) -> bool:
        if new.is_high_priority != existing.is_high_priority:
            return new.is_high_priority
        return (
            bool(existing.name)
            and parent is not self._root
            and _lexical_order(existing.name) < _lexical_order(new.name)
        )

    def _get_node(self, parent: _Node, name: str, is_high_priority: bool) -> _Node:
        for child in parent.children:
            if child.name == name and child.is_high_priority == is_high_priority:
                return child
        new = _Node(name, is_high_priority)
        index = next(
            (i for i, existing in enumerate(parent.children)
             if self._sorts_before(parent, new, existing)),
            len(parent.children),
        )
        parent.children.insert(index, new)
        return new

    def _run(self, handler_ids: Iterable[int]) -> bool:
        return any(self._handlers[h & HANDLER_MASK](self) for h in tuple(handler_ids))

    def _execute(self, parent: _Node, index: int) -> bool:
        if index >= len(self._segments):
            return self._run(parent.handlers)

        segment = self._segments[index]
        for child in tuple(parent.children):
            if child.name.startswith("*"):
                if self._run(child.handlers):
                    return True
            elif child.name.startswith(":") and segment:
                self._params.append(segment)
                if self._execute(child, index + 1):
                    return True
                self._params.pop()
            elif child.name == segment:
                if self._execute(child, index + 1):
                    return True
        return False

    def _find_handler(self, method: str, pattern: str, priority: int) -> Optional[int]:
        wants_high = priority == self.HIGH_PRIORITY
        for method_node in self._root.children:
            if method_node.name != method:
                continue
            node = method_node
            for segment in _split_url(pattern):
                node = next(
                    (c for c in node.children
                     if c.name == segment and c.is_high_priority == wants_high),
                    None,
                )
                if node is None:
                    return None
            return next(
                (h for h in node.handlers if (h & ~HANDLER_MASK) == priority),
                None,
            )
        return None

    def _cull(self, parent: Optional[_Node], node: _Node, handler_id: int) -> bool:
        i = 0
        while i < len(node.children):
            if not self._cull(node, node.children[i], handler_id):
                i += 1

        if parent is None:
            return False

        index = handler_id & HANDLER_MASK
        kept: list[int] = []
        for h in node.handlers:
            if (h & HANDLER_MASK) > index:
                kept.append(((h & HANDLER_MASK) - 1) | (h & ~HANDLER_MASK))
            elif h != handler_id:
                kept.append(h)
        node.handlers = kept

        if not node.handlers and not node.children:
            parent.children.remove(node)
            return True
        return False

    def route(self, method: str, url: str) -> bool:
        """Run the handlers matching method and url; True if one handled it."""
        self._segments = _split_url(url)
        self._params = []
        for method_node in self._root.children:
            if method_node.name == method:
                return self._execute(method_node, 0)
        return False

    def add(self, methods: Iterable[str], pattern: str, handler: Handler,
            priority: int = MEDIUM_PRIORITY) -> None:
        """Register handler for pattern under every method in methods."""
        methods = [str(m) for m in methods]
        if not methods:
            raise ValueError("at least one method is required")

        handler_id = priority | len(self._handlers)
        segments = _split_url(pattern)
        for method in methods:
            node = self._get_node(self._root, method, False)
            for segment in segments:
                node = self._get_node(node, segment, priority == self.HIGH_PRIORITY)
            bisect.insort_right(node.handlers, handler_id)

        self._handlers.append(handler)

        if self._find_handler(methods[0], pattern, priority) != handler_id:
            self._cull(None, self._root, handler_id)
            self._handlers.pop()
            raise RoutingError(
                f"route {methods[0]} {pattern!r} is already registered at this priority"
            )

    def remove(self, method: str, pattern: str, priority: int) -> bool:
        """Remove every route sharing the handler found by method, pattern and priority."""
        handler_id = self._find_handler(method, pattern, priority)
        if handler_id is None:
            return False
        self._cull(None, self._root, handler_id)
        del self._handlers[handler_id & HANDLER_MASK]
        return True