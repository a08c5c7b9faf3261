"""Per-thread event loop core: deferred callbacks, pre/post hooks and the HTTP date."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Hashable, Optional

CORK_BUFFER_SIZE = 16 * 1024
DATE_UPDATE_INTERVAL = 1.0

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

LoopHandler = Callable[["Loop"], Any]

_lazy = threading.local()


class CorkError(RuntimeError):
    """Raised when a corked socket is still held at the end of a loop iteration."""


def http_date(timestamp: Optional[float] = None) -> str:
    """Format a POSIX timestamp (default: now) as an HTTP Date header value."""
    if timestamp is None:
        timestamp = time.time()
    t = time.gmtime(timestamp)
    return (
        f"{_WEEKDAYS[t.tm_wday]}, {t.tm_mday % 99:02d} {_MONTHS[t.tm_mon - 1]} "
        f"{t.tm_year % 9999:04d} {t.tm_hour % 99:02d}:{t.tm_min % 99:02d}:"
        f"{t.tm_sec % 99:02d} GMT"
    )


class Loop:
    """An event loop that runs deferred callbacks between pre and post hooks.

    Callbacks may be deferred from any thread; they run on the loop's own
    thread during the next iteration. Use Loop.get() for the lazily created
    loop of the calling thread.
    """

    def __init__(self) -> None:
        self._defer_lock = threading.Lock()
        self._deferred: list[Callable[[], Any]] = []
        self._pre_handlers: dict[Hashable, LoopHandler] = {}
        self._post_handlers: dict[Hashable, LoopHandler] = {}
        self.no_mark = False
        self.cork_buffer = bytearray(CORK_BUFFER_SIZE)
        self.cork_offset = 0
        self.corked_socket: Any = None
        self.date = ""
        self._date_updated = 0.0
        self.update_date()

    @classmethod
    def get(cls) -> Loop:
        """Return the calling thread's loop, creating it on first use."""
        loop = getattr(_lazy, "loop", None)
        if loop is None:
            loop = cls()
            _lazy.loop = loop
        return loop

    def free(self) -> None:
        """Release this loop; the next Loop.get() on its thread creates a new one."""
        with self._defer_lock:
            self._deferred.clear()
        self._pre_handlers.clear()
        self._post_handlers.clear()
        self.corked_socket = None
        if getattr(_lazy, "loop", None) is self:
            _lazy.loop = None

    def update_date(self) -> None:
        """Refresh the cached HTTP date string."""
        now = time.time()
        self.date = http_date(now)
        self._date_updated = now

    def add_post_handler(self, key: Hashable, handler: LoopHandler) -> None:
        """Run handler after every iteration; an existing key is left unchanged."""
        self._post_handlers.setdefault(key, handler)

    def remove_post_handler(self, key: Hashable) -> None:
        self._post_handlers.pop(key, None)

    def add_pre_handler(self, key: Hashable, handler: LoopHandler) -> None:
        """Run handler before every iteration; an existing key is left unchanged."""
        self._pre_handlers.setdefault(key, handler)

    def remove_pre_handler(self, key: Hashable) -> None:
        self._pre_handlers.pop(key, None)

    def defer(self, callback: Callable[[], Any]) -> None:
        """Queue callback to run on the loop's thread; safe to call from any thread."""
        with self._defer_lock:
            self._deferred.append(callback)

    @property
    def has_deferred(self) -> bool:
        with self._defer_lock:
            return bool(self._deferred)

    def _drain_deferred(self) -> None:
        with self._defer_lock:
            queue, self._deferred = self._deferred, []
        for callback in queue:
            callback()

    def iterate(self) -> None:
        """Run one iteration: pre handlers, deferred callbacks, post handlers."""
        for handler in tuple(self._pre_handlers.values()):
            handler(self)

        if time.time() - self._date_updated >= DATE_UPDATE_INTERVAL:
            self.update_date()

        self._drain_deferred()

        for handler in tuple(self._post_handlers.values()):
            handler(self)

        if self.corked_socket is not None:
            raise CorkError("cork buffer must not be held across event loop iterations")

    def run(self) -> None:
        """Iterate until no deferred callbacks are left."""
        while True:
            self.iterate()
            if not self.has_deferred:
                break

    def set_silent(self, silent: bool) -> None:
        self.no_mark = bool(silent)