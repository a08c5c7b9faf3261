"""The parsed head of one HTTP request: request line, headers and route parameters."""

from __future__ import annotations

from typing import Iterable, Iterator, Optional

MAX_HEADERS = 50


class HttpRequest:
    """Read-only view of a request as handed to route handlers.

    Header names are stored lower-cased by the parser and are looked up
    exactly. A missing header is reported as None, which is different from
    a header that is present with an empty value.
    """

    def __init__(self) -> None:
        self.case_sensitive_method = ""
        self.full_url = ""
        self.ancient = False
        self.did_yield = False
        self._headers: list[tuple[str, str]] = []
        self._query_separator = 0
        self._parameters: tuple[str, ...] = ()

    def _load(self, method: str, target: str, headers: Iterable[tuple[str, str]]) -> None:
        """Fill in a freshly parsed request head."""
        self.case_sensitive_method = method
        self.full_url = target
        self.ancient = False
        self.did_yield = False
        self._headers = list(headers)[: MAX_HEADERS - 2]
        separator = target.find("?")
        self._query_separator = len(target) if separator == -1 else separator
        self._parameters = ()

    @property
    def method(self) -> str:
        """The request method, lower-cased."""
        return self.case_sensitive_method.lower()

    @property
    def url(self) -> str:
        """The request target without its query string."""
        return self.full_url[: self._query_separator]

    @property
    def query(self) -> Optional[str]:
        """The raw, still encoded query string after '?', or None if there is none."""
        if self._query_separator < len(self.full_url):
            return self.full_url[self._query_separator + 1:]
        return None

    def header(self, name: str) -> Optional[str]:
        """Value of the first header with this lower-cased name, or None."""
        for key, value in self._headers:
            if key == name:
                return value
        return None

    def set_parameters(self, parameters: Iterable[str]) -> None:
        """Set the values captured by the route's parameter segments."""
        self._parameters = tuple(parameters)

    def parameter(self, index: int) -> str:
        """The route parameter at index, or an empty string if there is none."""
        if 0 <= index < len(self._parameters):
            return self._parameters[index]
        return ""

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(tuple(self._headers))

    def __repr__(self) -> str:
        return f"HttpRequest({self.case_sensitive_method!r}, {self.full_url!r})"