"""A text-map carrier over message headers for trace context propagation."""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any, Optional


class HeaderCarrier:
    """Reads and writes string entries in a message's header mapping.

    Non-string header values are invisible to :meth:`get`, as trace
    propagation only deals in strings.
    """

    __slots__ = ("headers",)

    def __init__(self, headers: Optional[MutableMapping[str, Any]] = None) -> None:
        self.headers: MutableMapping[str, Any] = {} if headers is None else headers

    def get(self, key: str) -> str:
        """Return the string stored under ``key``, or an empty string."""
        value = self.headers.get(key)
        return value if isinstance(value, str) else ""

    def set(self, key: str, value: str) -> None:
        self.headers[key] = value

    def keys(self) -> list[str]:
        return list(self.headers)