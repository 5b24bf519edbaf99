"""Duck-typed wrappers around a persistence client that stores outbox messages."""

from __future__ import annotations

from typing import Any

SET_TOPIC = "set_topic"
SET_HEADERS = "set_headers"
SET_PAYLOAD = "set_payload"
EXECUTE = "execute"

CREATE = "create"
CREATE_BULK = "create_bulk"

_CREATOR_METHODS = (SET_TOPIC, SET_HEADERS, SET_PAYLOAD, EXECUTE)
_CLIENT_METHODS = (CREATE, CREATE_BULK)


class MethodNotFoundError(AttributeError):
    """Raised when a wrapped object lacks a required method."""

    def __init__(self, method: str) -> None:
        super().__init__(f"{method}: method not found")
        self.method = method


class NilClientError(ValueError):
    """Raised when no outbox message client is given."""

    def __init__(self) -> None:
        super().__init__("nil OutboxMessageClient")


def _has_method(obj: Any, name: str) -> bool:
    return callable(getattr(obj, name, None))


def _call(obj: Any, name: str, *args: Any) -> Any:
    method = getattr(obj, name, None)
    if not callable(method):
        raise MethodNotFoundError(name)
    return method(*args)


class MessageCreatorWrapper:
    """Uniform view of a builder that creates one outbox message."""

    __slots__ = ("_creator",)

    def __init__(self, creator: Any) -> None:
        self._creator = creator

    def set_topic(self, topic: str) -> MessageCreatorWrapper:
        _call(self._creator, SET_TOPIC, topic)
        return self

    def set_payload(self, payload: bytes) -> MessageCreatorWrapper:
        _call(self._creator, SET_PAYLOAD, payload)
        return self

    def set_headers(self, headers: dict[str, str]) -> MessageCreatorWrapper:
        _call(self._creator, SET_HEADERS, headers)
        return self

    def execute(self) -> None:
        """Run the underlying builder; its exceptions propagate."""
        _call(self._creator, EXECUTE)

    def unwrap(self) -> Any:
        return self._creator


def wrap_message_creator(creator: Any) -> MessageCreatorWrapper:
    """Wrap a message builder, checking it has every required method."""
    for method in _CREATOR_METHODS:
        if not _has_method(creator, method):
            raise MethodNotFoundError(method)
    return MessageCreatorWrapper(creator)


class MessageClientWrapper:
    """Uniform view of a client that creates outbox messages."""

    __slots__ = ("_client",)

    def __init__(self, client: Any) -> None:
        self._client = client

    def create(self) -> MessageCreatorWrapper:
        return wrap_message_creator(_call(self._client, CREATE))

    def create_bulk(self, *args: MessageCreatorWrapper) -> Any:
        """Return the client's bulk creator for the given message creators."""
        bulk = _call(self._client, CREATE_BULK, *(creator.unwrap() for creator in args))
        if not _has_method(bulk, EXECUTE):
            raise MethodNotFoundError(EXECUTE)
        return bulk


def validate_message_client(client: Any) -> None:
    """Raise unless the client can create single and bulk messages."""
    if client is None:
        raise NilClientError()
    for method in _CLIENT_METHODS:
        if not _has_method(client, method):
            raise MethodNotFoundError(method)


def wrap_message_client(client: Any) -> MessageClientWrapper:
    """Validate and wrap an outbox message client."""
    validate_message_client(client)
    return MessageClientWrapper(client)