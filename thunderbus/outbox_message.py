"""Outbox messages and the relayer contract."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class EmptyTopicError(ValueError):
    """Raised when an outbox message has no topic."""

    def __init__(self) -> None:
        super().__init__("empty topic")


class EmptyPayloadError(ValueError):
    """Raised when an outbox message has no payload."""

    def __init__(self) -> None:
        super().__init__("empty payload")


@dataclass
class Message:
    """A message waiting in the outbox to be relayed to the broker."""

    topic: str
    payload: bytes
    headers: dict[str, str] = field(default_factory=dict)

    def build(self, creator: Any) -> Any:
        """Fill a message creator with this message's fields and return it."""
        return (
            creator.set_topic(self.topic)
            .set_payload(self.payload)
            .set_headers(self.headers)
        )

    def validate(self) -> None:
        """Raise if the message cannot be stored."""
        if not self.topic:
            raise EmptyTopicError()
        if not self.payload:
            raise EmptyPayloadError()


class Relayer(ABC):
    """Moves stored outbox messages to the broker."""

    @abstractmethod
    def start(self) -> None:
        """Start relaying messages."""