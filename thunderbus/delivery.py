"""Handling of deliveries received by a consumer: topics, decoding and outcomes."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

import msgpack

TOPIC_HEADER_KEY = "x-thunder-topic"
DELIVERY_COUNT_HEADER = "x-delivery-count"
MSGPACK_CONTENT_TYPE = "application/msgpack"

_logger = logging.getLogger(__name__)


@dataclass
class Delivery:
    """A message as received from the broker."""

    body: bytes = b""
    routing_key: str = ""
    content_type: str = ""
    headers: Optional[dict[str, Any]] = field(default_factory=dict)
    delivery_mode: int = 0


class HandlerResponse(Enum):
    """What a handler wants done with a message it processed."""

    SUCCESS = "success"
    DEAD_LETTER = "dead_letter"
    RETRY_BACKOFF = "retry_backoff"
    RETRY = "retry"


class Acknowledgement(Enum):
    """How the consumer settles a delivery with the broker."""

    ACK = "ack"
    REJECT = "reject"
    REQUEUE = "requeue"
    BACKOFF = "backoff"


class Decoder:
    """Decodes a delivery body according to its content type."""

    __slots__ = ("body", "content_type")

    def __init__(self, body: bytes, content_type: str = "") -> None:
        self.body = body
        self.content_type = content_type

    def decode(self) -> Any:
        """Return the decoded body; msgpack when declared, JSON otherwise."""
        if self.content_type == MSGPACK_CONTENT_TYPE:
            return msgpack.unpackb(self.body, raw=False)
        return json.loads(self.body)


def extract_topic(delivery: Delivery) -> str:
    """Return the topic from the topic header, falling back to the routing key."""
    headers = delivery.headers or {}
    if TOPIC_HEADER_KEY in headers:
        topic = headers[TOPIC_HEADER_KEY]
        if not isinstance(topic, str):
            raise TypeError(f"{TOPIC_HEADER_KEY} header must be a string")
        return topic
    return delivery.routing_key


def inject_topic(delivery: Delivery, topic: str) -> None:
    """Record the topic in the delivery's headers."""
    if delivery.headers is None:
        delivery.headers = {}
    delivery.headers[TOPIC_HEADER_KEY] = topic


def new_decoder(delivery: Delivery) -> Decoder:
    return Decoder(delivery.body, delivery.content_type)


def delivery_count(delivery: Delivery) -> int:
    """Return how many times the delivery has been attempted."""
    headers = delivery.headers or {}
    if DELIVERY_COUNT_HEADER not in headers:
        return 0
    attempts = headers[DELIVERY_COUNT_HEADER]
    if isinstance(attempts, bool) or not isinstance(attempts, int):
        raise TypeError(f"{DELIVERY_COUNT_HEADER} header must be an integer")
    return attempts


def set_delivery_count(delivery: Delivery, attempts: int) -> None:
    if delivery.headers is None:
        delivery.headers = {}
    delivery.headers[DELIVERY_COUNT_HEADER] = attempts


def string_headers(headers: Optional[dict[str, Any]]) -> dict[str, str]:
    """Return only the headers whose values are strings."""
    return {key: value for key, value in (headers or {}).items() if isinstance(value, str)}


def handle_with_recoverer(handler: Any, topic: str, decoder: Decoder) -> HandlerResponse:
    """Run the handler, dead-lettering the message if it raises."""
    _logger.info("consuming message", extra={"topic": topic})
    try:
        return handler.handle(topic, decoder)
    except Exception:
        _logger.exception("panic while consuming message", extra={"topic": topic})
        return HandlerResponse.DEAD_LETTER


def acknowledgement_for(response: HandlerResponse) -> Acknowledgement:
    """Map a handler's response to the way the delivery is settled."""
    if response is HandlerResponse.SUCCESS:
        return Acknowledgement.ACK
    if response is HandlerResponse.DEAD_LETTER:
        return Acknowledgement.REJECT
    if response is HandlerResponse.RETRY_BACKOFF:
        return Acknowledgement.BACKOFF
    return Acknowledgement.REQUEUE