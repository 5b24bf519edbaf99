"""Declaration of the exchanges, queues and bindings a consumer relies on."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

QUEUE_TYPE_ARG = "x-queue-type"
DEAD_LETTER_EXCHANGE_ARG = "x-dead-letter-exchange"
QUEUE_MESSAGE_TTL_ARG = "x-message-ttl"
QUEUE_MAX_LEN_ARG = "x-max-length"

QUORUM = "quorum"
DEAD_LETTER_SUFFIX = "_dlx"
DEAD_LETTER_TTL_MS = 1000 * 60 * 60 * 24 * 14  # 14 days
DEAD_LETTER_MAX_LENGTH = 10000


class TopologyError(RuntimeError):
    """Raised when the broker refuses part of the topology."""


@contextmanager
def _wrapped(message: str) -> Iterator[None]:
    try:
        yield
    except Exception as exc:
        raise TopologyError(f"{message}: {exc}") from exc


def declare_dead_letter(channel: Any, dlx_name: str, delete_existing: bool) -> None:
    """Declare the fanout dead-letter exchange and its bounded quorum queue."""
    with _wrapped("failed to declare exchange"):
        channel.exchange_declare(
            exchange=dlx_name,
            exchange_type="fanout",
            durable=True,
            auto_delete=False,
            internal=False,
            arguments=None,
        )

    if delete_existing:
        with _wrapped("failed to delete queue"):
            channel.queue_delete(queue=dlx_name, if_unused=False, if_empty=False)

    with _wrapped("failed to declare queue"):
        channel.queue_declare(
            queue=dlx_name,
            durable=True,
            exclusive=False,
            auto_delete=False,
            arguments={
                QUEUE_TYPE_ARG: QUORUM,
                QUEUE_MESSAGE_TTL_ARG: DEAD_LETTER_TTL_MS,
                QUEUE_MAX_LEN_ARG: DEAD_LETTER_MAX_LENGTH,
            },
        )

    with _wrapped("failed to bind queue"):
        channel.queue_bind(queue=dlx_name, exchange=dlx_name, routing_key="", arguments=None)


def declare_queue(channel: Any, exchange_name: str, queue_name: str, dlx_name: str) -> None:
    """Declare the topic exchange and the quorum queue that dead-letters to ``dlx_name``."""
    with _wrapped("failed to declare exchange"):
        channel.exchange_declare(
            exchange=exchange_name,
            exchange_type="topic",
            durable=True,
            auto_delete=False,
            internal=False,
            arguments=None,
        )

    with _wrapped("failed to declare queue"):
        channel.queue_declare(
            queue=queue_name,
            durable=True,
            exclusive=False,
            auto_delete=False,
            arguments={
                QUEUE_TYPE_ARG: QUORUM,
                DEAD_LETTER_EXCHANGE_ARG: dlx_name,
            },
        )


def bind_queue(
    channel: Any, queue_name: str, exchange_name: str, routing_keys: Iterable[str]
) -> None:
    """Bind the queue to the exchange once per routing key, in order."""
    for routing_key in routing_keys:
        with _wrapped(f"failed to bind queue, topic: {routing_key}"):
            channel.queue_bind(
                queue=queue_name,
                exchange=exchange_name,
                routing_key=routing_key,
                arguments=None,
            )


def declare_consumer_topology(
    channel: Any,
    exchange_name: str,
    queue_name: str,
    routing_keys: Iterable[str],
    prefetch_count: int,
    delete_dlx: bool,
) -> str:
    """Declare everything a consumer needs and return the dead-letter exchange name."""
    dlx_name = queue_name + DEAD_LETTER_SUFFIX

    with _wrapped("failed to declare dead letter"):
        declare_dead_letter(channel, dlx_name, delete_dlx)

    with _wrapped("failed to declare queue"):
        declare_queue(channel, exchange_name, queue_name, dlx_name)

    with _wrapped("failed to declare queue bind"):
        bind_queue(channel, queue_name, exchange_name, routing_keys)

    with _wrapped("failed to set QoS"):
        channel.basic_qos(prefetch_count=prefetch_count, prefetch_size=0, global_qos=False)

    return dlx_name