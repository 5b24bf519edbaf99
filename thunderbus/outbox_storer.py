"""Storing outbox messages in a transaction, with logging, metrics and tracing layers."""

from __future__ import annotations

import logging
import secrets
import threading
import time
from collections import Counter
from collections.abc import Callable, Sequence
from typing import Any, Optional

from thunderbus.outbox_client import validate_message_client, wrap_message_client
from thunderbus.outbox_message import Message

OP_LABEL = "op"
OP = "thunder.outbox.storer.Store"
LATENCY_LABEL = "latency"
MESSAGES_NUM_LABEL = "messages_num"

METER_NAME = "thunder.outbox.storer"
STORED_COUNTER_NAME = "thunder.outbox.storer.message.total"
STORED_ERROR_COUNTER_NAME = "thunder.outbox.storer.message.error"

SPAN_NAME_STORE = "thunder.outbox.storer.Store"
TRACER_NAME = "thunder.outbox.storer"
TRACEPARENT_HEADER = "traceparent"

SpanCallback = Callable[[str, str, Optional[BaseException]], None]


class NoMessagesError(ValueError):
    """Raised when there is nothing to store."""

    def __init__(self) -> None:
        super().__init__("no messages")


def validate_messages(messages: Sequence[Message]) -> None:
    """Raise if the batch is empty or any message is invalid.

    When several messages are invalid, the error of the first one is raised.
    """
    if not messages:
        raise NoMessagesError()
    errors = []
    for message in messages:
        try:
            message.validate()
        except ValueError as exc:
            errors.append(exc)
    if errors:
        raise errors[0]


class Storer:
    """Stores outbox messages through a transactional message client."""

    def store(self, client: Any, messages: Sequence[Message]) -> None:
        validate_messages(messages)
        tx_client = wrap_message_client(client)
        creators = [message.build(tx_client.create()) for message in messages]
        tx_client.create_bulk(*creators).execute()

    def with_tx_client(self, client: Any) -> TransactionalStorer:
        """Bind this storer to one transactional client."""
        return TransactionalStorer(self, client)


class TransactionalStorer:
    """A storer bound to a single transactional client."""

    __slots__ = ("_storer", "_client")

    def __init__(self, storer: Storer, client: Any) -> None:
        validate_message_client(client)
        self._storer = storer
        self._client = client

    def store(self, messages: Sequence[Message]) -> None:
        self._storer.store(self._client, messages)


class LoggingStorer(Storer):
    """Logs the start, end and latency of every store."""

    def __init__(self, inner: Storer, logger: logging.Logger | None = None) -> None:
        self._inner = inner
        self._logger = logger or logging.getLogger(__name__)

    def store(self, client: Any, messages: Sequence[Message]) -> None:
        self._logger.debug("starting storing messages", extra={OP_LABEL: OP})
        start = time.perf_counter()
        try:
            self._inner.store(client, messages)
        finally:
            self._logger.debug("finished storing messages", extra={OP_LABEL: OP})
            self._logger.info(
                "messages stored",
                extra={
                    LATENCY_LABEL: time.perf_counter() - start,
                    OP_LABEL: OP,
                    MESSAGES_NUM_LABEL: len(messages),
                },
            )


class MetricsStorer(Storer):
    """Counts stored messages, and failed ones, per topic."""

    def __init__(self, inner: Storer) -> None:
        self._inner = inner
        self._lock = threading.Lock()
        self.stored_total: Counter[str] = Counter()
        self.stored_errors: Counter[str] = Counter()

    def store(self, client: Any, messages: Sequence[Message]) -> None:
        failed = False
        try:
            self._inner.store(client, messages)
        except Exception:
            failed = True
            raise
        finally:
            counts = Counter(message.topic for message in messages)
            with self._lock:
                self.stored_total.update(counts)
                if failed:
                    self.stored_errors.update(counts)


class TracingStorer(Storer):
    """Injects a trace context into every message's headers before storing."""

    def __init__(self, inner: Storer, on_span: SpanCallback | None = None) -> None:
        self._inner = inner
        self._on_span = on_span

    def store(self, client: Any, messages: Sequence[Message]) -> None:
        traceparent = f"00-{secrets.token_hex(16)}-{secrets.token_hex(8)}-01"
        for message in messages:
            if message.headers is None:
                message.headers = {}
            message.headers[TRACEPARENT_HEADER] = traceparent
        error: BaseException | None = None
        try:
            self._inner.store(client, messages)
        except Exception as exc:
            error = exc
            raise
        finally:
            if self._on_span is not None:
                self._on_span(SPAN_NAME_STORE, traceparent, error)