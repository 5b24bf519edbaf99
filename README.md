# thunderbus

Building blocks for event-driven services that talk to an AMQP broker.

| Module | What it holds |
| --- | --- |
| `thunderbus.outbox_message` | `Message` (topic, payload, headers) with `validate()` and `build(creator)`; the abstract `Relayer`; `EmptyTopicError`, `EmptyPayloadError` |
| `thunderbus.outbox_client` | `wrap_message_client`, `validate_message_client`, `wrap_message_creator`, the `MessageClientWrapper` and `MessageCreatorWrapper` duck-typed wrappers; `MethodNotFoundError`, `NilClientError` |
| `thunderbus.outbox_storer` | `Storer`, `TransactionalStorer`, the `LoggingStorer`, `MetricsStorer` and `TracingStorer` decorators, `validate_messages`, `NoMessagesError` |
| `thunderbus.delivery` | `Delivery`, `HandlerResponse`, `Acknowledgement`, `Decoder` and the helpers `extract_topic`, `inject_topic`, `new_decoder`, `delivery_count`, `set_delivery_count`, `string_headers`, `handle_with_recoverer`, `acknowledgement_for` |
| `thunderbus.backoff` | `ExponentialBackoff`, `current_interval`, `STOP` |
| `thunderbus.topology` | `declare_dead_letter`, `declare_queue`, `bind_queue`, `declare_consumer_topology`, `TopologyError` |
| `thunderbus.carrier` | `HeaderCarrier`, a string text-map view over message headers |
| `thunderbus.publisher_state` | `PendingCounter`, `PauseState`, `HealthMonitor`, `HealthStatus`, `drop_message`, `FailedPublisher`, `PublisherUnavailableError` |

## Installation

```
pip install thunderbus
```

## Storing outbox messages

```python
from thunderbus.outbox_message import Message
from thunderbus.outbox_storer import LoggingStorer, Storer

storer = LoggingStorer(Storer())
messages = [Message(topic="topic.test", payload=b'{"hello": "world"}')]

storer.store(tx_client, messages)

# Or bind the transaction client once:
storer.with_tx_client(tx_client).store(messages)
```

`tx_client` is any object with a `create()` method and a `create_bulk(*creators)` method.
`create()` must return a builder with `set_topic`, `set_payload`, `set_headers` and `execute`;
`create_bulk()` must return an object with `execute()`. A missing method raises
`MethodNotFoundError`, and `None` as the client raises `NilClientError`.

An empty message list raises `NoMessagesError`; a message with no topic or payload raises
`EmptyTopicError` or `EmptyPayloadError` (the first invalid message's error is raised).

The decorators wrap any `Storer`:

- `LoggingStorer` logs the start, end, latency and message count of each store.
- `MetricsStorer` counts messages per topic in its `stored_total` and, when the store raises,
  `stored_errors` counters.
- `TracingStorer` writes a freshly generated `traceparent` header into every message before
  storing and, if given an `on_span` callback, calls it with the span name, the traceparent and
  the error (or `None`).

## Handling a delivery

```python
from thunderbus.delivery import (
    Delivery, acknowledgement_for, extract_topic, handle_with_recoverer, inject_topic, new_decoder,
)

delivery = Delivery(body=b'{"hello": "world"}', routing_key="topic.test")
topic = extract_topic(delivery)          # x-thunder-topic header, else the routing key
inject_topic(delivery, topic)
response = handle_with_recoverer(handler, topic, new_decoder(delivery))
ack = acknowledgement_for(response)      # Acknowledgement.ACK, REJECT, BACKOFF or REQUEUE
```

`handler` is any object with `handle(topic, decoder)` returning a `HandlerResponse`. If it raises,
the message is treated as `HandlerResponse.DEAD_LETTER`. `Decoder.decode()` reads msgpack when the
content type is `application/msgpack` and JSON otherwise. `delivery_count()` reads the
`x-delivery-count` header (0 when absent).

## Backoff

```python
from thunderbus.backoff import STOP, ExponentialBackoff, current_interval

interval = current_interval(ExponentialBackoff(), attempts=3)
if interval is STOP:
    ...  # give up
```

Intervals are in seconds: 0.5 initial, multiplier 1.5, randomisation 0.5, capped at 60, and the
policy stops after 15 minutes elapsed unless `max_elapsed_time` is `None` or `0`.

## Declaring topology

`declare_consumer_topology(channel, exchange_name, queue_name, routing_keys, prefetch_count,
delete_dlx)` declares a fanout dead-letter exchange `<queue>_dlx` with a quorum queue
(14-day TTL, at most 10,000 messages), a durable topic exchange, a quorum queue dead-lettering to
it, one binding per routing key, and the prefetch count. `channel` must offer `exchange_declare`,
`queue_declare`, `queue_bind`, `queue_delete` and `basic_qos` taking keyword arguments. Broker
failures are raised as `TopologyError`.

## Publisher state

`PendingCounter` tracks outstanding messages and can `wait(timeout)` for them; `PauseState`
records pausing; `HealthMonitor.check()` returns a `HealthStatus` and logs a warning when paused
or without publishing for over 30 seconds; `FailedPublisher` raises `PublisherUnavailableError`
on every `publish` and `close`.

## What this package does not do

It does not open broker connections, reconnect, run a consumer or publisher loop, or relay stored
outbox messages to the broker: `Relayer` is only an abstract interface, and channels, transaction
clients and handlers are supplied by the caller. It has no command-line interface.

## Tests

```
pip install "thunderbus[test]"
pytest
```