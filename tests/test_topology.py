import pytest

from thunderbus.topology import (
    DEAD_LETTER_MAX_LENGTH,
    DEAD_LETTER_TTL_MS,
    TopologyError,
    bind_queue,
    declare_consumer_topology,
    declare_dead_letter,
    declare_queue,
)


class FakeChannel:
    def __init__(self, fail_on=None, fail_key=None):
        self.calls = []
        self.fail_on = fail_on
        self.fail_key = fail_key

    def _record(self, name, kwargs):
        self.calls.append((name, kwargs))
        if name == self.fail_on and (
            self.fail_key is None or kwargs.get("routing_key") == self.fail_key
        ):
            raise RuntimeError("boom")

    def exchange_declare(self, **kwargs):
        self._record("exchange_declare", kwargs)

    def queue_declare(self, **kwargs):
        self._record("queue_declare", kwargs)

    def queue_bind(self, **kwargs):
        self._record("queue_bind", kwargs)

    def queue_delete(self, **kwargs):
        self._record("queue_delete", kwargs)

    def basic_qos(self, **kwargs):
        self._record("basic_qos", kwargs)


def names(channel):
    return [name for name, _ in channel.calls]


def test_dead_letter_declares_fanout_queue_and_binding():
    channel = FakeChannel()
    declare_dead_letter(channel, "orders_dlx", False)
    assert names(channel) == ["exchange_declare", "queue_declare", "queue_bind"]
    exchange = channel.calls[0][1]
    assert exchange["exchange"] == "orders_dlx"
    assert exchange["exchange_type"] == "fanout"
    assert exchange["durable"] is True
    queue_args = channel.calls[1][1]["arguments"]
    assert queue_args["x-queue-type"] == "quorum"
    assert queue_args["x-message-ttl"] == DEAD_LETTER_TTL_MS
    assert queue_args["x-max-length"] == DEAD_LETTER_MAX_LENGTH
    bind = channel.calls[2][1]
    assert (bind["queue"], bind["exchange"], bind["routing_key"]) == ("orders_dlx", "orders_dlx", "")


def test_dead_letter_deletes_existing_queue_when_asked():
    channel = FakeChannel()
    declare_dead_letter(channel, "orders_dlx", True)
    assert names(channel) == ["exchange_declare", "queue_delete", "queue_declare", "queue_bind"]
    assert channel.calls[1][1]["queue"] == "orders_dlx"


def test_declare_queue_uses_topic_exchange_and_dead_letter_target():
    channel = FakeChannel()
    declare_queue(channel, "events", "orders", "orders_dlx")
    exchange = channel.calls[0][1]
    assert exchange["exchange"] == "events"
    assert exchange["exchange_type"] == "topic"
    queue = channel.calls[1][1]
    assert queue["queue"] == "orders"
    assert queue["arguments"] == {
        "x-queue-type": "quorum",
        "x-dead-letter-exchange": "orders_dlx",
    }


def test_bind_queue_binds_every_routing_key_in_order():
    channel = FakeChannel()
    bind_queue(channel, "orders", "events", ["a.created", "a.deleted"])
    keys = [kwargs["routing_key"] for _, kwargs in channel.calls]
    assert keys == ["a.created", "a.deleted"]
    assert all(kwargs["exchange"] == "events" for _, kwargs in channel.calls)


def test_bind_queue_error_names_the_topic():
    channel = FakeChannel(fail_on="queue_bind", fail_key="b")
    with pytest.raises(TopologyError, match="failed to bind queue, topic: b"):
        bind_queue(channel, "orders", "events", ["a", "b", "c"])
    assert len(channel.calls) == 2


def test_consumer_topology_full_sequence():
    channel = FakeChannel()
    dlx = declare_consumer_topology(channel, "events", "orders", ["x.y"], 10, False)
    assert dlx == "orders_dlx"
    assert names(channel) == [
        "exchange_declare",
        "queue_declare",
        "queue_bind",
        "exchange_declare",
        "queue_declare",
        "queue_bind",
        "basic_qos",
    ]
    assert channel.calls[-1][1]["prefetch_count"] == 10


def test_consumer_topology_wraps_dead_letter_failure():
    channel = FakeChannel(fail_on="exchange_declare")
    with pytest.raises(TopologyError, match="failed to declare dead letter: failed to declare exchange"):
        declare_consumer_topology(channel, "events", "orders", ["x"], 1, False)
    assert len(channel.calls) == 1


def test_consumer_topology_wraps_qos_failure():
    channel = FakeChannel(fail_on="basic_qos")
    with pytest.raises(TopologyError, match="failed to set QoS") as info:
        declare_consumer_topology(channel, "events", "orders", [], 1, False)
    assert isinstance(info.value.__cause__, RuntimeError)