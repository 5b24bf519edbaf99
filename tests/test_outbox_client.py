import pytest

from thunderbus.outbox_client import (
    MethodNotFoundError,
    NilClientError,
    validate_message_client,
    wrap_message_client,
    wrap_message_creator,
)


class FakeCreate:
    def __init__(self, fail=None):
        self.topic = None
        self.payload = None
        self.headers = None
        self.executed = False
        self.fail = fail

    def set_topic(self, topic):
        self.topic = topic
        return self

    def set_payload(self, payload):
        self.payload = payload
        return self

    def set_headers(self, headers):
        self.headers = headers
        return self

    def execute(self):
        if self.fail is not None:
            raise self.fail
        self.executed = True


class FakeBulk:
    def __init__(self, creates):
        self.creates = creates

    def execute(self):
        for create in self.creates:
            create.execute()


class FakeClient:
    def __init__(self):
        self.bulk_args = None

    def create(self):
        return FakeCreate()

    def create_bulk(self, *creates):
        self.bulk_args = creates
        return FakeBulk(list(creates))


@pytest.mark.parametrize("missing", ["set_topic", "set_payload", "set_headers", "execute"])
def test_wrap_creator_missing_method(missing):
    namespace = {
        name: (lambda self, *a: self)
        for name in ["set_topic", "set_payload", "set_headers", "execute"]
        if name != missing
    }
    partial = type("Partial", (), namespace)()
    with pytest.raises(MethodNotFoundError) as info:
        wrap_message_creator(partial)
    assert info.value.method == missing


def test_creator_wrapper_forwards_and_chains():
    create = FakeCreate()
    wrapper = wrap_message_creator(create)
    result = wrapper.set_topic("orders").set_payload(b"x").set_headers({"a": "b"})
    assert result is wrapper
    assert (create.topic, create.payload, create.headers) == ("orders", b"x", {"a": "b"})
    wrapper.execute()
    assert create.executed is True


def test_unwrap_returns_original():
    create = FakeCreate()
    assert wrap_message_creator(create).unwrap() is create


def test_execute_propagates_errors():
    wrapper = wrap_message_creator(FakeCreate(fail=RuntimeError("boom")))
    with pytest.raises(RuntimeError, match="boom"):
        wrapper.execute()


def test_validate_none_client():
    with pytest.raises(NilClientError):
        validate_message_client(None)


def test_validate_client_missing_bulk():
    class OnlyCreate:
        def create(self):
            return FakeCreate()

    with pytest.raises(MethodNotFoundError) as info:
        wrap_message_client(OnlyCreate())
    assert info.value.method == "create_bulk"


def test_client_create_returns_working_creator():
    wrapper = wrap_message_client(FakeClient())
    creator = wrapper.create()
    creator.set_topic("orders").set_payload(b"x")
    created = creator.unwrap()
    assert (created.topic, created.payload) == ("orders", b"x")
    creator.execute()
    assert created.executed is True


def test_create_bulk_passes_unwrapped_creators():
    client = FakeClient()
    wrapper = wrap_message_client(client)
    first, second = wrapper.create(), wrapper.create()
    bulk = wrapper.create_bulk(first, second)
    assert client.bulk_args == (first.unwrap(), second.unwrap())
    bulk.execute()
    assert first.unwrap().executed and second.unwrap().executed


def test_create_bulk_result_without_execute():
    class BadClient(FakeClient):
        def create_bulk(self, *creates):
            return object()

    wrapper = wrap_message_client(BadClient())
    with pytest.raises(MethodNotFoundError) as info:
        wrapper.create_bulk(wrapper.create())
    assert info.value.method == "execute"