"""Tests for transport module."""

import pytest

from src.swordsman.exceptions import TransportClosedError, TransportError
from src.swordsman.models import SubscriptionEvent, TransportEvent
from src.swordsman.transport import Transport, TransportHandle

from conftest import FakeTransport


class TestTransport:
    """Tests for the Transport base class."""

    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            Transport()

    def test_notify_without_bind_is_noop(self):
        transport = FakeTransport()
        transport.drop()
        transport.fail(TransportError("boom"))
        transport.push("sub", [])


class TestTransportHandle:
    """Tests for TransportHandle class."""

    def test_create_handle(self):
        handle = TransportHandle("default", FakeTransport())
        assert handle.key == "default"
        assert handle.subscription_count == 0
        assert handle.closed is False
        assert handle.listener_count() == 0

    def test_command_delegates(self):
        transport = FakeTransport()
        handle = TransportHandle("default", transport)

        response = handle.command("watch-project", "/tmp/x")

        assert response == {"watch": "/tmp/x"}
        assert transport.commands == [("watch-project", "/tmp/x")]

    def test_command_error_propagates(self):
        transport = FakeTransport()
        transport.failures["clock"] = TransportError("unable to resolve root")
        handle = TransportHandle("default", transport)

        with pytest.raises(TransportError, match="unable to resolve root"):
            handle.command("clock", "/tmp/x")

    def test_command_after_close_raises(self):
        transport = FakeTransport()
        handle = TransportHandle("default", transport)

        handle.close()

        assert handle.closed is True
        assert transport.closed is True
        with pytest.raises(TransportClosedError):
            handle.command("clock", "/tmp/x")
        with pytest.raises(TransportClosedError):
            handle.capability_check(["relative_root"])
        assert transport.commands == []

    def test_close_twice(self):
        handle = TransportHandle("default", FakeTransport())
        handle.close()
        handle.close()
        assert handle.closed is True

    def test_end_dispatched(self):
        transport = FakeTransport()
        handle = TransportHandle("default", transport)
        calls = []
        handle.on(TransportEvent.END, lambda: calls.append("end"))

        transport.drop()

        assert calls == ["end"]

    def test_error_dispatched(self):
        transport = FakeTransport()
        handle = TransportHandle("default", transport)
        errors = []
        handle.on(TransportEvent.ERROR, errors.append)

        error = TransportError("boom")
        transport.fail(error)

        assert errors == [error]

    def test_subscription_pdu_converted(self):
        transport = FakeTransport()
        handle = TransportHandle("default", transport)
        events = []
        handle.on(TransportEvent.SUBSCRIPTION, events.append)

        transport.push("sub-1", [{"name": "a.txt", "exists": True, "new": True}])

        assert len(events) == 1
        assert isinstance(events[0], SubscriptionEvent)
        assert events[0].subscription == "sub-1"
        assert events[0].files[0].name == "a.txt"

    def test_malformed_pdu_dropped(self):
        transport = FakeTransport()
        handle = TransportHandle("default", transport)
        events = []
        handle.on(TransportEvent.SUBSCRIPTION, events.append)

        transport._notify_subscription({"files": []})

        assert events == []

    def test_listeners_called_in_order(self):
        handle = TransportHandle("default", FakeTransport())
        calls = []
        handle.on(TransportEvent.END, lambda: calls.append(1))
        handle.on(TransportEvent.END, lambda: calls.append(2))

        handle.emit(TransportEvent.END)

        assert calls == [1, 2]

    def test_failing_listener_does_not_stop_dispatch(self):
        handle = TransportHandle("default", FakeTransport())
        calls = []

        def broken():
            raise RuntimeError("listener bug")

        handle.on(TransportEvent.END, broken)
        handle.on(TransportEvent.END, lambda: calls.append("second"))

        handle.emit(TransportEvent.END)

        assert calls == ["second"]

    def test_remove_listener(self):
        handle = TransportHandle("default", FakeTransport())
        calls = []
        callback = lambda: calls.append("end")  # noqa: E731
        handle.on(TransportEvent.END, callback)

        assert handle.remove_listener(TransportEvent.END, callback) is True
        assert handle.remove_listener(TransportEvent.END, callback) is False
        handle.emit(TransportEvent.END)

        assert calls == []

    def test_remove_all_listeners(self):
        handle = TransportHandle("default", FakeTransport())
        handle.on(TransportEvent.END, lambda: None)
        handle.on(TransportEvent.ERROR, lambda e: None)
        handle.on(TransportEvent.SUBSCRIPTION, lambda e: None)
        assert handle.listener_count() == 3
        assert handle.listener_count(TransportEvent.ERROR) == 1

        handle.remove_all_listeners()

        assert handle.listener_count() == 0
