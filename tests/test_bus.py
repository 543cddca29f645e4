"""
Test Message Bus Module
=======================

Unit tests for the message type and the in-process bus.
"""

import pytest
from datetime import datetime
from unittest.mock import MagicMock
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.exceptions import BusError
from services.bus import MessageBus
from services.message import Message


class TestMessage:
    """Tests for Message class."""

    def test_creation(self):
        """Test creating a message."""
        msg = Message("call.route", {"called": "100"})
        assert msg.name == "call.route"
        assert msg.get("called") == "100"
        assert msg.handled is False
        assert msg.returned is False
        assert isinstance(msg.timestamp, datetime)

    def test_missing_field(self):
        """Test the not-found value."""
        msg = Message("test")
        assert msg.get("nope") == ""
        assert msg.get("nope", None) is None

    def test_round_trip(self):
        """Test dictionary serialization."""
        msg = Message("test", {"a": 1})
        msg.handled = True
        msg.result = "ok"
        copy = Message.from_dict(msg.to_dict())
        assert copy.name == "test"
        assert copy.fields == {"a": 1}
        assert copy.result == "ok"
        assert copy.handled is True


class TestMessageBus:
    """Tests for MessageBus class."""

    @pytest.fixture
    def bus(self):
        """Bus collecting raw output in a list."""
        output = []
        bus = MessageBus(output=output.append)
        bus.lines = output
        return bus

    def test_priority_order(self, bus):
        """Test lower priority values run first."""
        seen = []

        def handler(tag):
            def handle(message):
                seen.append(tag)
                return message
            return handle

        bus.install("m", handler("late"), 200)
        bus.install("m", handler("early"), 10)
        bus.install("m", handler("default"))
        bus.dispatch(Message("m"))

        assert seen == ["early", "default", "late"]

    def test_stops_when_handled(self, bus):
        """Test dispatch stops at the first handled result."""
        second = MagicMock()

        def first(message):
            message.handled = True
            return message

        bus.install("m", first, 10)
        bus.install("m", second, 20)
        msg = bus.dispatch(Message("m"))

        assert msg.handled is True
        second.assert_not_called()

    def test_uninstall(self, bus):
        """Test removing one handler or all of them."""
        a, b = MagicMock(), MagicMock()
        bus.install("m", a)
        bus.install("m", b)

        assert bus.uninstall("m", a) == 1
        assert [s.handler for s in bus.handlers("m")] == [b]
        assert bus.uninstall("m") == 1
        assert bus.handlers("m") == []

    def test_invalid_handler(self, bus):
        """Test installing something that is not callable."""
        with pytest.raises(BusError):
            bus.install("m", "not callable")

    def test_invalid_message(self, bus):
        """Test dispatching and enqueueing non-messages."""
        with pytest.raises(BusError):
            bus.dispatch({"name": "m"})
        with pytest.raises(BusError):
            bus.enqueue("m")

    def test_process_pending(self, bus):
        """Test queued messages are dispatched in order."""
        handler = MagicMock(side_effect=lambda message: message)
        bus.install("m", handler)
        bus.enqueue(Message("m", {"n": 1}))
        bus.enqueue(Message("m", {"n": 2}))

        processed = bus.process_pending()

        assert [m.get("n") for m in processed] == [1, 2]
        assert bus.pending() == 0

    def test_failing_handler_in_queue(self, bus):
        """Test a handler error on a queued message is recorded, not raised."""
        bus.install("m", MagicMock(side_effect=RuntimeError("boom")))
        bus.enqueue(Message("m"))

        processed = bus.process_pending()
        assert processed[0].error == "boom"

    def test_worker(self, bus):
        """Test the worker thread drains the queue."""
        handler = MagicMock(side_effect=lambda message: message)
        bus.install("m", handler)
        bus.start()
        try:
            bus.enqueue(Message("m"))
            bus.join()
        finally:
            bus.stop()

        handler.assert_called_once()
        assert bus.is_running is False

    def test_raw(self, bus):
        """Test raw output."""
        bus.raw("hello")
        assert bus.lines == ["hello"]
