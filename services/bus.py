"""
Message Bus - In-process host for rule contexts
===============================================

This module provides the host the rules engine plugs into:
- Subscribing handlers to message names with a priority
- Synchronous dispatch (lower priority value runs first)
- A fire-and-forget queue drained by a worker thread
- Raw output, error and info channels
"""

import queue
import sys
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from core.exceptions import BusError
from core.logging import get_logger, set_log_context, clear_log_context
from .message import Message

logger = get_logger("services.bus")

Handler = Callable[[Message], Optional[Message]]


@dataclass(order=True)
class Subscription:
    """
    A handler installed for a message name.

    Ordered by priority, then by installation order.
    """
    priority: int
    sequence: int
    name: str = field(compare=False)
    handler: Handler = field(compare=False)


class MessageBus:
    """
    Routes messages to installed handlers.

    Handlers receive the message and return it (or a replacement);
    dispatch stops at the first handler that marks it handled.

    Example:
        bus = MessageBus()
        bus.install("call.route", route_context, 50)

        msg = bus.dispatch(Message("call.route", {"called": "100"}))
        print(msg.handled, msg.result)
    """

    def __init__(self, output: Optional[Callable[[str], None]] = None):
        """
        Initialize the bus.

        Args:
            output: Callable receiving raw output lines (defaults to stdout)
        """
        self.output = output or self._write_stdout
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._sequence = 0
        self._lock = threading.RLock()
        self._queue: "queue.Queue[Message]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._running = threading.Event()

    @staticmethod
    def _write_stdout(text: str) -> None:
        sys.stdout.write(text + "\n")
        sys.stdout.flush()

    # -- subscriptions --

    def install(self, name: str, handler: Handler, priority: int = 100) -> None:
        """
        Subscribe a handler to a message name.

        Args:
            name: Message name
            handler: Callable taking and returning a Message
            priority: Lower values run first

        Raises:
            BusError: If handler is not callable
        """
        if not callable(handler):
            raise BusError("Handler is not callable", {"name": name})

        with self._lock:
            self._sequence += 1
            subs = self._subscriptions.setdefault(name, [])
            subs.append(Subscription(int(priority), self._sequence, name, handler))
            subs.sort()

        logger.debug(f"Installed handler for '{name}' at priority {priority}")

    def uninstall(self, name: str, handler: Optional[Handler] = None) -> int:
        """
        Remove handlers from a message name.

        Args:
            name: Message name
            handler: Only remove this handler (all handlers if omitted)

        Returns:
            Number of handlers removed
        """
        with self._lock:
            subs = self._subscriptions.get(name, [])
            keep = [s for s in subs if handler is not None and s.handler != handler]
            removed = len(subs) - len(keep)
            if keep:
                self._subscriptions[name] = keep
            else:
                self._subscriptions.pop(name, None)

        if removed:
            logger.debug(f"Uninstalled {removed} handler(s) for '{name}'")
        return removed

    def handlers(self, name: str) -> List[Subscription]:
        """Get the subscriptions for a message name, in dispatch order."""
        with self._lock:
            return list(self._subscriptions.get(name, []))

    # -- dispatch --

    def dispatch(self, message: Message) -> Message:
        """
        Deliver a message to its handlers synchronously.

        Args:
            message: Message to deliver

        Returns:
            The (possibly replaced) message after all handlers ran

        Raises:
            BusError: If message is not a Message
        """
        if not isinstance(message, Message):
            raise BusError("Can only dispatch Message objects", {"type": type(message).__name__})

        set_log_context(message=message.name)
        try:
            for sub in self.handlers(message.name):
                result = sub.handler(message)
                if isinstance(result, Message):
                    message = result
                if message.handled:
                    break
        finally:
            clear_log_context()

        return message

    def enqueue(self, message: Message) -> None:
        """
        Queue a message for asynchronous dispatch.

        Raises:
            BusError: If message is not a Message
        """
        if not isinstance(message, Message):
            raise BusError("Can only enqueue Message objects", {"type": type(message).__name__})
        self._queue.put(message)

    def join(self) -> None:
        """Block until every queued message has been dispatched."""
        self._queue.join()

    def pending(self) -> int:
        """Approximate number of queued messages."""
        return self._queue.qsize()

    def process_pending(self, limit: Optional[int] = None) -> List[Message]:
        """
        Dispatch queued messages on the calling thread.

        Messages enqueued while processing are picked up too, up to limit.

        Args:
            limit: Maximum number of messages to process

        Returns:
            The dispatched messages
        """
        processed = []
        while limit is None or len(processed) < limit:
            try:
                message = self._queue.get_nowait()
            except queue.Empty:
                break
            processed.append(self._process(message))
        return processed

    def _process(self, message: Message) -> Message:
        try:
            return self.dispatch(message)
        except Exception as e:
            logger.error(f"Handler failed for '{message.name}': {e}", exc_info=True)
            message.error = str(e)
            return message
        finally:
            self._queue.task_done()

    # -- worker --

    def start(self) -> None:
        """Start the worker thread draining the queue."""
        if self._running.is_set():
            return

        self._running.set()
        self._worker = threading.Thread(
            target=self._run,
            name="message-bus",
            daemon=True
        )
        self._worker.start()
        logger.info("Message bus started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker thread."""
        self._running.clear()
        if self._worker:
            self._worker.join(timeout=timeout)
            self._worker = None
        logger.info("Message bus stopped")

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def _run(self) -> None:
        while self._running.is_set():
            try:
                message = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            self._process(message)

    # -- channels --

    def raw(self, text: str) -> None:
        """Emit a raw output line."""
        logger.debug(f"raw: {text}")
        self.output(text)

    def error(self, *args) -> None:
        """Report an error on the bus error channel."""
        logger.error(" ".join(str(a) for a in args))

    def info(self, *args) -> None:
        """Report a note on the bus info channel."""
        logger.info(" ".join(str(a) for a in args))
