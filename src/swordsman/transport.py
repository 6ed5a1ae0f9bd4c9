"""Transport abstraction and the shared handle wrapped around it."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .exceptions import TransportClosedError
from .models import SubscriptionEvent, TransportEvent

logger = logging.getLogger(__name__)


class Transport(ABC):
    """
    Abstract base class for a connection to the file-watching daemon.

    Concrete transports issue commands synchronously and report
    unilateral daemon events through the callbacks given to bind().
    """

    def __init__(self):
        self._on_end: Optional[Callable[[], None]] = None
        self._on_error: Optional[Callable[[Exception], None]] = None
        self._on_subscription: Optional[Callable[[Dict[str, Any]], None]] = None

    def bind(
        self,
        on_end: Callable[[], None],
        on_error: Callable[[Exception], None],
        on_subscription: Callable[[Dict[str, Any]], None],
    ) -> None:
        """
        Register the callbacks that receive daemon events.

        Args:
            on_end: Called when the daemon drops the connection
            on_error: Called with transport-level errors
            on_subscription: Called with raw subscription PDUs
        """
        self._on_end = on_end
        self._on_error = on_error
        self._on_subscription = on_subscription

    def _notify_end(self) -> None:
        if self._on_end:
            self._on_end()

    def _notify_error(self, error: Exception) -> None:
        if self._on_error:
            self._on_error(error)

    def _notify_subscription(self, pdu: Dict[str, Any]) -> None:
        if self._on_subscription:
            self._on_subscription(pdu)

    @abstractmethod
    def command(self, *args: Any) -> Dict[str, Any]:
        """
        Send a command to the daemon and wait for its response.

        Args:
            args: Command name followed by its arguments

        Returns:
            The decoded response

        Raises:
            TransportError: If the daemon rejects the command
        """
        pass

    @abstractmethod
    def capability_check(self, required: List[str]) -> Dict[str, Any]:
        """
        Ask the daemon to confirm it supports the given capabilities.

        Raises:
            CapabilityError: If a required capability is missing
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Tear down the connection and release its resources."""
        pass


class TransportHandle:
    """
    Shared handle to one transport, owned by a ClientRegistry.

    Fans daemon events out to listeners and tracks how many active
    subscriptions use the transport.
    """

    def __init__(self, key: str, transport: Transport):
        """
        Initialize the handle and bind it to the transport's events.

        Args:
            key: Registry key this handle is stored under
            transport: The underlying transport
        """
        self.key = key
        self.transport = transport
        self.subscription_count = 0
        self.closed = False
        self._listeners: Dict[TransportEvent, List[Callable]] = {
            channel: [] for channel in TransportEvent
        }
        self._lock = threading.Lock()

        transport.bind(self._handle_end, self._handle_error, self._handle_subscription)

    def command(self, *args: Any) -> Dict[str, Any]:
        """
        Issue a command through the transport.

        Raises:
            TransportClosedError: If the handle has been torn down
            TransportError: If the daemon rejects the command
        """
        if self.closed:
            raise TransportClosedError(f"Transport '{self.key}' is closed")
        logger.debug(f"[{self.key}] command: {args[0] if args else None}")
        return self.transport.command(*args)

    def capability_check(self, required: List[str]) -> Dict[str, Any]:
        """Run a capability check through the transport."""
        if self.closed:
            raise TransportClosedError(f"Transport '{self.key}' is closed")
        return self.transport.capability_check(required)

    def on(self, channel: TransportEvent, callback: Callable) -> None:
        """Register a listener on an event channel."""
        with self._lock:
            self._listeners[channel].append(callback)

    def remove_listener(self, channel: TransportEvent, callback: Callable) -> bool:
        """
        Unregister a listener.

        Returns:
            True if the listener was registered
        """
        with self._lock:
            try:
                self._listeners[channel].remove(callback)
                return True
            except ValueError:
                return False

    def remove_all_listeners(self) -> None:
        """Unregister every listener on every channel."""
        with self._lock:
            for listeners in self._listeners.values():
                listeners.clear()

    def listener_count(self, channel: Optional[TransportEvent] = None) -> int:
        """Number of listeners on a channel, or on all channels."""
        with self._lock:
            if channel is not None:
                return len(self._listeners[channel])
            return sum(len(listeners) for listeners in self._listeners.values())

    def emit(self, channel: TransportEvent, *args: Any) -> None:
        """Deliver an event to every listener of a channel, in registration order."""
        with self._lock:
            listeners = list(self._listeners[channel])

        for callback in listeners:
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"[{self.key}] {channel.value} listener failed: {e}")

    def close(self) -> None:
        """Close the transport; later commands raise TransportClosedError."""
        if self.closed:
            return
        self.closed = True
        self.transport.close()

    def _handle_end(self) -> None:
        logger.warning(f"[{self.key}] connection to daemon ended")
        self.emit(TransportEvent.END)

    def _handle_error(self, error: Exception) -> None:
        self.emit(TransportEvent.ERROR, error)

    def _handle_subscription(self, pdu: Dict[str, Any]) -> None:
        try:
            event = SubscriptionEvent.from_dict(pdu)
        except (KeyError, TypeError) as e:
            logger.error(f"[{self.key}] malformed subscription PDU: {e}")
            return
        self.emit(TransportEvent.SUBSCRIPTION, event)
