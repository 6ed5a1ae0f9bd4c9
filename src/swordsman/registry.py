"""Thread-safe registry sharing one transport per configuration."""

import logging
import threading
from typing import Callable, Dict, Optional

from .config import DEFAULT_COMMAND_TIMEOUT, DEFAULT_POLL_INTERVAL, client_key_for
from .models import TransportEvent
from .transport import Transport, TransportHandle

logger = logging.getLogger(__name__)


TransportFactory = Callable[..., Transport]


def create_watchman_transport(
    binary_path: Optional[str] = None,
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> Transport:
    """Default factory: a Watchman transport for the given binary."""
    from .watchman_transport import WatchmanTransport
    return WatchmanTransport(
        binary_path=binary_path,
        timeout=command_timeout,
        poll_interval=poll_interval,
    )


class ClientRegistry:
    """
    Thread-safe registry of shared transport handles.

    Hands out one TransportHandle per watchman binary path and counts
    the active subscriptions made through it. A handle whose count
    falls to zero is torn down and forgotten, so the next acquire
    for the same key opens a fresh connection.
    """

    def __init__(self, transport_factory: Optional[TransportFactory] = None):
        """
        Initialize the registry.

        Args:
            transport_factory: Creates a transport from a binary path and
                the command_timeout and poll_interval keyword arguments
        """
        self._transport_factory = transport_factory or create_watchman_transport
        self._handles: Dict[str, TransportHandle] = {}
        self._lock = threading.RLock()

    def acquire(
        self,
        binary_path: Optional[str] = None,
        command_timeout: float = DEFAULT_COMMAND_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> TransportHandle:
        """
        Get the shared handle for a binary path, creating it if needed.

        The timeouts only apply when a new transport is created; a live
        handle keeps the ones it was created with.

        Args:
            binary_path: Path to the watchman binary, None for the default
            command_timeout: Seconds the transport waits for a command response
            poll_interval: Seconds the transport waits for unilateral events per poll

        Returns:
            The shared transport handle
        """
        key = client_key_for(binary_path)

        with self._lock:
            handle = self._handles.get(key)
            if handle is not None:
                return handle

            transport = self._transport_factory(
                binary_path,
                command_timeout=command_timeout,
                poll_interval=poll_interval,
            )
            handle = TransportHandle(key, transport)
            # Registered first so the count is reset before any watcher resubscribes
            handle.on(TransportEvent.END, lambda: self._connection_ended(handle))
            self._handles[key] = handle
            logger.info(f"Created transport '{key}'")
            return handle

    def subscription_added(self, handle: TransportHandle) -> int:
        """
        Count a new active subscription on a handle.

        Returns:
            The updated subscription count
        """
        with self._lock:
            handle.subscription_count += 1
            return handle.subscription_count

    def release(self, handle: TransportHandle) -> int:
        """
        Count a retired subscription, tearing the handle down at zero.

        Args:
            handle: The handle the subscription was made through

        Returns:
            The updated subscription count
        """
        with self._lock:
            handle.subscription_count -= 1

            if handle.subscription_count <= 0:
                handle.subscription_count = 0
                self._teardown(handle)

            return handle.subscription_count

    def discard_if_unused(self, handle: TransportHandle) -> bool:
        """
        Tear a handle down if nothing subscribes or listens through it.

        Returns:
            True if the handle was torn down
        """
        with self._lock:
            if handle.closed:
                return False
            if handle.subscription_count > 0 or handle.listener_count(TransportEvent.SUBSCRIPTION) > 0:
                return False
            self._teardown(handle)
            return True

    def get(self, binary_path: Optional[str] = None) -> Optional[TransportHandle]:
        """Get the live handle for a binary path without creating one."""
        with self._lock:
            return self._handles.get(client_key_for(binary_path))

    def close_all(self) -> int:
        """
        Tear down every handle.

        Returns:
            Number of handles torn down
        """
        with self._lock:
            handles = list(self._handles.values())
            for handle in handles:
                self._teardown(handle)
            return len(handles)

    def _teardown(self, handle: TransportHandle) -> None:
        handle.remove_all_listeners()
        try:
            handle.close()
        finally:
            if self._handles.get(handle.key) is handle:
                del self._handles[handle.key]
            logger.info(f"Closed transport '{handle.key}'")

    def _connection_ended(self, handle: TransportHandle) -> None:
        # The daemon forgets every subscription of a dropped connection
        with self._lock:
            handle.subscription_count = 0

    def __len__(self) -> int:
        """Return the number of live handles."""
        with self._lock:
            return len(self._handles)

    def __contains__(self, binary_path: Optional[str]) -> bool:
        """Check whether a live handle exists for a binary path."""
        return self.get(binary_path) is not None


_default_registry: Optional[ClientRegistry] = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> ClientRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            _default_registry = ClientRegistry()
        return _default_registry
