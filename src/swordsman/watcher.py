"""Reconnecting watcher that turns daemon notifications into file events."""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .config import WatcherConfig
from .exceptions import (
    MetadataLookupError,
    TransportError,
    WatcherAlreadyStartedError,
    WatcherClosedError,
)
from .models import (
    FileChange,
    SubscriptionEvent,
    TransportEvent,
    WatcherEvent,
    WatcherState,
)
from .registry import ClientRegistry, get_default_registry
from .subscription import Subscription
from .transport import TransportHandle

logger = logging.getLogger(__name__)


class Watcher:
    """
    Watches a directory and notifies file additions, changes and deletions.

    The watcher owns one live subscription at a time. When the daemon
    drops the connection it transparently subscribes again with a new
    subscription name, starting from a fresh clock.

    Files are reported as ADD when the daemon flags them as new. When
    the daemon recrawls and sends a fresh-instance listing, files it
    already knew are reported as CHANGE. The existing-files report
    counts every listed file as new.

    Events are delivered to listeners registered with on():
        READY()                  initialization completed
        ERROR(message)           any error, never raised to the caller
        ADD(path, stats)         file observed for the first time
        CHANGE(path, stats)      existing file changed
        DELETE(path)             file removed
        ALL(path[, stats])       every ADD, CHANGE and DELETE
    """

    def __init__(
        self,
        path: Union[str, Path],
        query: Optional[Dict[str, Any]] = None,
        config: Optional[WatcherConfig] = None,
        registry: Optional[ClientRegistry] = None,
        lookup: Optional[Callable[[Path], os.stat_result]] = None,
    ):
        """
        Initialize the watcher. Call start() to begin watching.

        Args:
            path: Path of the watched directory
            query: Watchman query fields used to filter the watched files
            config: Watcher configuration
            registry: Registry to share transports through (process-wide by default)
            lookup: Metadata lookup for changed files (os.lstat by default)
        """
        self.path = Path(path)
        self.query = query
        self.config = config or WatcherConfig()
        self.state = WatcherState.INITIALIZING
        self.subscription: Optional[Subscription] = None

        self._registry = registry or get_default_registry()
        self._lookup = lookup or os.lstat
        self._handle: Optional[TransportHandle] = None
        self._transport_listeners: List[Tuple[TransportEvent, Callable]] = []

        self._listeners: Dict[WatcherEvent, List[Callable]] = {event: [] for event in WatcherEvent}
        self._lock = threading.Lock()
        self._handshake_lock = threading.RLock()
        self._ready = threading.Event()
        self._init_done = threading.Event()
        self._started = False
        self._reconnecting = False
        self._thread: Optional[threading.Thread] = None

        self._executor: Optional[ThreadPoolExecutor] = None
        if self.config.stat_workers > 0:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.stat_workers,
                thread_name_prefix="WatcherLookup",
            )

    def on(self, event: WatcherEvent, callback: Callable) -> None:
        """Register a listener for an event."""
        with self._lock:
            self._listeners[event].append(callback)

    def once(self, event: WatcherEvent, callback: Callable) -> None:
        """Register a listener that is removed after its first call."""
        def wrapper(*args):
            if self.remove_listener(event, wrapper):
                callback(*args)
        self.on(event, wrapper)

    def remove_listener(self, event: WatcherEvent, callback: Callable) -> bool:
        """
        Unregister a listener.

        Returns:
            True if the listener was registered
        """
        with self._lock:
            try:
                self._listeners[event].remove(callback)
                return True
            except ValueError:
                return False

    def start(self) -> None:
        """
        Start watching in the background.

        READY is emitted once the subscription is established, ERROR if
        initialization fails.

        Raises:
            WatcherClosedError: If the watcher has been closed
            WatcherAlreadyStartedError: If already started
        """
        with self._lock:
            if self.state == WatcherState.CLOSED:
                raise WatcherClosedError(f"Watcher for {self.path} is closed")
            if self._started:
                raise WatcherAlreadyStartedError(f"Watcher for {self.path} is already started")
            self._started = True

        self._thread = threading.Thread(target=self._initiate_watch, name="WatcherInit", daemon=True)
        self._thread.start()

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until initialization finishes.

        Args:
            timeout: Maximum seconds to wait, None to wait forever

        Returns:
            True if the watcher became ready
        """
        self._init_done.wait(timeout)
        return self._ready.is_set()

    @property
    def is_ready(self) -> bool:
        """Check if the watcher is currently receiving events."""
        return self.state == WatcherState.READY

    def close(self) -> bool:
        """
        Close the watcher and unsubscribe from the daemon.

        Errors are reported through the ERROR event.

        Returns:
            True if the watcher closed cleanly
        """
        with self._handshake_lock:
            if self.state == WatcherState.CLOSED:
                return True
            self.state = WatcherState.CLOSED

            subscription = self.subscription
            handle = self._handle
            closed_cleanly = True

            try:
                if subscription is not None and subscription.active:
                    subscription.unsubscribe()
            except Exception as e:
                self._handle_error(e)
                closed_cleanly = False
            finally:
                self._detach_listeners()
                if handle is not None:
                    self._registry.discard_if_unused(handle)
                if self._executor is not None:
                    self._executor.shutdown(wait=False)
                self._init_done.set()

        logger.info(f"Closed watcher for {self.path}")
        return closed_cleanly

    def _initiate_watch(self) -> None:
        """Run the initial handshake; emits READY or ERROR."""
        with self._handshake_lock:
            if self.state == WatcherState.CLOSED:
                self._init_done.set()
                return

            try:
                self._create_subscription()

                # Attach listeners before launching the subscription
                # so that no event is missed
                self._attach_listeners()

                if self.config.check_capabilities:
                    self.subscription.check(self.config.required_capabilities)

                self._launch_subscription()

                if self.config.report_existing_files:
                    self.subscription.run_query()
            except Exception as e:
                self._handle_error(e)
                self._abandon_watch()
                self._init_done.set()
                return

            if self.state == WatcherState.CLOSED:
                self._init_done.set()
                return

            self.state = WatcherState.READY
            self._ready.set()
            self._init_done.set()

        logger.info(f"Watching {self.path} (subscription {self.subscription.name})")
        self._emit(WatcherEvent.READY)

    def _create_subscription(self) -> None:
        self._handle = self._registry.acquire(
            self.config.watchman_binary_path,
            command_timeout=self.config.command_timeout,
            poll_interval=self.config.poll_interval,
        )
        self.subscription = Subscription(self._handle, self._registry, self.path, self.query)

    def _launch_subscription(self) -> None:
        self.subscription.watch()
        self.subscription.subscribe()

    def _attach_listeners(self) -> None:
        self._transport_listeners = [
            (TransportEvent.END, self._on_connection_ended),
            (TransportEvent.ERROR, self._on_transport_error),
            (TransportEvent.SUBSCRIPTION, self._on_subscription_event),
        ]
        for channel, callback in self._transport_listeners:
            self._handle.on(channel, callback)

    def _detach_listeners(self) -> None:
        if self._handle is not None:
            for channel, callback in self._transport_listeners:
                self._handle.remove_listener(channel, callback)
        self._transport_listeners = []

    def _abandon_watch(self) -> None:
        """Give back what a failed initialization acquired."""
        subscription = self.subscription
        if subscription is not None and subscription.active:
            try:
                subscription.unsubscribe()
            except Exception as e:
                logger.warning(f"Could not unsubscribe {subscription.name}: {e}")
        self._detach_listeners()
        if self._handle is not None:
            self._registry.discard_if_unused(self._handle)

    def _on_connection_ended(self) -> None:
        """The daemon ended the connection unilaterally, subscribe again."""
        with self._handshake_lock:
            if self.state == WatcherState.CLOSED or not self._ready.is_set():
                return
            if self._reconnecting:
                # The connection broke again under the running attempt
                return

            if self.subscription is not None:
                self.subscription.discard()
            self.state = WatcherState.RECONNECTING
            logger.warning(f"Connection lost while watching {self.path}, reconnecting")

            self._reconnecting = True
            try:
                self._create_subscription()
                # Listeners stay attached to the shared handle
                self._launch_subscription()
            except Exception as e:
                self._handle_error(e)
                return
            finally:
                self._reconnecting = False

            if self.state == WatcherState.CLOSED:
                return
            self.state = WatcherState.READY

        logger.info(f"Reconnected watcher for {self.path} (subscription {self.subscription.name})")

    def _on_transport_error(self, error: Exception) -> None:
        self._handle_error(error)

    def _on_subscription_event(self, event: SubscriptionEvent) -> None:
        subscription = self.subscription
        if subscription is None or event.subscription != subscription.name:
            return

        if event.canceled:
            subscription.discard()
            self._handle_error(TransportError(f"Subscription for {self.path} was canceled by the daemon"))
            return

        for change in event.files:
            if self._executor is not None and change.exists:
                try:
                    self._executor.submit(self._handle_file_change, subscription, change)
                except RuntimeError:
                    logger.debug(f"Dropped change for {change.name}: watcher is closed")
            else:
                self._handle_file_change(subscription, change)

    def _handle_file_change(self, subscription: Subscription, change: FileChange) -> None:
        """Resolve one file record into a file event."""
        absolute_path = subscription.root / subscription.relative_path / change.name

        if not change.exists:
            self._emit_file_event(WatcherEvent.DELETE, absolute_path)
            return

        try:
            stats = self._lookup(absolute_path)
        except FileNotFoundError:
            # File may have been deleted between the notification and the lookup
            return
        except OSError as e:
            self._handle_error(MetadataLookupError(f"Cannot read metadata of {absolute_path}: {e}"))
            return

        event = WatcherEvent.ADD if change.new else WatcherEvent.CHANGE
        self._emit_file_event(event, absolute_path, stats)

    def _emit_file_event(self, event: WatcherEvent, *args: Any) -> None:
        self._emit(event, *args)
        self._emit(WatcherEvent.ALL, *args)

    def _emit(self, event: WatcherEvent, *args: Any) -> None:
        with self._lock:
            listeners = list(self._listeners[event])

        for callback in listeners:
            try:
                callback(*args)
            except Exception as e:
                logger.error(f"{event.value} listener failed: {e}")

    def _handle_error(self, error: Exception) -> None:
        message = str(error) or error.__class__.__name__
        logger.error(f"Watcher for {self.path}: {message}")
        self._emit(WatcherEvent.ERROR, message)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
