"""Transport over a pywatchman client connection."""

import logging
import threading
from typing import Any, Dict, List, Optional, Set

import pywatchman

from .exceptions import CapabilityError, TransportClosedError, TransportError
from .transport import Transport

logger = logging.getLogger(__name__)


class WatchmanTransport(Transport):
    """
    Transport talking to the Watchman daemon through pywatchman.

    Connects lazily on the first command. A background reader polls
    the socket for unilateral PDUs and forwards subscription data.
    When the connection breaks, whether the reader or a command notices
    it first, END is reported once and the next command opens a new
    connection.
    """

    def __init__(
        self,
        binary_path: Optional[str] = None,
        sockpath: Optional[str] = None,
        timeout: float = 10.0,
        poll_interval: float = 0.2,
    ):
        """
        Initialize the transport without connecting.

        Args:
            binary_path: Path to the watchman binary, None for the one on PATH
            sockpath: Explicit socket path, skips asking the binary for it
            timeout: Seconds to wait for a command response
            poll_interval: Seconds the reader waits for unilateral PDUs per poll
        """
        super().__init__()
        self.binary_path = binary_path
        self.sockpath = sockpath
        self.timeout = timeout
        self.poll_interval = poll_interval

        self._client: Optional[pywatchman.client] = None
        self._reader: Optional[threading.Thread] = None
        self._reader_client: Optional[pywatchman.client] = None
        self._subscriptions: Set[str] = set()
        self._closed = False
        self._lock = threading.RLock()

    def command(self, *args: Any) -> Dict[str, Any]:
        with self._lock:
            if self._closed:
                raise TransportClosedError("Watchman transport is closed")

            client = self._connect()
            try:
                response = client.query(*args)
            except pywatchman.CommandError as e:
                raise TransportError(f"watchman {args[0]} failed: {e}") from e
            except pywatchman.WatchmanError as e:
                self._drop_connection(client)
                broken = e
            else:
                if args[0] == "subscribe":
                    self._subscriptions.add(args[2])
                elif args[0] == "unsubscribe":
                    self._subscriptions.discard(args[2])

                self._start_reader(client)
                return response

        self._connection_broke(broken)
        raise TransportError(f"watchman {args[0]} failed: {broken}") from broken

    def capability_check(self, required: List[str]) -> Dict[str, Any]:
        with self._lock:
            if self._closed:
                raise TransportClosedError("Watchman transport is closed")

            client = self._connect()
            try:
                response = client.capabilityCheck(required=required)
            except pywatchman.CommandError as e:
                raise CapabilityError(f"watchman lacks required capabilities {required}: {e}") from e
            except pywatchman.WatchmanError as e:
                self._drop_connection(client)
                broken = e
            else:
                self._start_reader(client)
                return response

        self._connection_broke(broken)
        raise TransportError(f"watchman capability check failed: {broken}") from broken

    def close(self) -> None:
        with self._lock:
            self._closed = True
            reader = self._reader
            if self._client is not None:
                self._drop_connection(self._client)

        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=self.poll_interval * 5)

    def _connect(self) -> "pywatchman.client":
        if self._client is None:
            kwargs: Dict[str, Any] = {"timeout": self.timeout}
            if self.binary_path:
                kwargs["binpath"] = self.binary_path
            if self.sockpath:
                kwargs["sockpath"] = self.sockpath
            self._client = pywatchman.client(**kwargs)
            logger.debug(f"Opened watchman client (binary={self.binary_path or 'watchman'})")
        return self._client

    def _drop_connection(self, client: "pywatchman.client") -> None:
        if self._client is client:
            self._client = None
            self._subscriptions.clear()
        try:
            client.close()
        except pywatchman.WatchmanError as e:
            logger.debug(f"Error while closing watchman client: {e}")

    def _connection_broke(self, error: Exception) -> None:
        # Called without the lock held; END listeners resubscribe through command()
        logger.warning(f"Watchman connection broke: {error}")
        self._notify_end()

    def _start_reader(self, client: "pywatchman.client") -> None:
        if self._reader_client is client and self._reader is not None and self._reader.is_alive():
            return
        self._reader_client = client
        self._reader = threading.Thread(
            target=self._reader_loop,
            args=(client,),
            name="WatchmanReader",
            daemon=True,
        )
        self._reader.start()

    def _reader_loop(self, client: "pywatchman.client") -> None:
        """Poll for unilateral PDUs until the client is dropped or breaks."""
        logger.debug("Watchman reader started")

        while True:
            broken: Optional[Exception] = None
            errors: List[Exception] = []

            with self._lock:
                if self._client is not client:
                    break

                try:
                    client.setTimeout(self.poll_interval)
                    client.receive()
                except pywatchman.SocketTimeout:
                    pass
                except pywatchman.CommandError as e:
                    errors.append(TransportError(f"watchman error: {e}"))
                except pywatchman.WatchmanError as e:
                    broken = e
                finally:
                    if broken is None:
                        client.setTimeout(self.timeout)

                pdus = self._drain(client)
                if broken is not None:
                    self._drop_connection(client)

            for pdu in pdus:
                self._notify_subscription(pdu)
            for error in errors:
                self._notify_error(error)
            if broken is not None:
                self._connection_broke(broken)
                break

        logger.debug("Watchman reader stopped")

    def _drain(self, client: "pywatchman.client") -> List[Dict[str, Any]]:
        pdus: List[Dict[str, Any]] = []
        for name in list(self._subscriptions):
            buffered = client.getSubscription(name)
            if buffered:
                pdus.extend(buffered)
        return pdus
