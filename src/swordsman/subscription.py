"""A named Watchman subscription on a shared transport."""

import logging
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import SubscriptionEvent, TransportEvent
from .registry import ClientRegistry
from .transport import TransportHandle

logger = logging.getLogger(__name__)


class Subscription:
    """
    Represents one watch root + filter registration against a transport.

    Attributes:
        requested_root: Path of the watched directory as given by the caller
        root: Watch root resolved by the daemon, None until watch() completes
        relative_path: Path from root to requested_root, empty if they coincide
        name: Unique subscription name used to correlate notifications
        query: Optional filter merged into the subscription query
        clock: Clock value the subscription started from
    """

    def __init__(
        self,
        handle: TransportHandle,
        registry: ClientRegistry,
        path: Union[str, Path],
        query: Optional[Dict[str, Any]] = None,
    ):
        self.requested_root = Path(path)
        self.root: Optional[Path] = None
        self.relative_path = ""
        self.name = str(uuid.uuid4())
        self.query = query
        self.clock: Optional[str] = None
        self.active = False

        self._handle = handle
        self._registry = registry

    @property
    def handle(self) -> TransportHandle:
        """The transport handle this subscription was made through."""
        return self._handle

    def check(self, required: List[str]) -> None:
        """
        Check that the daemon supports the required capabilities.

        Raises:
            CapabilityError: If a capability is missing
        """
        self._handle.capability_check(required)

    def watch(self) -> None:
        """
        Start the watch on the daemon and resolve the watch root.

        Raises:
            TransportError: If the daemon rejects the root
        """
        response = self._handle.command("watch-project", str(self.requested_root))
        self.root = Path(response["watch"])
        self.relative_path = response.get("relative_path") or ""
        logger.debug(f"Watching {self.requested_root} via root {self.root} ({self.relative_path!r})")

    def subscribe(self) -> None:
        """
        Subscribe to changes that happen from now on.

        Fetches the current clock first so the daemon only reports
        changes made after the subscription was established.

        Raises:
            TransportError: If the clock or subscribe command fails
        """
        clock_response = self._handle.command("clock", str(self.root))
        self.clock = clock_response["clock"]

        self._handle.command(
            "subscribe",
            str(self.root),
            self.name,
            self.build_query(self.clock),
        )
        self.active = True
        count = self._registry.subscription_added(self._handle)
        logger.debug(f"Subscribed {self.name} ({count} active on '{self._handle.key}')")

    def run_query(self) -> None:
        """
        Query the files currently matching this subscription.

        The result is delivered on the transport's subscription channel
        as a fresh-instance notification for this subscription, with
        every listed file marked as new.

        Raises:
            TransportError: If the query command fails
        """
        response = self._handle.command("query", str(self.root), self.build_query())
        event = SubscriptionEvent.from_dict({
            "subscription": self.name,
            "root": str(self.root),
            "clock": response.get("clock"),
            "files": response.get("files"),
            "is_fresh_instance": True,
        })
        event = replace(event, files=[replace(f, new=True) for f in event.files])
        self._handle.emit(TransportEvent.SUBSCRIPTION, event)

    def unsubscribe(self) -> None:
        """
        Remove the subscription from the daemon.

        Must be called at most once per subscription.

        Raises:
            TransportError: If the daemon rejects the command
        """
        self._handle.command("unsubscribe", str(self.root), self.name)
        self.active = False
        self._registry.release(self._handle)
        logger.debug(f"Unsubscribed {self.name}")

    def discard(self) -> None:
        """Mark the subscription dead after the daemon dropped the connection."""
        self.active = False

    def build_query(self, clock: Optional[str] = None) -> Dict[str, Any]:
        """
        Build the daemon query for this subscription.

        The caller's filter is merged last and may override the
        generated fields.

        Args:
            clock: Only report changes since this clock, if given

        Returns:
            The query dictionary
        """
        query: Dict[str, Any] = {"relative_root": self.relative_path}
        if clock:
            query["since"] = clock
        if self.query:
            query.update(self.query)
        return query
