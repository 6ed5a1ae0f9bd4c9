"""
Swordsman

Reconnecting file-change notifications on top of the Watchman daemon.

Features:
- One shared daemon connection per watchman binary, reference counted
- Clock-based subscriptions that only report changes made after subscribing
- Automatic resubscription when the daemon drops the connection
- File events: ADD, CHANGE, DELETE with lstat metadata
- Optional report of files present when the watch starts

The Watchman transport lives in ``swordsman.watchman_transport`` and
requires the ``watchman`` extra (pywatchman).
"""

from .models import (
    WatcherEvent,
    WatcherState,
    TransportEvent,
    FileChange,
    SubscriptionEvent,
)

from .config import WatcherConfig, DEFAULT_CLIENT_KEY

from .exceptions import (
    WatcherError,
    TransportError,
    TransportClosedError,
    CapabilityError,
    MetadataLookupError,
    WatcherClosedError,
    WatcherAlreadyStartedError,
)

from .transport import Transport, TransportHandle
from .registry import ClientRegistry, get_default_registry
from .subscription import Subscription
from .watcher import Watcher


__all__ = [
    # Models
    "WatcherEvent",
    "WatcherState",
    "TransportEvent",
    "FileChange",
    "SubscriptionEvent",
    # Config
    "WatcherConfig",
    "DEFAULT_CLIENT_KEY",
    # Exceptions
    "WatcherError",
    "TransportError",
    "TransportClosedError",
    "CapabilityError",
    "MetadataLookupError",
    "WatcherClosedError",
    "WatcherAlreadyStartedError",
    # Components
    "Transport",
    "TransportHandle",
    "ClientRegistry",
    "get_default_registry",
    "Subscription",
    # Main watcher
    "Watcher",
]

__version__ = "0.1.0"
