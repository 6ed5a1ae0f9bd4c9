"""Custom exceptions for the swordsman package."""


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class TransportError(WatcherError):
    """A daemon command was rejected or the connection failed."""
    pass


class TransportClosedError(TransportError):
    """Command issued on a transport handle that has been torn down."""
    pass


class CapabilityError(WatcherError):
    """The daemon does not support a required capability."""
    pass


class MetadataLookupError(WatcherError):
    """Reading file metadata failed for a reason other than a missing file."""
    pass


class WatcherClosedError(WatcherError):
    """Watcher has been closed and cannot be started again."""
    pass


class WatcherAlreadyStartedError(WatcherError):
    """Watcher has already been started."""
    pass
