"""Data models for the swordsman package."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class WatcherEvent(Enum):
    """Events emitted by a Watcher to its consumers."""
    READY = "ready"
    ERROR = "error"
    ALL = "all"
    ADD = "add"
    CHANGE = "change"
    DELETE = "delete"


class WatcherState(Enum):
    """Lifecycle states of a Watcher."""
    INITIALIZING = "initializing"
    READY = "ready"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class TransportEvent(Enum):
    """Event channels exposed by a transport handle."""
    END = "end"
    ERROR = "error"
    SUBSCRIPTION = "subscription"


@dataclass(frozen=True)
class FileChange:
    """
    A single file record from a daemon subscription notification.

    Attributes:
        name: Path of the file relative to the subscription's relative root
        exists: False when the file has been deleted
        new: True when the daemon observed the file for the first time
        fields: Remaining metadata fields as reported by the daemon
    """
    name: str
    exists: bool = True
    new: bool = False
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Union[str, Dict[str, Any]]) -> "FileChange":
        """Create from a daemon file record.

        The daemon reports bare names when the query only asks for the
        ``name`` field.
        """
        if isinstance(data, str):
            return cls(name=data)

        return cls(
            name=data["name"],
            exists=bool(data.get("exists", True)),
            new=bool(data.get("new", False)),
            fields={k: v for k, v in data.items() if k not in ("name", "exists", "new")},
        )


@dataclass(frozen=True)
class SubscriptionEvent:
    """
    A notification delivered for one named subscription.

    Attributes:
        subscription: Name of the subscription the notification belongs to
        root: Watch root reported by the daemon
        clock: Clock value as of this notification
        files: Changed files, empty for state notifications
        is_fresh_instance: True when the file list is a full listing rather than a delta
        canceled: True when the daemon cancelled the subscription
    """
    subscription: str
    root: Optional[str] = None
    clock: Optional[str] = None
    files: List[FileChange] = field(default_factory=list)
    is_fresh_instance: bool = False
    canceled: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubscriptionEvent":
        """Create from a daemon subscription PDU."""
        files = data.get("files")
        return cls(
            subscription=data["subscription"],
            root=data.get("root"),
            clock=data.get("clock"),
            files=[FileChange.from_dict(f) for f in files] if isinstance(files, list) else [],
            is_fresh_instance=bool(data.get("is_fresh_instance", False)),
            canceled=bool(data.get("canceled", False)),
        )
