"""Shared fixtures: an in-memory transport standing in for the daemon."""

import itertools
import threading
from typing import Any, Dict, List, Optional

import pytest

from src.swordsman.exceptions import CapabilityError, TransportError
from src.swordsman.registry import ClientRegistry
from src.swordsman.transport import Transport


class FakeTransport(Transport):
    """Transport answering watchman commands from memory."""

    def __init__(
        self,
        binary_path: Optional[str] = None,
        project_root: Optional[str] = None,
        options: Optional[Dict[str, Any]] = None,
    ):
        super().__init__()
        self.binary_path = binary_path
        self.options = options or {}
        self.project_root = project_root
        self.commands: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.capabilities = {"relative_root"}
        self.query_files: List[Dict[str, Any]] = []
        self.closed = False
        self._clocks = itertools.count(1)
        self._lock = threading.Lock()

    def command(self, *args):
        with self._lock:
            self.commands.append(args)
        name = args[0]

        if name in self.failures:
            raise self.failures[name]

        if name == "watch-project":
            path = args[1]
            if self.project_root and path != self.project_root and path.startswith(self.project_root + "/"):
                return {"watch": self.project_root, "relative_path": path[len(self.project_root) + 1:]}
            return {"watch": path}
        if name == "clock":
            return {"clock": f"c:0:{next(self._clocks)}"}
        if name == "subscribe":
            return {"subscribe": args[2], "clock": f"c:0:{next(self._clocks)}"}
        if name == "unsubscribe":
            return {"unsubscribe": args[2], "deleted": True}
        if name == "query":
            return {"clock": f"c:0:{next(self._clocks)}", "files": list(self.query_files)}
        raise TransportError(f"unknown command {name}")

    def capability_check(self, required):
        missing = [c for c in required if c not in self.capabilities]
        if missing:
            raise CapabilityError(f"missing {missing}")
        return {"capabilities": {c: True for c in required}}

    def close(self):
        self.closed = True

    def commands_named(self, name: str) -> List[tuple]:
        with self._lock:
            return [c for c in self.commands if c[0] == name]

    def last_subscription_name(self) -> str:
        return self.commands_named("subscribe")[-1][2]

    def push(self, subscription: str, files: List[Any], **extra) -> None:
        """Deliver a subscription PDU as the daemon would."""
        pdu = {"subscription": subscription, "root": "/", "clock": "c:0:99", "files": files}
        pdu.update(extra)
        self._notify_subscription(pdu)

    def drop(self) -> None:
        """Simulate the daemon ending the connection."""
        self._notify_end()

    def fail(self, error: Exception) -> None:
        self._notify_error(error)


class FakeTransportFactory:
    """Creates FakeTransports and remembers them."""

    def __init__(self, project_root: Optional[str] = None):
        self.project_root = project_root
        self.created: List[FakeTransport] = []

    def __call__(self, binary_path: Optional[str] = None, **options) -> FakeTransport:
        transport = FakeTransport(binary_path, project_root=self.project_root, options=options)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


@pytest.fixture
def transport_factory():
    return FakeTransportFactory()


@pytest.fixture
def registry(transport_factory):
    registry = ClientRegistry(transport_factory)
    yield registry
    registry.close_all()
