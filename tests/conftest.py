"""
Pytest configuration and shared fixtures.
"""

import json
import queue
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from kazoo.exceptions import NodeExistsError, NoNodeError


def member_payload(host: str, port: int, status: str = "ALIVE", shard: int = 0, **ports) -> bytes:
    """Build a JSON member payload as a registering process would."""
    return json.dumps({
        "serviceEndpoint": {"host": host, "port": port},
        "additionalEndpoints": {
            name: {"host": host, "port": p} for name, p in ports.items()
        },
        "status": status,
        "shard": shard,
    }).encode("utf-8")


class FakeSession:
    """
    In-memory stand-in for serverset.ensemble.connection.Session.

    Nodes are stored as a flat path -> bytes mapping; children are derived
    from path prefixes. Errors can be injected per operation and per path.
    """

    def __init__(self, nodes: Optional[Dict[str, bytes]] = None):
        self.nodes: Dict[str, bytes] = {"/": b""}
        for path, data in (nodes or {}).items():
            self.add(path, data)
        self.events: queue.Queue = queue.Queue()
        self.watch_streams: List[queue.Queue] = []
        self.get_calls: List[str] = []
        self.get_errors: Dict[str, Exception] = {}
        self.children_error: Optional[Exception] = None
        self.exists_error: Optional[Exception] = None
        self.created_during_exists: Optional[str] = None
        self.closed = False

    def add(self, path: str, data: bytes = b"") -> None:
        """Add a node, creating missing parents with empty content."""
        parts = path.strip("/").split("/")
        for i in range(1, len(parts)):
            self.nodes.setdefault("/" + "/".join(parts[:i]), b"")
        self.nodes[path] = data

    def remove(self, path: str) -> None:
        del self.nodes[path]

    def _parent(self, path: str) -> str:
        parent = path.rsplit("/", 1)[0]
        return parent or "/"

    def _new_stream(self) -> queue.Queue:
        stream: queue.Queue = queue.Queue()
        self.watch_streams.append(stream)
        return stream

    def children(self, path: str) -> List[str]:
        if self.children_error is not None:
            raise self.children_error
        if path not in self.nodes:
            raise NoNodeError()
        return [
            p.rsplit("/", 1)[1]
            for p in self.nodes
            if p != "/" and p != path and self._parent(p) == path
        ]

    def children_watch(self, path: str):
        children = self.children(path)
        return children, self._new_stream()

    def exists_watch(self, path: str):
        if self.exists_error is not None:
            raise self.exists_error
        if self.created_during_exists is not None:
            self.add(self.created_during_exists)
        return path in self.nodes, self._new_stream()

    def get(self, path: str) -> bytes:
        self.get_calls.append(path)
        if path in self.get_errors:
            raise self.get_errors[path]
        if path not in self.nodes:
            raise NoNodeError()
        return self.nodes[path]

    def set(self, path: str, data: bytes) -> None:
        if path not in self.nodes:
            raise NoNodeError()
        self.nodes[path] = data

    def create(self, path: str, data: bytes, acl=None) -> None:
        if self._parent(path) not in self.nodes:
            raise NoNodeError()
        if path in self.nodes:
            raise NodeExistsError()
        self.nodes[path] = data

    def close(self) -> None:
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_session():
    """An empty in-memory session."""
    return FakeSession()


@pytest.fixture
def serverset_session():
    """A session holding a two-member serverset at /services/web."""
    return FakeSession({
        "/services/web/member_0000000001": member_payload("10.0.0.1", 9090, http=8080),
        "/services/web/member_0000000002": member_payload("10.0.0.2", 9091, http=8081),
    })
