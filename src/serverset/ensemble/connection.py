"""
Ensemble Connector

Establishes a ZooKeeper session through kazoo and exposes the small
surface the serverset commands need: children/get/set/create, one-shot
children and existence watches, and a persistent stream of session
lifecycle events.

kazoo delivers state changes and watch notifications on its own worker
thread. Both are pushed onto ``queue.Queue`` instances so that callers
consume them from the main thread.
"""

import logging
import queue
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from kazoo.client import KazooClient, KazooState
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.protocol.states import EventType, WatchedEvent
from kazoo.security import OPEN_ACL_UNSAFE

from serverset.config import DEFAULT_SESSION_TIMEOUT
from serverset.errors import EnsembleError

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Lifecycle state reported on the session event stream."""

    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    EXPIRED = "expired"


class WatchEventKind(Enum):
    """Kind of a fired one-shot watch."""

    SESSION = "session"
    CREATED = "created"
    DELETED = "deleted"
    CHILDREN_CHANGED = "children_changed"
    DATA_CHANGED = "data_changed"
    NOT_WATCHING = "not_watching"


@dataclass(frozen=True)
class SessionEvent:
    """A session lifecycle notification."""

    state: SessionState
    error: Optional[str] = None


@dataclass(frozen=True)
class WatchEvent:
    """A one-shot watch notification."""

    kind: WatchEventKind
    path: Optional[str] = None


_KAZOO_STATES = {
    KazooState.CONNECTED: SessionState.CONNECTED,
    KazooState.SUSPENDED: SessionState.RECONNECTING,
    KazooState.LOST: SessionState.EXPIRED,
}

_KAZOO_EVENT_TYPES = {
    EventType.NONE: WatchEventKind.SESSION,
    EventType.CREATED: WatchEventKind.CREATED,
    EventType.DELETED: WatchEventKind.DELETED,
    EventType.CHILD: WatchEventKind.CHILDREN_CHANGED,
    EventType.CHANGED: WatchEventKind.DATA_CHANGED,
}


def translate_watch_event(event: WatchedEvent) -> WatchEvent:
    """Convert a kazoo watch notification into a WatchEvent."""
    kind = _KAZOO_EVENT_TYPES.get(event.type, WatchEventKind.NOT_WATCHING)
    return WatchEvent(kind=kind, path=event.path)


class Session:
    """
    A live ZooKeeper session owned by one command invocation.

    Attributes:
        events: Persistent stream of SessionEvent, fed for the life of
            the session. Callers that block must keep draining it so an
            expiry is never missed.
    """

    def __init__(self, client: KazooClient):
        self._client = client
        self.events: "queue.Queue[SessionEvent]" = queue.Queue()
        self._client.add_listener(self._on_state_change)

    def _on_state_change(self, state: str) -> None:
        # Runs on the kazoo event thread; must not block.
        session_state = _KAZOO_STATES.get(state)
        if session_state is None:
            logger.debug(f"Ignoring unknown session state {state}")
            return
        self.events.put(SessionEvent(state=session_state))

    def _one_shot(self) -> Tuple["queue.Queue[WatchEvent]", Callable[[WatchedEvent], None]]:
        stream: "queue.Queue[WatchEvent]" = queue.Queue()

        def fire(event: WatchedEvent) -> None:
            stream.put(translate_watch_event(event))

        return stream, fire

    def children(self, path: str) -> List[str]:
        """List child names. Raises NoNodeError if ``path`` is absent."""
        return self._client.get_children(path)

    def children_watch(self, path: str) -> Tuple[List[str], "queue.Queue[WatchEvent]"]:
        """
        List child names and arm a one-shot children watch.

        The watch is registered by the same request, so it is armed
        before this call returns.

        Raises:
            NoNodeError: If ``path`` does not exist (no watch is left armed)
        """
        stream, fire = self._one_shot()
        children = self._client.get_children(path, watch=fire)
        return children, stream

    def exists_watch(self, path: str) -> Tuple[bool, "queue.Queue[WatchEvent]"]:
        """Check existence of ``path`` and arm a one-shot existence watch."""
        stream, fire = self._one_shot()
        stat = self._client.exists(path, watch=fire)
        return stat is not None, stream

    def get(self, path: str) -> bytes:
        """Fetch node content. Raises NoNodeError if ``path`` is absent."""
        data, _ = self._client.get(path)
        return data

    def set(self, path: str, data: bytes) -> None:
        """Overwrite node content at any version."""
        self._client.set(path, data)

    def create(self, path: str, data: bytes, acl: Optional[Sequence] = None) -> None:
        """Create a persistent node with the world-open ACL by default."""
        self._client.create(path, data, acl=list(acl or OPEN_ACL_UNSAFE))

    def close(self) -> None:
        """Stop the session and release the connection."""
        self._client.remove_listener(self._on_state_change)
        try:
            self._client.stop()
        finally:
            self._client.close()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def connect(
    hosts: Sequence[str],
    session_timeout: float = DEFAULT_SESSION_TIMEOUT,
    connect_timeout: Optional[float] = None,
) -> Session:
    """
    Establish a session against the ensemble.

    There is no retry at this layer: if the first connect attempt does
    not succeed within ``connect_timeout`` the caller gets EnsembleError.

    Args:
        hosts: Trimmed host:port entries
        session_timeout: ZooKeeper session timeout in seconds
        connect_timeout: Seconds to wait for the first connect
            (defaults to ``session_timeout``)

    Returns:
        A connected Session
    """
    if not hosts:
        raise EnsembleError("No ensemble members given")

    ensemble = ",".join(hosts)
    client = KazooClient(hosts=ensemble, timeout=session_timeout)
    session = Session(client)

    try:
        client.start(timeout=connect_timeout or session_timeout)
    except KazooTimeoutError as e:
        raise EnsembleError(f"Failed to connect to ensemble {ensemble}: {e}") from e

    logger.info(f"Connected to ensemble {ensemble}")
    return session
