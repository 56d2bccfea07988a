"""ZooKeeper session management."""

from serverset.ensemble.connection import (
    Session,
    SessionEvent,
    SessionState,
    WatchEvent,
    WatchEventKind,
    connect,
    translate_watch_event,
)

__all__ = [
    "Session",
    "SessionEvent",
    "SessionState",
    "WatchEvent",
    "WatchEventKind",
    "connect",
    "translate_watch_event",
]
