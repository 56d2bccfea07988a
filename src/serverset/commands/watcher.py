"""
Serverset Watcher

Blocks until the child list of a serverset changes or the session
becomes unusable. A single one-shot watch is armed per invocation; once
it fires the watcher reaches a terminal state and is not re-armed.

State machine:
    INITIALIZING -> ARMED -> CHANGED | SESSION_LOST
    INITIALIZING -> SATISFIED     (path appeared between list and exists)
    INITIALIZING -> SESSION_LOST  (listing or existence check failed)

While ARMED the watcher waits on two sources at once: the persistent
session event stream and the one-shot watch stream. Two forwarder
threads merge them into one queue, and the first item taken decides.
"""

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from kazoo.exceptions import KazooException, NoNodeError

from serverset.ensemble.connection import SessionState, WatchEventKind

logger = logging.getLogger(__name__)


class WatchState(Enum):
    """States of the watcher."""

    INITIALIZING = "initializing"
    ARMED = "armed"
    CHANGED = "changed"
    SATISFIED = "satisfied"
    SESSION_LOST = "session_lost"

    @property
    def is_terminal(self) -> bool:
        return self in (WatchState.CHANGED, WatchState.SATISFIED, WatchState.SESSION_LOST)

    @property
    def is_success(self) -> bool:
        return self in (WatchState.CHANGED, WatchState.SATISFIED)


class EventSource(Enum):
    """Which stream an event arrived on."""

    SESSION = "session"
    WATCH = "watch"


@dataclass
class WatchOutcome:
    """Terminal result of a watch."""

    state: WatchState
    reason: str = ""


_CHANGE_KINDS = (
    WatchEventKind.CREATED,
    WatchEventKind.DELETED,
    WatchEventKind.CHILDREN_CHANGED,
)

_STOP = object()


def transition(state: WatchState, source: EventSource, event: Any) -> Tuple[WatchState, str]:
    """
    Decide the next state for an event received while armed.

    Args:
        state: Current state; only ARMED reacts to events
        source: Stream the event came from
        event: SessionEvent or WatchEvent

    Returns:
        Tuple of (next_state, reason)
    """
    if state is not WatchState.ARMED:
        return state, ""

    if source is EventSource.SESSION:
        if event.state is SessionState.EXPIRED:
            return WatchState.SESSION_LOST, "Session expired, retry again shortly."
        if event.error:
            return WatchState.SESSION_LOST, f"Session error: {event.error}. Retry again shortly."
        return WatchState.ARMED, f"Session event {event.state.value}"

    if event.kind is WatchEventKind.SESSION:
        return WatchState.ARMED, "Session marker on watch"
    if event.kind in _CHANGE_KINDS:
        return WatchState.CHANGED, "Detected node change."
    return WatchState.SESSION_LOST, "Watch expired, retry again shortly."


def _forward(source: EventSource, stream: queue.Queue, merged: queue.Queue) -> None:
    while True:
        item = stream.get()
        if item is _STOP:
            return
        merged.put((source, item))


class Watcher:
    """Waits for one membership change on a serverset path."""

    def __init__(self, session):
        self.session = session
        self.state = WatchState.INITIALIZING
        self._watch_stream: Optional[queue.Queue] = None

    def arm(self, path: str) -> Optional[WatchOutcome]:
        """
        Arm a one-shot watch on ``path``.

        Lists children with a watch attached; if the path is absent an
        existence watch is armed instead.

        Returns:
            A terminal WatchOutcome if arming already decided the result,
            otherwise None (the watcher is ARMED)
        """
        try:
            _, self._watch_stream = self.session.children_watch(path)
        except NoNodeError:
            logger.info(f"{path} does not exist, waiting for it to be created")
            try:
                exists, self._watch_stream = self.session.exists_watch(path)
            except KazooException as e:
                return self._finish(
                    WatchState.SESSION_LOST,
                    f"Session failed, retry again shortly.  Reason: {e}",
                )
            if exists:
                return self._finish(WatchState.SATISFIED, f"{path} was created")
        except KazooException as e:
            return self._finish(
                WatchState.SESSION_LOST,
                f"Session failed, retry again shortly.  Reason: {e}",
            )

        self.state = WatchState.ARMED
        return None

    def wait(self) -> WatchOutcome:
        """Block until the armed watch or the session decides the outcome."""
        if self.state is not WatchState.ARMED:
            raise RuntimeError(f"Cannot wait in state {self.state.value}")

        merged: queue.Queue = queue.Queue()
        sources = (
            (EventSource.SESSION, self.session.events),
            (EventSource.WATCH, self._watch_stream),
        )
        for source, stream in sources:
            threading.Thread(
                target=_forward,
                args=(source, stream, merged),
                name=f"watch-forward-{source.value}",
                daemon=True,
            ).start()

        try:
            while True:
                source, event = merged.get()
                next_state, reason = transition(self.state, source, event)
                if next_state.is_terminal:
                    return self._finish(next_state, reason)
                logger.info(reason)
        finally:
            for _, stream in sources:
                stream.put(_STOP)

    def run(self, path: str) -> WatchOutcome:
        """Arm a watch on ``path`` and wait for it to resolve."""
        outcome = self.arm(path)
        if outcome is not None:
            return outcome
        return self.wait()

    def _finish(self, state: WatchState, reason: str) -> WatchOutcome:
        self.state = state
        logger.info(f"Watch finished ({state.value}): {reason}")
        return WatchOutcome(state=state, reason=reason)
