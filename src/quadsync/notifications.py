"""notifications.py - Typed notifications and the channel that delivers them.

One frozen dataclass per intercepted store operation. Listeners are called
synchronously, in registration order, at the moment the operation is
invoked. A listener may return an awaitable; the bus runs it as a task and
keeps track of it so callers can wait for everything to settle.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Dict, List, Optional, Set, Union

from .logger import get_logger
from .metrics import default_metrics
from .terms import QuadPattern, Term

logger = get_logger(__name__)


class NotificationKind(Enum):
    MATCH = "match"
    IMPORT = "import"
    REMOVE = "remove"
    REMOVE_MATCHES = "removematches"
    DELETE_GRAPH = "deletegraph"


@dataclass(frozen=True)
class MatchNotification:
    pattern: QuadPattern
    kind: ClassVar[NotificationKind] = NotificationKind.MATCH


@dataclass(frozen=True, eq=False)
class ImportNotification:
    """Carries the stream handed to the store, not yet consumed."""

    stream: Any
    kind: ClassVar[NotificationKind] = NotificationKind.IMPORT


@dataclass(frozen=True, eq=False)
class RemoveNotification:
    stream: Any
    kind: ClassVar[NotificationKind] = NotificationKind.REMOVE


@dataclass(frozen=True)
class RemoveMatchesNotification:
    pattern: QuadPattern
    kind: ClassVar[NotificationKind] = NotificationKind.REMOVE_MATCHES


@dataclass(frozen=True)
class DeleteGraphNotification:
    """Graph identifier exactly as the caller passed it (term or string)."""

    graph: Union[Term, str]
    kind: ClassVar[NotificationKind] = NotificationKind.DELETE_GRAPH


Notification = Union[
    MatchNotification,
    ImportNotification,
    RemoveNotification,
    RemoveMatchesNotification,
    DeleteGraphNotification,
]

Listener = Callable[[Notification], Optional[Awaitable[Any]]]


class NotificationBus:
    """Publish/subscribe channel keyed by NotificationKind."""

    def __init__(self, metrics: Optional[Dict[str, Any]] = None):
        self._listeners: Dict[NotificationKind, List[Listener]] = {
            kind: [] for kind in NotificationKind
        }
        self._tasks: Set[asyncio.Future] = set()
        self._metrics = metrics or default_metrics()

    def subscribe(self, kind: NotificationKind, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for ``kind``.

        Returns:
            A callable that removes this registration.
        """
        kind = NotificationKind(kind)
        self._listeners[kind].append(listener)
        return lambda: self.unsubscribe(kind, listener)

    def unsubscribe(self, kind: NotificationKind, listener: Listener) -> bool:
        """Remove one registration of ``listener``; False if it had none."""
        listeners = self._listeners[NotificationKind(kind)]
        if listener in listeners:
            listeners.remove(listener)
            return True
        return False

    def listeners(self, kind: NotificationKind) -> List[Listener]:
        return list(self._listeners[NotificationKind(kind)])

    def listener_count(self, kind: Optional[NotificationKind] = None) -> int:
        if kind is None:
            return sum(len(listeners) for listeners in self._listeners.values())
        return len(self._listeners[NotificationKind(kind)])

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def publish(self, notification: Notification) -> None:
        """Deliver ``notification`` to every listener of its kind.

        Listeners registered or removed while publishing take effect from the
        next notification. Exceptions raised synchronously by a listener
        propagate to the publisher.
        """
        self._metrics["notifications"].labels(kind=notification.kind.value).inc()
        for listener in list(self._listeners[notification.kind]):
            result = listener(notification)
            if inspect.isawaitable(result):
                self._track(result, notification)

    def _track(self, awaitable: Awaitable[Any], notification: Notification) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        self._metrics["listener_tasks_pending"].set(len(self._tasks))

        def _done(finished: asyncio.Future) -> None:
            self._tasks.discard(finished)
            self._metrics["listener_tasks_pending"].set(len(self._tasks))
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.error(
                    f"[NotificationBus] listener for {notification.kind.value} failed: {error!r}",
                    exc_info=error,
                )

        task.add_done_callback(_done)

    async def settled(self) -> List[Any]:
        """Wait until no listener task is in flight.

        Tasks scheduled while waiting (e.g. by notifications that listeners
        themselves trigger) are waited for too.

        Returns:
            Results of the awaited tasks in completion-batch order; a task
            that failed contributes its exception instead of raising.
        """
        results: List[Any] = []
        while self._tasks:
            batch = list(self._tasks)
            results.extend(await asyncio.gather(*batch, return_exceptions=True))
            for task in batch:
                self._tasks.discard(task)
        return results
