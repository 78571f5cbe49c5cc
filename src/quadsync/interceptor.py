"""interceptor.py - Store decorator that announces every operation it forwards.

StoreInterceptor implements the same five operations as the store it wraps.
Each call publishes exactly one notification, synchronously and before the
call is forwarded, then returns the wrapped store's result unchanged.

Only calls made on the interceptor are announced. When the wrapped store
implements ``remove_matches`` or ``delete_graph`` on top of its own
``match``/``remove``, those inner calls go to the store itself, so a single
top-level call never produces more than one notification.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union, runtime_checkable

from .logger import get_logger
from .notifications import (
    DeleteGraphNotification,
    ImportNotification,
    Listener,
    MatchNotification,
    NotificationBus,
    NotificationKind,
    RemoveMatchesNotification,
    RemoveNotification,
)
from .streams import shareable
from .terms import QuadPattern, Term

logger = get_logger(__name__)


@runtime_checkable
class QuadStore(Protocol):
    """Operations a primary quad store must provide.

    ``match`` returns a stream in any protocol ``streams.adapt`` accepts.
    The mutating operations return an awaitable completion handle.

    ``import_`` and ``remove`` must read their input through
    ``streams.adapt`` (or ``async for``). Behind an interceptor, one-shot
    pull and push sources arrive wrapped in a QuadStream, which has no
    ``read()`` or ``on()`` of its own.
    """

    def match(
        self,
        subject: Optional[Term] = None,
        predicate: Optional[Term] = None,
        obj: Optional[Term] = None,
        graph: Optional[Term] = None,
    ) -> Any: ...

    def import_(self, source: Any) -> Awaitable[Any]: ...

    def remove(self, source: Any) -> Awaitable[Any]: ...

    def remove_matches(
        self,
        subject: Optional[Term] = None,
        predicate: Optional[Term] = None,
        obj: Optional[Term] = None,
        graph: Optional[Term] = None,
    ) -> Awaitable[Any]: ...

    def delete_graph(self, graph: Union[Term, str]) -> Awaitable[Any]: ...


class StoreInterceptor:
    """Wraps a QuadStore and publishes a notification per operation.

    Example:
        store = MemoryQuadStore()
        interceptor = StoreInterceptor(store)
        interceptor.subscribe(NotificationKind.IMPORT, print)
        await interceptor.import_([quad(...)])
    """

    def __init__(
        self,
        store: QuadStore,
        bus: Optional[NotificationBus] = None,
        metrics: Optional[Dict[str, Any]] = None,
    ):
        self._store = store
        self.bus = bus or NotificationBus(metrics=metrics)

    @property
    def store(self) -> QuadStore:
        """The wrapped store; calls made on it directly are not announced."""
        return self._store

    def subscribe(self, kind: NotificationKind, listener: Listener) -> Callable[[], None]:
        return self.bus.subscribe(kind, listener)

    def unsubscribe(self, kind: NotificationKind, listener: Listener) -> bool:
        return self.bus.unsubscribe(kind, listener)

    def subscribe_all(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every notification kind.

        Returns:
            A callable that removes all of these registrations.
        """
        removers: List[Callable[[], None]] = [
            self.bus.subscribe(kind, listener) for kind in NotificationKind
        ]

        def _unsubscribe_all() -> None:
            for remove in removers:
                remove()

        return _unsubscribe_all

    async def settled(self) -> List[Any]:
        """Wait for all listener work triggered by calls issued so far."""
        return await self.bus.settled()

    def match(
        self,
        subject: Optional[Term] = None,
        predicate: Optional[Term] = None,
        obj: Optional[Term] = None,
        graph: Optional[Term] = None,
    ) -> Any:
        self.bus.publish(MatchNotification(QuadPattern(subject, predicate, obj, graph)))
        return self._store.match(subject, predicate, obj, graph)

    def import_(self, source: Any) -> Awaitable[Any]:
        stream = shareable(source)
        self.bus.publish(ImportNotification(stream))
        return self._store.import_(stream)

    def remove(self, source: Any) -> Awaitable[Any]:
        stream = shareable(source)
        self.bus.publish(RemoveNotification(stream))
        return self._store.remove(stream)

    def remove_matches(
        self,
        subject: Optional[Term] = None,
        predicate: Optional[Term] = None,
        obj: Optional[Term] = None,
        graph: Optional[Term] = None,
    ) -> Awaitable[Any]:
        logger.debug(f"[StoreInterceptor.remove_matches] Called with {subject=}, {predicate=}, {obj=}, {graph=}")
        self.bus.publish(
            RemoveMatchesNotification(QuadPattern(subject, predicate, obj, graph))
        )
        return self._store.remove_matches(subject, predicate, obj, graph)

    def delete_graph(self, graph: Union[Term, str]) -> Awaitable[Any]:
        logger.debug(f"[StoreInterceptor.delete_graph] Called with {graph=}")
        self.bus.publish(DeleteGraphNotification(graph))
        return self._store.delete_graph(graph)
