"""sync.py - Keeps a full-text fact index in step with an intercepted store.

IndexSynchronizer listens to a StoreInterceptor:

- import: every imported quad becomes one index document; the entry id the
  index hands back is remembered under the quad's signature.
- remove: each quad's entry is removed by signature; without a mapping the
  configured fallback search looks for an identical document.
- removematches / deletegraph: the notification only carries a pattern, so
  the affected quads are resolved by re-issuing the pattern as a match on the
  interceptor. This happens inside the listener, i.e. before the store's own
  removal can run, then each resolved quad is removed as above.

Listener work runs as asyncio tasks detached from the triggering call.
Batches are applied one at a time in notification order; the inserts inside
one batch run concurrently. A failure on one quad never stops the rest of
its batch. Failures go to the ``on_error`` channel and removals that find
nothing go to ``on_divergence``. ``await interceptor.settled()`` waits for
every batch issued so far.
"""

from __future__ import annotations

import asyncio
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple

from .config import FallbackStrategy, SyncConfig
from .documents import FactDocument, signature, to_document
from .exceptions import SyncError, SyncFailure
from .index import FactIndex
from .interceptor import QuadStore, StoreInterceptor
from .logger import get_logger
from .metrics import default_metrics
from .notifications import Notification, NotificationKind
from .state import SyncState
from .streams import adapt
from .terms import Quad, to_graph_term

logger = get_logger(__name__)

ErrorHandler = Callable[[Optional[Notification], SyncFailure], None]
DivergenceHandler = Callable[[Quad], None]


@dataclass
class SyncReport:
    """Outcome of one synchronization batch."""

    operation: str
    inserted: int = 0
    removed: int = 0
    skipped: int = 0
    diverged: List[Quad] = field(default_factory=list)
    failures: List[SyncFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "inserted": self.inserted,
            "removed": self.removed,
            "skipped": self.skipped,
            "diverged": len(self.diverged),
            "failures": len(self.failures),
        }


class IndexSynchronizer:
    """Mirrors quads written through a StoreInterceptor into a FactIndex.

    Can be attached to one interceptor at a time. Detaching removes exactly
    the listeners attach registered and replaces the mapping with an empty
    SyncState. Work already in flight still runs to completion, but it
    writes to the mapping that was current when its notification arrived,
    so nothing it records survives the detach.
    """

    def __init__(
        self,
        index: FactIndex,
        config: Optional[SyncConfig] = None,
        *,
        on_error: Optional[ErrorHandler] = None,
        on_divergence: Optional[DivergenceHandler] = None,
        metrics: Optional[Dict[str, Any]] = None,
    ):
        self.index = index
        self.config = config or SyncConfig()
        self.state = SyncState()
        self._on_error = on_error or self._log_failure
        self._on_divergence = on_divergence or self._log_divergence
        self._metrics = metrics or default_metrics()
        self._interceptor: Optional[StoreInterceptor] = None
        self._unsubscribers: List[Callable[[], None]] = []
        self._batch_lock = asyncio.Lock()
        self._handlers: Dict[NotificationKind, Callable[[Any], Any]] = {
            NotificationKind.MATCH: self._on_match,
            NotificationKind.IMPORT: self._on_import,
            NotificationKind.REMOVE: self._on_remove,
            NotificationKind.REMOVE_MATCHES: self._on_remove_matches,
            NotificationKind.DELETE_GRAPH: self._on_delete_graph,
        }

    @property
    def attached(self) -> bool:
        return self._interceptor is not None

    @property
    def interceptor(self) -> Optional[StoreInterceptor]:
        return self._interceptor

    def attach(self, interceptor: StoreInterceptor) -> Callable[[], None]:
        """Start listening to ``interceptor``.

        Returns:
            The detach callable.

        Raises:
            SyncError: if already attached, or if some notification kind has
                no handler.
        """
        if self._interceptor is not None:
            raise SyncError("IndexSynchronizer is already attached to an interceptor")
        missing = [kind.value for kind in NotificationKind if kind not in self._handlers]
        if missing:
            raise SyncError(f"No handler for notification kinds: {missing}")

        self._interceptor = interceptor
        self._unsubscribers = [
            interceptor.subscribe(kind, handler) for kind, handler in self._handlers.items()
        ]
        logger.info(f"[IndexSynchronizer.attach] Listening for {len(self._unsubscribers)} notification kinds")
        return self.detach

    def detach(self) -> None:
        """Stop listening and drop the mapping. Safe to call more than once."""
        if self._interceptor is None:
            return
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._interceptor = None
        self.state = SyncState()
        self._metrics["sync_state_entries"].set(0)
        logger.info("[IndexSynchronizer.detach] Listeners removed")

    def status(self) -> Dict[str, Any]:
        interceptor = self._interceptor
        return {
            "attached": interceptor is not None,
            "state_entries": len(self.state),
            "pending_tasks": interceptor.bus.pending if interceptor is not None else 0,
            "config": self.config.to_dict(),
        }

    async def backfill(self, store: Optional[QuadStore] = None) -> SyncReport:
        """Index every quad of ``store`` that is not mapped yet.

        Defaults to the interceptor's wrapped store, read directly so that no
        notification fires.
        """
        if store is None:
            if self._interceptor is None:
                raise SyncError("backfill needs a store or an attached interceptor")
            store = self._interceptor.store
        report = await self._in_order(
            self._insert_all("backfill", None, adapt(store.match()), self.state)
        )
        logger.info(f"[IndexSynchronizer.backfill] {report.summary()}")
        return report

    # Handlers. Each runs synchronously inside publish() and returns the
    # coroutine that does the index work, which the bus runs as a task.

    def _on_match(self, notification: Notification) -> None:
        return None

    def _on_import(self, notification: Notification):
        try:
            quads = adapt(notification.stream)
        except Exception as ex:
            return self._failed("import", notification, ex)
        return self._in_order(self._insert_all("import", notification, quads, self.state))

    def _on_remove(self, notification: Notification):
        try:
            quads = adapt(notification.stream)
        except Exception as ex:
            return self._failed("remove", notification, ex)
        return self._in_order(self._remove_all("remove", notification, quads, self.state))

    def _on_remove_matches(self, notification: Notification):
        pattern = notification.pattern
        try:
            quads = adapt(
                self._interceptor.match(
                    pattern.subject, pattern.predicate, pattern.object, pattern.graph
                )
            )
        except Exception as ex:
            return self._failed("removematches", notification, ex)
        return self._in_order(
            self._remove_all("removematches", notification, quads, self.state)
        )

    def _on_delete_graph(self, notification: Notification):
        try:
            graph = to_graph_term(notification.graph)
            quads = adapt(self._interceptor.match(graph=graph))
        except Exception as ex:
            return self._failed("deletegraph", notification, ex)
        return self._in_order(
            self._remove_all("deletegraph", notification, quads, self.state)
        )

    # Batches

    async def _in_order(self, batch: Awaitable[SyncReport]) -> SyncReport:
        # asyncio.Lock wakes waiters FIFO and tasks start in publish order.
        async with self._batch_lock:
            return await batch

    async def _failed(
        self, operation: str, notification: Notification, error: Exception
    ) -> SyncReport:
        report = SyncReport(operation)
        report.failures.append(SyncFailure(operation, None, error))
        return self._finish(report, notification, self.state)

    async def _insert_all(
        self,
        operation: str,
        notification: Optional[Notification],
        quads: AsyncIterator[Quad],
        state: SyncState,
    ) -> SyncReport:
        report = SyncReport(operation)
        limit = self.config.max_concurrency
        semaphore = asyncio.Semaphore(limit) if limit else None
        inserts = []
        try:
            async for item in quads:
                inserts.append(asyncio.ensure_future(self._insert(item, state, report, semaphore)))
        except Exception as ex:
            report.failures.append(SyncFailure(operation, None, ex))
        if inserts:
            await asyncio.gather(*inserts)
        return self._finish(report, notification, state)

    async def _remove_all(
        self,
        operation: str,
        notification: Notification,
        quads: AsyncIterator[Quad],
        state: SyncState,
    ) -> SyncReport:
        report = SyncReport(operation)
        try:
            async for item in quads:
                await self._remove(item, state, report)
        except Exception as ex:
            report.failures.append(SyncFailure(operation, None, ex))
        return self._finish(report, notification, state)

    def _finish(
        self, report: SyncReport, notification: Optional[Notification], state: SyncState
    ) -> SyncReport:
        if state is self.state:
            self._metrics["sync_state_entries"].set(len(state))
        for failure in report.failures:
            self._metrics["sync_failures"].labels(operation=failure.operation).inc()
            self._on_error(notification, failure)
        for item in report.diverged:
            self._on_divergence(item)
        logger.debug(f"[IndexSynchronizer.{report.operation}] {report.summary()}")
        return report

    # Single quads

    async def _insert(
        self,
        item: Quad,
        state: SyncState,
        report: SyncReport,
        semaphore: Optional[asyncio.Semaphore],
    ) -> None:
        doc = to_document(item)
        key = signature(doc)
        if not state.reserve(key):
            report.skipped += 1
            return
        try:
            async with semaphore or nullcontext():
                entry_id = await self.index.insert(doc)
        except Exception as ex:
            state.release(key)
            report.failures.append(SyncFailure("insert", item, ex))
            return
        state.record(key, entry_id)
        report.inserted += 1
        self._metrics["index_inserts"].inc()
        logger.debug(f"[IndexSynchronizer._insert] {key} -> {entry_id}")

    async def _remove(self, item: Quad, state: SyncState, report: SyncReport) -> None:
        doc = to_document(item)
        key = signature(doc)
        entry_id = state.pop(key)
        method = "mapped" if entry_id is not None else "fallback"
        try:
            if entry_id is None:
                entry_id = await self._find_entry(doc)
            removed = entry_id is not None and await self.index.remove(entry_id) is not False
        except Exception as ex:
            if method == "mapped":
                state.record(key, entry_id)
            report.failures.append(SyncFailure("remove", item, ex))
            return
        if not removed:
            report.diverged.append(item)
            self._metrics["sync_divergence"].inc()
            return
        report.removed += 1
        self._metrics["index_removals"].labels(method=method).inc()
        logger.debug(f"[IndexSynchronizer._remove] {key} ({method})")

    async def _find_entry(self, doc: FactDocument) -> Optional[str]:
        strategy = self.config.fallback
        limit = self.config.fallback_search_limit
        if strategy is FallbackStrategy.NONE:
            return None
        if strategy is FallbackStrategy.WHERE:
            hits = await self.index.search(where=doc.to_dict(), limit=limit)
        else:
            hits = await self.index.search(term=doc.object, properties=["object"], limit=limit)
        for hit in hits:
            found = hit.document
            if not isinstance(found, FactDocument):
                found = FactDocument.from_dict(found)
            if found == doc:
                return hit.id
        return None

    # Default reporting channels

    @staticmethod
    def _log_failure(notification: Optional[Notification], failure: SyncFailure) -> None:
        source = notification.kind.value if notification is not None else "backfill"
        logger.error(f"[IndexSynchronizer] {source}: {failure}", exc_info=failure.error)

    @staticmethod
    def _log_divergence(item: Quad) -> None:
        logger.warning(f"[IndexSynchronizer] No index entry found for {item}")


def attach(
    interceptor: StoreInterceptor,
    index: FactIndex,
    config: Optional[SyncConfig] = None,
    **options: Any,
) -> Callable[[], None]:
    """Attach a new IndexSynchronizer and return its detach callable."""
    return IndexSynchronizer(index, config, **options).attach(interceptor)


def sync_store(
    store: QuadStore,
    index: FactIndex,
    config: Optional[SyncConfig] = None,
    **options: Any,
) -> Tuple[StoreInterceptor, IndexSynchronizer]:
    """Wrap ``store`` in an interceptor and keep ``index`` synchronized with it.

    Returns:
        The interceptor to use in place of ``store``, and its synchronizer.
    """
    interceptor = StoreInterceptor(store, metrics=options.get("metrics"))
    synchronizer = IndexSynchronizer(index, config, **options)
    synchronizer.attach(interceptor)
    return interceptor, synchronizer
