"""memory.py - In-memory quad store.

Keeps a set of quads plus subject and graph indexes. ``match`` resolves its
result when called and returns it as a QuadStream, so later mutations do not
change a stream that was already handed out.

``remove_matches`` and ``delete_graph`` are built on the store's own
``match`` and ``remove``.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional, Set, Union

from .logger import get_logger
from .streams import QuadStream, adapt
from .terms import Quad, QuadPattern, Term, to_graph_term

logger = get_logger(__name__)


class MemoryQuadStore:
    def __init__(self, quads: Optional[Any] = None):
        self._quads: Set[Quad] = set()
        # Subject index: Subject -> Set[Quad]
        self._by_subject: Dict[Term, Set[Quad]] = {}
        # Graph index: Graph -> Set[Quad]
        self._by_graph: Dict[Term, Set[Quad]] = {}
        for item in quads or ():
            self.add(item)

    def __len__(self) -> int:
        return len(self._quads)

    def __contains__(self, item: object) -> bool:
        return item in self._quads

    def __iter__(self) -> Iterator[Quad]:
        return iter(list(self._quads))

    def quads(self, pattern: Optional[QuadPattern] = None) -> Iterator[Quad]:
        """Iterate stored quads matching ``pattern`` (all quads when None)."""
        pattern = pattern or QuadPattern()
        for item in self._candidates(pattern):
            if pattern.matches(item):
                yield item

    def _candidates(self, pattern: QuadPattern) -> Set[Quad]:
        candidates = self._quads
        if pattern.subject is not None:
            candidates = self._by_subject.get(pattern.subject, set())
        if pattern.graph is not None:
            by_graph = self._by_graph.get(pattern.graph, set())
            if len(by_graph) < len(candidates):
                candidates = by_graph
        return candidates

    def add(self, item: Quad) -> bool:
        """Add one quad; False if it was already stored."""
        if not isinstance(item, Quad):
            raise TypeError(f"Expected Quad, got {type(item).__name__}")
        if item in self._quads:
            return False
        self._quads.add(item)
        self._by_subject.setdefault(item.subject, set()).add(item)
        self._by_graph.setdefault(item.graph, set()).add(item)
        return True

    def discard(self, item: Quad) -> bool:
        """Remove one quad; False if it was not stored."""
        if item not in self._quads:
            return False
        self._quads.discard(item)
        for index, key in ((self._by_subject, item.subject), (self._by_graph, item.graph)):
            bucket = index.get(key)
            if bucket is not None:
                bucket.discard(item)
                if not bucket:
                    del index[key]
        return True

    def match(
        self,
        subject: Optional[Term] = None,
        predicate: Optional[Term] = None,
        obj: Optional[Term] = None,
        graph: Optional[Term] = None,
    ) -> QuadStream:
        pattern = QuadPattern(subject, predicate, obj, graph)
        return QuadStream(list(self.quads(pattern)))

    async def import_(self, source: Any) -> int:
        added = 0
        async for item in adapt(source):
            added += self.add(item)
        logger.debug(f"[MemoryQuadStore.import_] added {added} quads")
        return added

    async def remove(self, source: Any) -> int:
        removed = 0
        async for item in adapt(source):
            removed += self.discard(item)
        logger.debug(f"[MemoryQuadStore.remove] removed {removed} quads")
        return removed

    async def remove_matches(
        self,
        subject: Optional[Term] = None,
        predicate: Optional[Term] = None,
        obj: Optional[Term] = None,
        graph: Optional[Term] = None,
    ) -> int:
        return await self.remove(self.match(subject, predicate, obj, graph))

    async def delete_graph(self, graph: Union[Term, str]) -> int:
        return await self.remove_matches(graph=to_graph_term(graph))
