import pytest
from prometheus_client import CollectorRegistry

from quadsync.index import MemoryFactIndex
from quadsync.interceptor import StoreInterceptor
from quadsync.memory import MemoryQuadStore
from quadsync.metrics import create_sync_metrics
from quadsync.streams import QuadStream
from quadsync.sync import IndexSynchronizer
from quadsync.terms import QuadPattern, literal, named_node, quad

FOAF_NAME = named_node("http://xmlns.com/foaf/0.1/name")
FOAF_AGE = named_node("http://xmlns.com/foaf/0.1/age")


def person(name: str, graph=None):
    """Quad ``<http://example.org/{name.lower()}> foaf:name "{name}"``."""
    return quad(
        named_node(f"http://example.org/{name.lower()}"),
        FOAF_NAME,
        literal(name),
        graph,
    )


class RecordingStore:
    """Store double that records calls and delegates to an in-memory store.

    Its remove_matches and delete_graph call its own match/remove, the way
    real stores commonly implement them.
    """

    def __init__(self):
        self.backing = MemoryQuadStore()
        self.match_calls = []
        self.import_calls = []
        self.remove_calls = []
        self.remove_matches_calls = []
        self.delete_graph_calls = []

    def match(self, subject=None, predicate=None, obj=None, graph=None):
        self.match_calls.append(QuadPattern(subject, predicate, obj, graph))
        return self.backing.match(subject, predicate, obj, graph)

    async def import_(self, source):
        self.import_calls.append(source)
        return await self.backing.import_(source)

    async def remove(self, source):
        self.remove_calls.append(source)
        return await self.backing.remove(source)

    async def remove_matches(self, subject=None, predicate=None, obj=None, graph=None):
        self.remove_matches_calls.append(QuadPattern(subject, predicate, obj, graph))
        return await self.remove(self.match(subject, predicate, obj, graph))

    async def delete_graph(self, graph):
        self.delete_graph_calls.append(graph)
        return await self.remove(self.match(graph=graph))


class FailingStore(MemoryQuadStore):
    """Memory store whose mutations fail after being called."""

    async def import_(self, source):
        raise RuntimeError("store is read-only")


class FlakyIndex(MemoryFactIndex):
    """Memory index that refuses documents whose object is in ``reject``."""

    def __init__(self, reject=()):
        super().__init__()
        self.reject = set(reject)

    async def insert(self, doc):
        if doc.object in self.reject:
            raise ConnectionError(f"index refused {doc.object}")
        return await super().insert(doc)


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def metrics(registry):
    return create_sync_metrics(registry)


@pytest.fixture
def store():
    return MemoryQuadStore()


@pytest.fixture
def index():
    return MemoryFactIndex()


@pytest.fixture
def interceptor(store, metrics):
    return StoreInterceptor(store, metrics=metrics)


@pytest.fixture
def synchronizer(interceptor, index, metrics):
    sync = IndexSynchronizer(index, metrics=metrics)
    sync.attach(interceptor)
    try:
        yield sync
    finally:
        sync.detach()


@pytest.fixture
def recording_store():
    return RecordingStore()


@pytest.fixture
def make_stream():
    """Factory for single-use async quad streams."""

    def _make(*quads):
        async def _generate():
            for item in quads:
                yield item

        return _generate()

    return _make


@pytest.fixture
def shared_stream():
    return lambda *quads: QuadStream(list(quads))
