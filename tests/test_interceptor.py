"""Tests for StoreInterceptor notification and delegation behaviour."""

import pytest

from conftest import FailingStore, person
from quadsync.interceptor import QuadStore, StoreInterceptor
from quadsync.memory import MemoryQuadStore
from quadsync.notifications import (
    DeleteGraphNotification,
    ImportNotification,
    MatchNotification,
    NotificationKind,
    RemoveMatchesNotification,
    RemoveNotification,
)
from quadsync.streams import NATIVE, EventStream, QuadStream, adapt, detect
from quadsync.terms import QuadPattern, named_node

ALICE = person("Alice")
BOB = person("Bob")
G1 = named_node("http://example.org/g1")


class Emitter:
    """Push-only source: on/off and a manual emit."""

    def __init__(self):
        self.listeners = {}

    def on(self, event, callback):
        self.listeners.setdefault(event, []).append(callback)

    def off(self, event, callback):
        self.listeners[event].remove(callback)

    def emit(self, event, *args):
        for callback in list(self.listeners.get(event, ())):
            callback(*args)


@pytest.fixture
def recorded(recording_store, metrics):
    interceptor = StoreInterceptor(recording_store, metrics=metrics)
    seen = []
    interceptor.subscribe_all(seen.append)
    return interceptor, recording_store, seen


def test_interceptor_satisfies_store_protocol(interceptor):
    assert isinstance(interceptor, QuadStore)
    assert isinstance(MemoryQuadStore(), QuadStore)


@pytest.mark.asyncio
async def test_match_emits_and_returns_store_result(recorded):
    interceptor, store, seen = recorded
    await store.backing.import_([ALICE])
    stream = interceptor.match(ALICE.subject)
    assert seen == [MatchNotification(QuadPattern(subject=ALICE.subject))]
    assert store.match_calls == [QuadPattern(subject=ALICE.subject)]
    assert await stream.to_list() == [ALICE]


@pytest.mark.asyncio
async def test_import_carries_the_delegated_stream(recorded):
    interceptor, store, seen = recorded
    await interceptor.import_([ALICE, BOB])
    assert len(seen) == 1
    assert isinstance(seen[0], ImportNotification)
    assert seen[0].stream is store.import_calls[0]
    assert len(store.backing) == 2


@pytest.mark.asyncio
async def test_one_shot_sources_are_shared(recorded, make_stream):
    interceptor, store, seen = recorded
    await interceptor.import_(make_stream(ALICE, BOB))
    carried = seen[0].stream
    assert isinstance(carried, QuadStream)
    assert carried is store.import_calls[0]
    # Store and listener each see every quad.
    assert len(store.backing) == 2
    assert await carried.to_list() == [ALICE, BOB]


@pytest.mark.asyncio
async def test_event_stream_source_reaches_store(recorded):
    interceptor, store, seen = recorded
    source = EventStream([ALICE])
    handle = interceptor.import_(source)
    source.write(BOB)
    source.end()
    assert await handle == 2
    assert await seen[0].stream.to_list() == [ALICE, BOB]


@pytest.mark.asyncio
async def test_push_source_reaches_store_as_async_stream(recorded):
    interceptor, store, seen = recorded
    source = Emitter()
    handle = interceptor.import_(source)
    source.emit("data", ALICE)
    source.emit("data", BOB)
    source.emit("end")
    assert await handle == 2

    received = store.import_calls[0]
    assert received is seen[0].stream
    assert detect(received) == NATIVE
    assert [item async for item in adapt(received)] == [ALICE, BOB]


@pytest.mark.asyncio
async def test_remove_emits_and_delegates(recorded):
    interceptor, store, seen = recorded
    await store.backing.import_([ALICE, BOB])
    await interceptor.remove([ALICE])
    assert [type(n) for n in seen] == [RemoveNotification]
    assert ALICE not in store.backing
    assert BOB in store.backing


@pytest.mark.asyncio
async def test_remove_matches_emits_exactly_one_notification(recorded):
    interceptor, store, seen = recorded
    await store.backing.import_([ALICE, BOB])
    await interceptor.remove_matches(ALICE.subject)
    assert seen == [RemoveMatchesNotification(QuadPattern(subject=ALICE.subject))]
    # The store did call its own match/remove internally...
    assert len(store.match_calls) == 1
    assert len(store.remove_calls) == 1
    # ...but none of that went through the interceptor.
    kinds = [n.kind for n in seen]
    assert NotificationKind.MATCH not in kinds
    assert NotificationKind.REMOVE not in kinds
    assert ALICE not in store.backing


@pytest.mark.asyncio
async def test_delete_graph_carries_identifier_as_given(recorded):
    interceptor, store, seen = recorded
    await store.backing.import_([person("Frank", G1), person("Henry")])
    await interceptor.delete_graph(G1)
    await interceptor.delete_graph("http://example.org/g2")
    assert seen == [
        DeleteGraphNotification(G1),
        DeleteGraphNotification("http://example.org/g2"),
    ]
    assert store.delete_graph_calls == [G1, "http://example.org/g2"]
    assert len(store.backing) == 1


def test_two_listeners_each_get_one_notification(interceptor):
    first, second = [], []
    interceptor.subscribe(NotificationKind.MATCH, first.append)
    interceptor.subscribe(NotificationKind.MATCH, second.append)
    interceptor.match()
    assert len(first) == 1
    assert len(second) == 1
    assert first[0] is second[0]


def test_notifications_follow_call_order(interceptor):
    seen = []
    interceptor.subscribe_all(seen.append)
    interceptor.match()
    handle = interceptor.remove_matches(ALICE.subject)
    handle.close()
    handle = interceptor.delete_graph(G1)
    handle.close()
    assert [n.kind for n in seen] == [
        NotificationKind.MATCH,
        NotificationKind.REMOVE_MATCHES,
        NotificationKind.DELETE_GRAPH,
    ]


def test_unsubscribe_all(interceptor):
    seen = []
    unsubscribe = interceptor.subscribe_all(seen.append)
    unsubscribe()
    interceptor.match()
    assert seen == []
    assert interceptor.bus.listener_count() == 0


@pytest.mark.asyncio
async def test_delegation_errors_propagate_unchanged(metrics):
    interceptor = StoreInterceptor(FailingStore(), metrics=metrics)
    seen = []
    interceptor.subscribe_all(seen.append)
    with pytest.raises(RuntimeError, match="read-only"):
        await interceptor.import_([ALICE])
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_interceptor_is_transparent_to_callers(interceptor, store):
    assert await interceptor.import_([ALICE, BOB]) == 2
    assert await interceptor.match().to_list() == await store.match().to_list()
    assert await interceptor.remove_matches(ALICE.subject) == 1
    assert await interceptor.delete_graph("") == 1
    assert len(store) == 0
    assert interceptor.store is store
