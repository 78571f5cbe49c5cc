"""Tests for the in-memory quad store."""

import pytest

from conftest import FOAF_AGE, person
from quadsync.memory import MemoryQuadStore
from quadsync.streams import EventStream, QuadStream
from quadsync.terms import DEFAULT_GRAPH, QuadPattern, literal, named_node, quad

G1 = named_node("http://example.org/g1")
ALICE = person("Alice")
BOB = person("Bob")
ALICE_AGE = quad(ALICE.subject, FOAF_AGE, literal("42"))
FRANK_G1 = person("Frank", G1)


@pytest.fixture
def populated():
    return MemoryQuadStore([ALICE, BOB, ALICE_AGE, FRANK_G1])


def test_add_and_discard():
    store = MemoryQuadStore()
    assert store.add(ALICE)
    assert not store.add(ALICE)
    assert len(store) == 1
    assert store.discard(ALICE)
    assert not store.discard(ALICE)
    assert len(store) == 0


def test_add_rejects_non_quads():
    with pytest.raises(TypeError):
        MemoryQuadStore().add(("s", "p", "o"))


def test_quads_by_pattern(populated):
    assert set(populated.quads(QuadPattern(subject=ALICE.subject))) == {ALICE, ALICE_AGE}
    assert set(populated.quads(QuadPattern(graph=G1))) == {FRANK_G1}
    assert set(populated.quads(QuadPattern(graph=DEFAULT_GRAPH))) == {ALICE, BOB, ALICE_AGE}
    assert set(populated.quads(QuadPattern(predicate=FOAF_AGE))) == {ALICE_AGE}
    assert list(populated.quads(QuadPattern(subject=named_node("http://example.org/nobody")))) == []
    assert len(list(populated.quads())) == 4


@pytest.mark.asyncio
async def test_match_returns_a_snapshot(populated):
    stream = populated.match(ALICE.subject)
    assert isinstance(stream, QuadStream)
    populated.discard(ALICE)
    assert set(await stream.to_list()) == {ALICE, ALICE_AGE}


@pytest.mark.asyncio
async def test_import_accepts_every_stream_protocol(make_stream):
    store = MemoryQuadStore()
    assert await store.import_([ALICE]) == 1
    assert await store.import_(make_stream(BOB, ALICE)) == 1
    source = EventStream([ALICE_AGE])
    source.end()
    assert await store.import_(source) == 1
    assert len(store) == 3


@pytest.mark.asyncio
async def test_remove_counts_only_stored_quads(populated):
    assert await populated.remove([ALICE, person("Nobody")]) == 1
    assert ALICE not in populated


@pytest.mark.asyncio
async def test_remove_matches(populated):
    assert await populated.remove_matches(ALICE.subject) == 2
    assert set(populated) == {BOB, FRANK_G1}


@pytest.mark.asyncio
async def test_delete_graph_by_term_or_string(populated):
    assert await populated.delete_graph("http://example.org/g1") == 1
    assert FRANK_G1 not in populated
    assert await populated.delete_graph(DEFAULT_GRAPH) == 3
    assert len(populated) == 0
