"""streams.py - One consumption contract for every kind of quad stream.

Stores in the wild hand out "the same" sequence of quads in three shapes:

- native: an async iterable or a plain iterable (lists, generators)
- pull: an object with ``read()`` returning the next quad or None when no
  item is currently available, optionally with ``on("readable"|"end"|"error")``
- push: an emitter with ``on("data"|"end"|"error", callback)``

``adapt`` detects the shape (in that order) and returns a single-pass async
iterator. Pull sources are drained and push listeners attached at adapt time,
so nothing delivered after the call is lost.

``QuadStream`` is a multi-consumer wrapper: every ``async for`` over it gets
its own cursor on a shared buffer, which lets the interceptor hand the same
stream object to a store and to its listeners.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Collection,
    Deque,
    Dict,
    Iterable,
    List,
    Optional,
)

from .exceptions import StreamProtocolError
from .terms import Quad

NATIVE = "native"
PULL = "pull"
PUSH = "push"


def detect(source: Any) -> Optional[str]:
    """Name the protocol ``source`` speaks, or None if it speaks none."""
    if isinstance(source, (str, bytes, Quad)):
        return None
    if hasattr(source, "__aiter__") or hasattr(source, "__iter__"):
        return NATIVE
    if callable(getattr(source, "read", None)):
        return PULL
    if callable(getattr(source, "on", None)):
        return PUSH
    return None


def adapt(source: Any) -> AsyncIterator[Quad]:
    """Normalize ``source`` into a single-pass async iterator of quads.

    Raises:
        StreamProtocolError: if ``source`` matches none of the protocols.
    """
    protocol = detect(source)
    if protocol == NATIVE:
        if hasattr(source, "__aiter__"):
            return _iterate_async(source)
        return _iterate_sync(iter(source))
    if protocol == PULL:
        return _PullAdapter(source).iterate()
    if protocol == PUSH:
        return _PushAdapter(source).iterate()
    raise StreamProtocolError(source)


async def collect(source: Any) -> List[Quad]:
    """Drain ``source`` into a list."""
    return [item async for item in adapt(source)]


async def _iterate_async(source: Any) -> AsyncIterator[Quad]:
    async for item in source:
        yield item


async def _iterate_sync(iterator: Iterable[Quad]) -> AsyncIterator[Quad]:
    for item in iterator:
        yield item


def _has_ended(source: Any) -> bool:
    return bool(getattr(source, "ended", False) or getattr(source, "readable_ended", False))


def _detach_listeners(source: Any, listeners: Dict[str, Callable]) -> None:
    off = getattr(source, "off", None) or getattr(source, "remove_listener", None)
    if not callable(off):
        return
    for event, callback in listeners.items():
        off(event, callback)


class _CallbackBuffer:
    """Shared state for adapters fed by source callbacks."""

    def __init__(self, source: Any):
        self.source = source
        self.items: Deque[Quad] = deque()
        self.ended = False
        self.error: Optional[BaseException] = None
        self.listeners: Dict[str, Callable] = {}
        self._waiter: Optional[asyncio.Future] = None

    def listen(self, listeners: Dict[str, Callable]) -> None:
        self.listeners = listeners
        for event, callback in listeners.items():
            self.source.on(event, callback)

    def finish(self, error: Optional[BaseException] = None) -> None:
        if self.ended:
            return
        self.ended = True
        self.error = error
        _detach_listeners(self.source, self.listeners)
        self.wake()

    def wake(self) -> None:
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(None)

    async def wait(self) -> None:
        self._waiter = asyncio.get_running_loop().create_future()
        try:
            await self._waiter
        finally:
            self._waiter = None


class _PullAdapter(_CallbackBuffer):
    """Drains ``read()`` now, then waits for ``end`` or ``error``.

    Sources without ``on`` cannot signal more data, so whatever ``read()``
    returns before the first None is the whole sequence. The wait is also
    skipped when the source reports it has already ended.
    """

    def __init__(self, source: Any):
        super().__init__(source)
        self.drain()
        if callable(getattr(source, "on", None)) and not _has_ended(source):
            self.listen({
                "readable": self._on_readable,
                "end": self._on_end,
                "error": self._on_error,
            })
        else:
            self.ended = True

    def drain(self) -> None:
        while (item := self.source.read()) is not None:
            self.items.append(item)

    def _on_readable(self, *_: Any) -> None:
        self.drain()
        self.wake()

    def _on_end(self, *_: Any) -> None:
        self.drain()
        self.finish()

    def _on_error(self, error: BaseException) -> None:
        self.finish(error)

    async def iterate(self) -> AsyncIterator[Quad]:
        while True:
            while self.items:
                yield self.items.popleft()
            if self.ended:
                if self.error is not None:
                    raise self.error
                return
            await self.wait()


class _PushAdapter(_CallbackBuffer):
    """Buffers ``data`` events until ``end``/``error``, then replays them."""

    def __init__(self, source: Any):
        super().__init__(source)
        self.listen({
            "data": self._on_data,
            "end": self._on_end,
            "error": self._on_error,
        })

    def _on_data(self, item: Quad) -> None:
        self.items.append(item)

    def _on_end(self, *_: Any) -> None:
        self.finish()

    def _on_error(self, error: BaseException) -> None:
        self.finish(error)

    async def iterate(self) -> AsyncIterator[Quad]:
        while not self.ended:
            await self.wait()
        if self.error is not None:
            raise self.error
        while self.items:
            yield self.items.popleft()


class QuadStream:
    """Lazy quad stream that any number of consumers can iterate in full.

    The underlying source is adapted once, at construction, and pulled on
    demand; pulled quads are kept so that later cursors replay them. A
    source error is re-raised to every cursor that reaches it.
    """

    def __init__(self, source: Any = ()):
        self._iterator = adapt(source)
        self._buffer: List[Quad] = []
        self._done = False
        self._error: Optional[BaseException] = None
        self._lock: Optional[asyncio.Lock] = None

    def __aiter__(self) -> AsyncIterator[Quad]:
        return self._cursor()

    def __repr__(self) -> str:
        state = "done" if self._done else "open"
        return f"<QuadStream {state} buffered={len(self._buffer)}>"

    @property
    def done(self) -> bool:
        return self._done

    async def _cursor(self) -> AsyncIterator[Quad]:
        position = 0
        while True:
            if position < len(self._buffer):
                yield self._buffer[position]
                position += 1
                continue
            if self._done:
                if self._error is not None:
                    raise self._error
                return
            await self._pull(position)

    async def _pull(self, seen: int) -> None:
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            # Another cursor may have pulled while we waited for the lock.
            if self._done or len(self._buffer) > seen:
                return
            try:
                item = await anext(self._iterator)
            except StopAsyncIteration:
                self._done = True
            except Exception as ex:
                self._error = ex
                self._done = True
            else:
                self._buffer.append(item)

    async def to_list(self) -> List[Quad]:
        return [item async for item in self]


class EventStream:
    """In-memory readable stream with Node ``Readable``-style events.

    Producers call ``write``/``end``/``fail``. Consumers either ``read()``
    buffered quads (pull) or subscribe to ``data`` (push); attaching the
    first ``data`` listener flushes anything buffered so far.
    """

    def __init__(self, quads: Iterable[Quad] = ()):
        self._listeners: Dict[str, List[Callable]] = {}
        self._buffer: Deque[Quad] = deque(quads)
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def on(self, event: str, callback: Callable) -> "EventStream":
        self._listeners.setdefault(event, []).append(callback)
        if event == "data":
            while self._buffer:
                self.emit("data", self._buffer.popleft())
        return self

    def off(self, event: str, callback: Callable) -> "EventStream":
        callbacks = self._listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)
        return self

    remove_listener = off

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        callbacks = list(self._listeners.get(event, ()))
        for callback in callbacks:
            callback(*args)
        return bool(callbacks)

    def read(self) -> Optional[Quad]:
        return self._buffer.popleft() if self._buffer else None

    def write(self, item: Quad) -> None:
        if self._ended:
            raise RuntimeError("write after end")
        if self.listener_count("data"):
            self.emit("data", item)
        else:
            self._buffer.append(item)
            self.emit("readable")

    def end(self) -> None:
        if self._ended:
            return
        self._ended = True
        self.emit("end")

    def fail(self, error: BaseException) -> None:
        self._ended = True
        self.emit("error", error)


def shareable(source: Any) -> Any:
    """Return a stream that several consumers can each read in full.

    Re-iterable collections and QuadStreams come back unchanged, as do values
    that speak no stream protocol (the consumer reports those). Everything
    else is wrapped in a QuadStream. Consumers of the result must go through
    ``adapt`` or ``async for``.
    """
    if isinstance(source, QuadStream):
        return source
    if isinstance(source, Collection) and detect(source) == NATIVE:
        return source
    if detect(source) is None:
        return source
    return QuadStream(source)
