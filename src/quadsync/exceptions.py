"""exceptions.py - Exception hierarchy for quad interception and index sync.

Defines exceptions for:
- Term construction errors
- Stream protocol detection failures
- Synchronizer lifecycle misuse

Delegation errors raised by a wrapped store or index are never wrapped;
they propagate as raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class QuadSyncError(Exception):
    """Base exception for all quadsync errors."""

    pass


class TermError(QuadSyncError, ValueError):
    """Raised when a term or quad is built from invalid parts.

    Examples:
        - Literal used as a subject or predicate
        - Blank node used as a predicate
        - Literal given as a graph name
    """

    pass


class StreamProtocolError(QuadSyncError, TypeError):
    """Raised when a value matches none of the supported stream protocols.

    Supported protocols are native (async) iteration, pull-style ``read()``
    and push-style ``on("data" | "end" | "error", ...)``.
    """

    def __init__(self, source: Any):
        self.source = source
        super().__init__(
            f"Unsupported quad stream of type {type(source).__name__}: "
            "expected an (async) iterable, a read() source or an on() emitter"
        )


class SyncError(QuadSyncError):
    """Raised on synchronizer misuse, e.g. attaching twice."""

    pass


@dataclass(frozen=True)
class SyncFailure:
    """One failed index operation inside a synchronization batch.

    ``quad`` is None when the failure happened before any quad could be read,
    e.g. when the source stream itself errored.
    """

    operation: str
    quad: Any
    error: BaseException

    def __str__(self) -> str:
        return f"{self.operation} failed for {self.quad!r}: {self.error!r}"
