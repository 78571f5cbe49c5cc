"""quadsync - keep a full-text fact index in step with an RDF quad store."""

from .config import FallbackStrategy, SyncConfig
from .documents import FactDocument, signature, to_document
from .exceptions import (
    QuadSyncError,
    StreamProtocolError,
    SyncError,
    SyncFailure,
    TermError,
)
from .index import FactIndex, MemoryFactIndex, SearchHit, search_facts
from .interceptor import QuadStore, StoreInterceptor
from .memory import MemoryQuadStore
from .notifications import (
    DeleteGraphNotification,
    ImportNotification,
    MatchNotification,
    Notification,
    NotificationBus,
    NotificationKind,
    RemoveMatchesNotification,
    RemoveNotification,
)
from .state import SyncState
from .streams import EventStream, QuadStream, adapt, collect
from .sync import IndexSynchronizer, SyncReport, attach, sync_store
from .terms import (
    DEFAULT_GRAPH,
    BlankNode,
    DefaultGraph,
    Literal,
    NamedNode,
    Quad,
    QuadPattern,
    Variable,
    blank_node,
    default_graph,
    literal,
    named_node,
    quad,
    to_graph_term,
    variable,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_GRAPH",
    "BlankNode",
    "DefaultGraph",
    "DeleteGraphNotification",
    "EventStream",
    "FactDocument",
    "FactIndex",
    "FallbackStrategy",
    "ImportNotification",
    "IndexSynchronizer",
    "Literal",
    "MatchNotification",
    "MemoryFactIndex",
    "MemoryQuadStore",
    "NamedNode",
    "Notification",
    "NotificationBus",
    "NotificationKind",
    "Quad",
    "QuadPattern",
    "QuadStore",
    "QuadStream",
    "QuadSyncError",
    "RemoveMatchesNotification",
    "RemoveNotification",
    "SearchHit",
    "StoreInterceptor",
    "StreamProtocolError",
    "SyncConfig",
    "SyncError",
    "SyncFailure",
    "SyncReport",
    "SyncState",
    "TermError",
    "Variable",
    "adapt",
    "attach",
    "blank_node",
    "collect",
    "default_graph",
    "literal",
    "named_node",
    "quad",
    "search_facts",
    "signature",
    "sync_store",
    "to_document",
    "to_graph_term",
    "variable",
]
