"""metrics.py - Prometheus metrics for interception and index synchronization."""

from __future__ import annotations

from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge

_default_metrics: Optional[Dict[str, Any]] = None


def create_sync_metrics(registry: Optional[CollectorRegistry] = None) -> Dict[str, Any]:
    """Create the metric set on ``registry`` (None means the global registry).

    Every call registers new collectors, so the global registry can only be
    used once per process; tests pass their own CollectorRegistry.
    """
    kwargs = {} if registry is None else {"registry": registry}
    notifications = Counter(
        "quadsync_notifications",
        "Notifications published by store interceptors",
        ["kind"],
        **kwargs,
    )
    index_inserts = Counter(
        "quadsync_index_inserts",
        "Documents inserted into the fact index",
        **kwargs,
    )
    index_removals = Counter(
        "quadsync_index_removals",
        "Documents removed from the fact index",
        ["method"],
        **kwargs,
    )
    sync_divergence = Counter(
        "quadsync_sync_divergence",
        "Removals that found neither a mapped entry nor a fallback match",
        **kwargs,
    )
    sync_failures = Counter(
        "quadsync_sync_failures",
        "Failed index operations during synchronization",
        ["operation"],
        **kwargs,
    )
    sync_state_entries = Gauge(
        "quadsync_sync_state_entries",
        "Signatures currently mapped to index entries",
        **kwargs,
    )
    listener_tasks_pending = Gauge(
        "quadsync_listener_tasks_pending",
        "Listener tasks scheduled by notifications and not yet finished",
        **kwargs,
    )
    return {
        "notifications": notifications,
        "index_inserts": index_inserts,
        "index_removals": index_removals,
        "sync_divergence": sync_divergence,
        "sync_failures": sync_failures,
        "sync_state_entries": sync_state_entries,
        "listener_tasks_pending": listener_tasks_pending,
    }


def default_metrics() -> Dict[str, Any]:
    """Process-wide metric set on the global registry, created on first use."""
    global _default_metrics
    if _default_metrics is None:
        _default_metrics = create_sync_metrics()
    return _default_metrics
