"""config.py - Synchronizer configuration.

Defaults can be overridden through the environment:

    QUADSYNC_FALLBACK          where | term | none
    QUADSYNC_FALLBACK_LIMIT    max hits inspected by the fallback search
    QUADSYNC_MAX_CONCURRENCY   max concurrent index inserts per batch
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class FallbackStrategy(Enum):
    """How a removal finds its index entry when the mapping has none."""

    WHERE = "where"  # exact equality on all four fields
    TERM = "term"  # full-text search on the object, then compare fields
    NONE = "none"


@dataclass(frozen=True)
class SyncConfig:
    fallback: FallbackStrategy = FallbackStrategy.WHERE
    fallback_search_limit: int = 100
    max_concurrency: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "fallback", FallbackStrategy(self.fallback))
        if self.fallback_search_limit < 1:
            raise ValueError("fallback_search_limit must be at least 1")
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1 or None")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SyncConfig":
        env = os.environ if environ is None else environ
        changes: Dict[str, Any] = {}
        if "QUADSYNC_FALLBACK" in env:
            changes["fallback"] = FallbackStrategy(env["QUADSYNC_FALLBACK"].strip().lower())
        if "QUADSYNC_FALLBACK_LIMIT" in env:
            changes["fallback_search_limit"] = int(env["QUADSYNC_FALLBACK_LIMIT"])
        if env.get("QUADSYNC_MAX_CONCURRENCY"):
            changes["max_concurrency"] = int(env["QUADSYNC_MAX_CONCURRENCY"])
        return cls(**changes)

    def with_overrides(self, **changes: Any) -> "SyncConfig":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["fallback"] = self.fallback.value
        return data
