"""index.py - Full-text fact index interface and an in-memory implementation.

The synchronizer only needs three operations from an index: insert a flat
document and get an entry id back, remove by entry id, and search by free
text and/or exact field values.
"""

from __future__ import annotations

import re
import uuid
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Set, runtime_checkable

from .documents import FIELDS, FactDocument

TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


@dataclass(frozen=True)
class SearchHit:
    id: str
    score: float
    document: FactDocument


@runtime_checkable
class FactIndex(Protocol):
    async def insert(self, doc: FactDocument) -> str: ...

    async def remove(self, entry_id: str) -> bool: ...

    async def search(
        self,
        term: Optional[str] = None,
        where: Optional[Mapping[str, str]] = None,
        properties: Optional[Iterable[str]] = None,
        limit: int = 10,
    ) -> List[SearchHit]: ...


def tokenize(text: str) -> List[str]:
    return [token.lower() for token in TOKEN_PATTERN.findall(text)]


class MemoryFactIndex:
    """Inverted-index full-text search over FactDocuments.

    - Entry ids are random hex strings; inserting the same document twice
      creates two entries.
    - ``term`` matches documents containing any of its tokens in the
      searched properties; the score is the number of token occurrences.
    - ``where`` keeps only documents whose fields equal the given strings.
    - Hits are ordered by score, then by insertion order.
    """

    def __init__(self):
        self._documents: Dict[str, FactDocument] = {}
        self._order: Dict[str, int] = {}
        self._postings: Dict[str, Dict[str, Set[str]]] = {name: {} for name in FIELDS}
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._documents

    def get(self, entry_id: str) -> Optional[FactDocument]:
        return self._documents.get(entry_id)

    def documents(self) -> Dict[str, FactDocument]:
        return dict(self._documents)

    async def insert(self, doc: FactDocument) -> str:
        entry_id = uuid.uuid4().hex
        self._documents[entry_id] = doc
        self._order[entry_id] = self._sequence
        self._sequence += 1
        for name in FIELDS:
            for token in set(tokenize(getattr(doc, name))):
                self._postings[name].setdefault(token, set()).add(entry_id)
        return entry_id

    async def remove(self, entry_id: str) -> bool:
        doc = self._documents.pop(entry_id, None)
        if doc is None:
            return False
        del self._order[entry_id]
        for name in FIELDS:
            postings = self._postings[name]
            for token in set(tokenize(getattr(doc, name))):
                ids = postings.get(token)
                if ids is None:
                    continue
                ids.discard(entry_id)
                if not ids:
                    del postings[token]
        return True

    async def search(
        self,
        term: Optional[str] = None,
        where: Optional[Mapping[str, str]] = None,
        properties: Optional[Iterable[str]] = None,
        limit: int = 10,
    ) -> List[SearchHit]:
        fields = tuple(properties) if properties is not None else FIELDS
        unknown = [name for name in list(fields) + list(where or {}) if name not in FIELDS]
        if unknown:
            raise ValueError(f"Unknown document fields: {unknown}")

        if term:
            scores = self._score(tokenize(term), fields)
            if not scores:
                return []
        else:
            scores = Counter({entry_id: 0 for entry_id in self._documents})

        hits = []
        for entry_id, score in scores.items():
            doc = self._documents[entry_id]
            if where and any(getattr(doc, name) != value for name, value in where.items()):
                continue
            hits.append(SearchHit(entry_id, float(score), doc))
        hits.sort(key=lambda hit: (-hit.score, self._order[hit.id]))
        return hits[:limit]

    def _score(self, tokens: List[str], fields: Iterable[str]) -> Counter:
        scores: Counter = Counter()
        fields = tuple(fields)
        for token in tokens:
            for name in fields:
                for entry_id in self._postings[name].get(token, ()):
                    scores[entry_id] += 1
        return scores


async def search_facts(index: FactIndex, query: str, limit: int = 10) -> List[FactDocument]:
    """Look up indexed facts by free text, best matches first."""
    hits = await index.search(term=query, limit=limit)
    return [hit.document for hit in hits]
