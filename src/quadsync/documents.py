"""documents.py - Flattening quads into index documents.

The full-text index only understands flat string fields, so each quad is
projected onto a FactDocument whose fields hold the terms' string values.
The projection drops the term kind: a NamedNode and a Literal with the same
value produce the same document and the same signature.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Union

from .terms import DefaultGraph, Quad, Term

FIELDS = ("subject", "predicate", "object", "graph")


@dataclass(frozen=True)
class FactDocument:
    subject: str
    predicate: str
    object: str
    graph: str = ""

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "FactDocument":
        return cls(**{name: str(data.get(name, "")) for name in FIELDS})


def project(term: Term) -> str:
    """String projection of a single term (empty for the default graph)."""
    if isinstance(term, DefaultGraph):
        return ""
    return term.value


def to_document(quad: Quad) -> FactDocument:
    return FactDocument(
        subject=project(quad.subject),
        predicate=project(quad.predicate),
        object=project(quad.object),
        graph=project(quad.graph),
    )


def signature(fact: Union[Quad, FactDocument]) -> str:
    """Mapping key ``subject|predicate|object|graph`` for a quad or document."""
    doc = to_document(fact) if isinstance(fact, Quad) else fact
    return f"{doc.subject}|{doc.predicate}|{doc.object}|{doc.graph}"
