"""terms.py - RDF terms, quads and quad patterns.

Term kinds:
- NamedNode: IRI reference
- BlankNode: anonymous node, identified by a local label
- Literal: lexical value with optional language tag and a datatype
- Variable: query variable, allowed in patterns and stores that support it
- DefaultGraph: the unnamed graph a quad belongs to when none is given

All terms are immutable and hashable. Equality includes the term kind, so
``NamedNode("x") != Literal("x")``.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Union

from .exceptions import TermError

XSD_STRING = "http://www.w3.org/2001/XMLSchema#string"
RDF_LANG_STRING = "http://www.w3.org/1999/02/22-rdf-syntax-ns#langString"

_blank_counter = itertools.count()


@dataclass(frozen=True)
class NamedNode:
    value: str
    term_type: ClassVar[str] = "NamedNode"

    def __str__(self) -> str:
        return f"<{self.value}>"


@dataclass(frozen=True)
class BlankNode:
    value: str
    term_type: ClassVar[str] = "BlankNode"

    def __str__(self) -> str:
        return f"_:{self.value}"


@dataclass(frozen=True)
class Variable:
    value: str
    term_type: ClassVar[str] = "Variable"

    def __str__(self) -> str:
        return f"?{self.value}"


@dataclass(frozen=True)
class DefaultGraph:
    value: str = field(default="", init=False)
    term_type: ClassVar[str] = "DefaultGraph"

    def __str__(self) -> str:
        return "DEFAULT"


@dataclass(frozen=True)
class Literal:
    """Literal term.

    The datatype defaults to ``xsd:string``; a language-tagged literal always
    has ``rdf:langString`` as its datatype. Language tags are lower-cased.
    """

    value: str
    language: str = ""
    datatype: NamedNode = field(default=NamedNode(XSD_STRING))
    term_type: ClassVar[str] = "Literal"

    def __post_init__(self):
        if self.language:
            object.__setattr__(self, "language", self.language.lower())
            object.__setattr__(self, "datatype", NamedNode(RDF_LANG_STRING))

    def __str__(self) -> str:
        if self.language:
            return f'"{self.value}"@{self.language}'
        if self.datatype.value != XSD_STRING:
            return f'"{self.value}"^^{self.datatype}'
        return f'"{self.value}"'


Term = Union[NamedNode, BlankNode, Literal, Variable, DefaultGraph]

DEFAULT_GRAPH = DefaultGraph()

_SUBJECT_KINDS = (NamedNode, BlankNode, Variable)
_PREDICATE_KINDS = (NamedNode, Variable)
_OBJECT_KINDS = (NamedNode, BlankNode, Literal, Variable)
_GRAPH_KINDS = (NamedNode, BlankNode, Variable, DefaultGraph)


def _check(position: str, term: object, allowed: tuple[type, ...]) -> None:
    if not isinstance(term, allowed):
        names = ", ".join(kind.__name__ for kind in allowed)
        raise TermError(
            f"{position} must be one of {names}, got {type(term).__name__} ({term!r})"
        )


@dataclass(frozen=True)
class Quad:
    """A single fact: subject, predicate, object and the graph it lives in."""

    subject: Term
    predicate: Term
    object: Term
    graph: Term = DEFAULT_GRAPH

    def __post_init__(self):
        _check("subject", self.subject, _SUBJECT_KINDS)
        _check("predicate", self.predicate, _PREDICATE_KINDS)
        _check("object", self.object, _OBJECT_KINDS)
        _check("graph", self.graph, _GRAPH_KINDS)

    def __str__(self) -> str:
        parts = [str(self.subject), str(self.predicate), str(self.object)]
        if not isinstance(self.graph, DefaultGraph):
            parts.append(str(self.graph))
        return " ".join(parts) + " ."


@dataclass(frozen=True)
class QuadPattern:
    """Quad template; a None position matches any term."""

    subject: Optional[Term] = None
    predicate: Optional[Term] = None
    object: Optional[Term] = None
    graph: Optional[Term] = None

    def matches(self, quad: Quad) -> bool:
        return (
            (self.subject is None or self.subject == quad.subject)
            and (self.predicate is None or self.predicate == quad.predicate)
            and (self.object is None or self.object == quad.object)
            and (self.graph is None or self.graph == quad.graph)
        )

    def is_wildcard(self) -> bool:
        return (
            self.subject is None
            and self.predicate is None
            and self.object is None
            and self.graph is None
        )


def named_node(value: str) -> NamedNode:
    return NamedNode(value)


def blank_node(value: Optional[str] = None) -> BlankNode:
    """Create a blank node, generating a fresh ``b<n>`` label when omitted."""
    if value is None:
        value = f"b{next(_blank_counter)}"
    return BlankNode(value)


def literal(
    value: str,
    language_or_datatype: Union[str, NamedNode, None] = None,
) -> Literal:
    """Create a literal the way RDF/JS factories do.

    A string second argument is a language tag, a NamedNode is a datatype.
    """
    if isinstance(language_or_datatype, NamedNode):
        return Literal(value, datatype=language_or_datatype)
    if language_or_datatype:
        return Literal(value, language=language_or_datatype)
    return Literal(value)


def variable(value: str) -> Variable:
    return Variable(value)


def default_graph() -> DefaultGraph:
    return DEFAULT_GRAPH


def quad(
    subject: Term,
    predicate: Term,
    obj: Term,
    graph: Optional[Term] = None,
) -> Quad:
    return Quad(subject, predicate, obj, DEFAULT_GRAPH if graph is None else graph)


def to_graph_term(graph: Union[Term, str]) -> Term:
    """Normalize a graph identifier given as a term or a raw IRI string.

    The empty string names the default graph.
    """
    if isinstance(graph, str):
        return DEFAULT_GRAPH if graph == "" else NamedNode(graph)
    _check("graph", graph, _GRAPH_KINDS)
    return graph
