# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Notification entity: identity and typed views over a statement graph.

A :class:`Notification` wraps the statements of one activity record.
Its identity is resolved once, at construction, by scanning the
``rdf:type`` statements for a subject typed with an allowed
:class:`~evno.ldn.vocab.ActivityType`.  A subject that is itself the
``as:object`` of another statement is skipped, so that an Offer nested
inside an Accept is never mistaken for the outer activity.

Every other view (``type``, ``actor``, ``object`` ...) is a pure
projection recomputed from the graph on each access.  The graph is
never mutated after construction.

References
----------
- W3C ActivityStreams 2.0 Core §4: Activities
- W3C Linked Data Notifications §3.2: Sending notifications
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from rdflib import BNode, Literal, URIRef
from rdflib.term import Node

from evno.ldn.codec import decode, encode
from evno.ldn.exceptions import MalformedNotification
from evno.ldn.graph import Statement, StatementGraph
from evno.ldn.vocab import AS, LDP, RDF, ActivityType, AgentType

logger = logging.getLogger(__name__)

__all__ = [
    "Agent",
    "ObjectRef",
    "Notification",
    "as_node",
    "as_agent",
]


# ======================================================================
# Reference types
# ======================================================================


@dataclass(frozen=True)
class Agent:
    """A participant in an activity.

    Attributes
    ----------
    id : URIRef
        The agent's WebID or other identifier.
    inbox : URIRef or None
        Advertised ``ldp:inbox``.
    name : str or None
        Display name (``as:name``).
    type : tuple[AgentType, ...]
        Recognised actor types.
    """

    id: Node
    inbox: Optional[URIRef] = None
    name: Optional[str] = None
    type: Tuple[AgentType, ...] = ()


@dataclass(frozen=True)
class ObjectRef:
    """The ``as:object`` of an activity.

    ``subject``, ``relationship`` and ``object`` are only populated when
    the object is typed ``as:Relationship``.
    """

    id: Node
    type: Tuple[URIRef, ...] = ()
    subject: Optional[Node] = None
    relationship: Optional[Node] = None
    object: Optional[Node] = None

    @property
    def is_relationship(self) -> bool:
        return AS.Relationship in self.type


Ref = Union[str, Node]


def as_node(value: object) -> Node:
    """Coerce an id-like value (str, term, Agent, ObjectRef, Notification)."""
    if isinstance(value, (URIRef, BNode, Literal)):
        return value
    if isinstance(value, (Agent, ObjectRef, Notification)):
        return value.id
    if isinstance(value, str):
        return URIRef(value)
    raise TypeError(f"Cannot use {type(value).__name__} as an identifier")


def as_agent(value: Union[Ref, Agent]) -> Agent:
    """Promote a bare id to a minimal :class:`Agent`."""
    if isinstance(value, Agent):
        return value
    return Agent(id=as_node(value))


# ======================================================================
# Notification
# ======================================================================


class Notification:
    """One activity record backed by an immutable statement graph."""

    __slots__ = ("_graph", "_id")

    def __init__(self, graph: StatementGraph, activity_id: Node) -> None:
        self._graph = graph
        self._id = activity_id

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def parse(cls, statements: Iterable[Tuple[Node, Node, Node]]) -> "Notification":
        """Identify the activity in *statements* and wrap them.

        The accepted id is the first subject typed with an allowed
        activity type that is not also the ``as:object`` of another
        statement.

        Raises
        ------
        MalformedNotification
            If no such subject exists.
        """
        graph = statements if isinstance(statements, StatementGraph) else StatementGraph(statements)

        wrapped = {stmt.object for stmt in graph.match(predicate=AS.object)}
        for stmt in graph.match(predicate=RDF.type):
            if ActivityType.from_term(stmt.object) is None:
                continue
            if stmt.subject in wrapped:
                continue
            return cls(graph, stmt.subject)

        raise MalformedNotification.no_activity()

    @classmethod
    def decode(
        cls,
        data: Union[bytes, str],
        content_type: Optional[str] = None,
        base: Optional[str] = None,
    ) -> "Notification":
        """Decode wire bytes and parse the resulting statements."""
        return cls.parse(decode(data, content_type, base=base))

    def serialize(self) -> str:
        """Encode this notification as compacted JSON-LD."""
        return encode(self._graph)

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def id(self) -> Node:
        return self._id

    @property
    def graph(self) -> StatementGraph:
        return self._graph

    @property
    def statements(self) -> Tuple[Statement, ...]:
        return self._graph.statements

    @property
    def type(self) -> List[ActivityType]:
        """All allowed activity types attached to the id."""
        found: List[ActivityType] = []
        for term in self._graph.objects(self._id, RDF.type):
            kind = ActivityType.from_term(term)
            if kind is not None and kind not in found:
                found.append(kind)
        return found

    def is_type(self, *types: Union[ActivityType, URIRef, str]) -> bool:
        """True when the activity carries any of *types*."""
        mine = self.type
        for t in types:
            kind = ActivityType.from_term(t)
            if kind is not None and kind in mine:
                return True
        return False

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def actor(self) -> Optional[Agent]:
        return self._agent(AS.actor)

    @property
    def target(self) -> Optional[Agent]:
        return self._agent(AS.target)

    @property
    def origin(self) -> Optional[Agent]:
        return self._agent(AS.origin)

    @property
    def object(self) -> Optional[ObjectRef]:
        ref = self._graph.value(self._id, AS.object)
        if ref is None:
            return None
        types = tuple(t for t in self._graph.objects(ref, RDF.type) if isinstance(t, URIRef))
        if AS.Relationship not in types:
            return ObjectRef(id=ref, type=types)
        return ObjectRef(
            id=ref,
            type=types,
            subject=self._graph.value(ref, AS.subject),
            relationship=self._graph.value(ref, AS.relationship),
            object=self._graph.value(ref, AS.object),
        )

    @property
    def in_reply_to(self) -> Optional[Node]:
        return self._graph.value(self._id, AS.inReplyTo)

    @property
    def context(self) -> Optional[Node]:
        return self._graph.value(self._id, AS.context)

    def _agent(self, predicate: URIRef) -> Optional[Agent]:
        ref = self._graph.value(self._id, predicate)
        if ref is None:
            return None
        name = self._graph.value(ref, AS.name)
        types = []
        for term in self._graph.objects(ref, RDF.type):
            kind = AgentType.from_term(term)
            if kind is not None and kind not in types:
                types.append(kind)
        return Agent(
            id=ref,
            inbox=self._graph.value(ref, LDP.inbox),
            name=str(name) if name is not None else None,
            type=tuple(types),
        )

    # ------------------------------------------------------------------
    # Dunder
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Notification):
            return NotImplemented
        return self._id == other._id and self._graph == other._graph

    def __hash__(self) -> int:
        return hash((self._id, self._graph))

    def __repr__(self) -> str:
        names = ",".join(t.value for t in self.type)
        return f"Notification(id={str(self._id)!r}, type={names})"
