# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Per-notification statement graph.

A notification only ever holds a few dozen statements, so instead of a
full triple store the graph keeps an immutable tuple of statements plus
a ``(subject, predicate) -> objects`` index built once at construction.

Duplicate statements are collapsed (an RDF graph is a set); the order
of first occurrence is preserved so that identity resolution scans
statements in a stable order.
"""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Tuple

from rdflib.term import Node

__all__ = ["Statement", "StatementGraph"]


class Statement(NamedTuple):
    """One ``(subject, predicate, object)`` fact over rdflib terms."""

    subject: Node
    predicate: Node
    object: Node


class StatementGraph:
    """Read-only bag of statements with subject/predicate lookup."""

    __slots__ = ("_statements", "_index")

    def __init__(self, statements: Iterable[Tuple[Node, Node, Node]] = ()) -> None:
        ordered: List[Statement] = []
        seen = set()
        index: Dict[Tuple[Node, Node], List[Node]] = {}
        for raw in statements:
            stmt = Statement(*raw)
            if stmt in seen:
                continue
            seen.add(stmt)
            ordered.append(stmt)
            index.setdefault((stmt.subject, stmt.predicate), []).append(stmt.object)

        self._statements: Tuple[Statement, ...] = tuple(ordered)
        self._index: Dict[Tuple[Node, Node], Tuple[Node, ...]] = {
            key: tuple(objs) for key, objs in index.items()
        }

    # ------------------------------------------------------------------
    # Container protocol
    # ------------------------------------------------------------------

    def __iter__(self) -> Iterator[Statement]:
        return iter(self._statements)

    def __len__(self) -> int:
        return len(self._statements)

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, tuple) or len(item) != 3:
            return False
        return item[2] in self._index.get((item[0], item[1]), ())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StatementGraph):
            return NotImplemented
        return frozenset(self._statements) == frozenset(other._statements)

    def __hash__(self) -> int:
        return hash(frozenset(self._statements))

    def __repr__(self) -> str:
        return f"StatementGraph({len(self._statements)} statements)"

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def statements(self) -> Tuple[Statement, ...]:
        return self._statements

    def objects(self, subject: Node, predicate: Node) -> Tuple[Node, ...]:
        """All objects for ``(subject, predicate)``, in insertion order."""
        return self._index.get((subject, predicate), ())

    def value(self, subject: Node, predicate: Node) -> Optional[Node]:
        """First object for ``(subject, predicate)`` or ``None``."""
        objs = self._index.get((subject, predicate))
        return objs[0] if objs else None

    def match(
        self,
        subject: Optional[Node] = None,
        predicate: Optional[Node] = None,
        object: Optional[Node] = None,
    ) -> Iterator[Statement]:
        """Yield statements matching the given pattern (``None`` = wildcard)."""
        if subject is not None and predicate is not None:
            for obj in self.objects(subject, predicate):
                if object is None or obj == object:
                    yield Statement(subject, predicate, obj)
            return
        for stmt in self._statements:
            if subject is not None and stmt.subject != subject:
                continue
            if predicate is not None and stmt.predicate != predicate:
                continue
            if object is not None and stmt.object != object:
                continue
            yield stmt

    def subjects(self, predicate: Optional[Node] = None, object: Optional[Node] = None) -> List[Node]:
        """Distinct subjects matching ``(?, predicate, object)``."""
        found: List[Node] = []
        for stmt in self.match(None, predicate, object):
            if stmt.subject not in found:
                found.append(stmt.subject)
        return found
