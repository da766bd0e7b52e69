# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""RDF wire codec for inbox notifications.

Decoding picks an rdflib parser from the declared content-type of the
response (JSON-LD, Turtle or N-Triples).  JSON-LD bodies that reference
the ActivityStreams context by URL are parsed against the bundled copy
in :mod:`evno.ldn.contexts`, so decoding never touches the network.
Encoding always produces JSON-LD compacted against an inline ``@vocab``
of ActivityStreams, which is what an LDN inbox expects on ``POST``.

The codec only moves statements in and out of bytes; identifying the
activity inside the statements is the job of
:meth:`evno.ldn.notification.Notification.parse`.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable, List, Optional, Tuple, Union

from rdflib import Graph
from rdflib.term import Node

from evno.ldn.contexts import inline_known_contexts
from evno.ldn.exceptions import DecodeFailure
from evno.ldn.graph import Statement
from evno.ldn.vocab import AS_CONTEXT

logger = logging.getLogger(__name__)

__all__ = [
    "JSON_LD",
    "TURTLE",
    "N_TRIPLES",
    "media_type",
    "rdf_format",
    "decode",
    "encode",
]

JSON_LD = "application/ld+json"
TURTLE = "text/turtle"
N_TRIPLES = "application/n-triples"

_FORMATS = {
    JSON_LD: "json-ld",
    "application/json": "json-ld",
    TURTLE: "turtle",
    N_TRIPLES: "nt",
    "text/plain": "nt",
}


def media_type(content_type: Optional[str]) -> str:
    """Strip parameters from a content-type header (``; charset=...``).

    A missing or empty header is treated as JSON-LD, the LDN default.
    """
    if not content_type:
        return JSON_LD
    return content_type.split(";", 1)[0].strip().lower() or JSON_LD


def rdf_format(content_type: Optional[str]) -> str:
    """Return the rdflib parser name for *content_type*."""
    mt = media_type(content_type)
    try:
        return _FORMATS[mt]
    except KeyError:
        raise DecodeFailure.unsupported_media_type(mt) from None


def decode(
    data: Union[bytes, str],
    content_type: Optional[str] = None,
    base: Optional[str] = None,
) -> List[Statement]:
    """Decode wire bytes into statements.

    Parameters
    ----------
    data : bytes or str
        Raw response body.
    content_type : str, optional
        Declared content-type; selects the parser.
    base : str, optional
        Base IRI for resolving relative references (usually the
        resource URL).

    Raises
    ------
    DecodeFailure
        On an unsupported content-type or any parser error.
    """
    fmt = rdf_format(content_type)
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeFailure(f"Body is not valid UTF-8: {exc}") from exc

    if fmt == "json-ld":
        data = _with_bundled_contexts(data)

    graph = Graph()
    try:
        graph.parse(data=data, format=fmt, publicID=base)
    except Exception as exc:
        raise DecodeFailure(f"Could not parse {fmt} document: {exc}") from exc

    statements = [Statement(s, p, o) for s, p, o in graph]
    logger.debug("Decoded %d statements (%s)", len(statements), fmt)
    return statements


def _with_bundled_contexts(data: str) -> str:
    try:
        doc = json.loads(data)
    except ValueError as exc:
        raise DecodeFailure(f"Could not parse json-ld document: {exc}") from exc
    return json.dumps(inline_known_contexts(doc))


def encode(statements: Iterable[Tuple[Node, Node, Node]]) -> str:
    """Serialise statements as compacted JSON-LD text."""
    graph = Graph()
    for stmt in statements:
        graph.add(tuple(stmt))
    return graph.serialize(format="json-ld", context=AS_CONTEXT, auto_compact=True)
