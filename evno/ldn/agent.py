# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Agent resolution: find an agent's inbox by dereferencing its id."""

from __future__ import annotations

import logging
from typing import List, Optional, Union

from rdflib import Literal, URIRef
from rdflib.term import Node

from evno.ldn.exceptions import AgentResolutionError, DecodeFailure, TransportFailure
from evno.ldn.codec import decode
from evno.ldn.graph import StatementGraph
from evno.ldn.notification import Agent, as_agent
from evno.ldn.transport import Transport
from evno.ldn.vocab import AS, FOAF, LDP, RDF, AgentType

logger = logging.getLogger(__name__)

__all__ = ["resolve_agent"]

# Subjects typed with one of these are candidate agents in a profile.
_PROFILE_AGENT_TYPES = {AS.Person, AS.Organization, FOAF.Person, FOAF.Organization}


async def resolve_agent(
    ref: Union[str, Node, Agent],
    transport: Optional[Transport] = None,
) -> Agent:
    """Resolve *ref* to an :class:`Agent` with name and inbox.

    Without a transport the reference is returned as-is (a bare id is
    promoted to a minimal Agent).  With a transport the id is
    dereferenced and the first subject typed Person or Organization is
    used; the requested id wins when it is among the candidates.

    Raises
    ------
    AgentResolutionError
        If the document cannot be fetched or decoded, or describes no
        Person/Organization.
    """
    agent = as_agent(ref)
    if transport is None:
        return agent

    url = str(agent.id)
    try:
        resource = await transport.fetch(url)
        graph = StatementGraph(decode(resource.content, resource.content_type, base=url))
    except (TransportFailure, DecodeFailure) as exc:
        raise AgentResolutionError(f"Could not dereference agent {url}: {exc}") from exc

    candidates: List[Node] = []
    for stmt in graph.match(predicate=RDF.type):
        if stmt.object in _PROFILE_AGENT_TYPES and stmt.subject not in candidates:
            candidates.append(stmt.subject)
    if not candidates:
        raise AgentResolutionError(f"No Person or Organization described at {url}")

    subject = agent.id if agent.id in candidates else candidates[0]

    name = graph.value(subject, AS.name) or graph.value(subject, FOAF.name)
    types = []
    for term in graph.objects(subject, RDF.type):
        kind = AgentType.from_term(term)
        if kind is not None and kind not in types:
            types.append(kind)

    inbox = graph.value(subject, LDP.inbox)
    resolved = Agent(
        id=subject,
        inbox=inbox if isinstance(inbox, URIRef) else None,
        name=str(name) if isinstance(name, Literal) else agent.name,
        type=tuple(types) or agent.type,
    )
    logger.debug("Resolved agent %s (inbox=%s)", subject, resolved.inbox)
    return resolved
