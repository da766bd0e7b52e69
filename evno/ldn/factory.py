# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Notification factory: build activities and apply verb composition rules.

:func:`build` assembles the statements of a new activity from explicit
fields.  The verb helpers (:func:`create`, :func:`offer`,
:func:`accept` ...) compose ``build`` with the linkage and validation
each verb requires:

* ``accept`` / ``reject`` only respond to an Offer; they nest the offer
  as their object, target the offer's actor and reply to the offer.
* ``undo`` refuses to wrap Offer, Accept, Reject or Announce.
* ``announce`` may be given another notification as its context, in
  which case it replies to that notification.

All validation happens before any statement is assembled.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Sequence, Union

from rdflib import Literal, URIRef
from rdflib.term import Node

from evno.ldn.exceptions import InvalidActivityComposition, MalformedNotification
from evno.ldn.graph import Statement
from evno.ldn.notification import Agent, Notification, ObjectRef, as_node
from evno.ldn.vocab import AS, LDP, RDF, ActivityType

logger = logging.getLogger(__name__)

__all__ = [
    "new_activity_id",
    "build",
    "create",
    "update",
    "remove",
    "offer",
    "announce",
    "accept",
    "reject",
    "undo",
]

AgentLike = Union[str, Node, Agent]
ObjectLike = Union[str, Node, ObjectRef, Notification]
TypeArg = Union[ActivityType, URIRef, str, Sequence[Union[ActivityType, URIRef, str]]]

# Activities that an Undo may not wrap.
_UNDO_FORBIDDEN = (
    ActivityType.OFFER,
    ActivityType.ACCEPT,
    ActivityType.REJECT,
    ActivityType.ANNOUNCE,
)


def new_activity_id() -> URIRef:
    """Fresh ``urn:uuid:`` identifier for an activity."""
    return URIRef(f"urn:uuid:{uuid.uuid4()}")


# ======================================================================
# Statement assembly
# ======================================================================


def _activity_types(value: TypeArg) -> List[ActivityType]:
    items = [value] if isinstance(value, (str, ActivityType)) else list(value)
    types: List[ActivityType] = []
    for item in items:
        kind = ActivityType.from_term(item)
        if kind is None:
            raise InvalidActivityComposition.unknown_type(item)
        if kind not in types:
            types.append(kind)
    if not types:
        raise InvalidActivityComposition.missing("type")
    return types


def _agent_statements(activity_id: Node, predicate: URIRef, agent: AgentLike) -> List[Statement]:
    if not isinstance(agent, Agent):
        return [Statement(activity_id, predicate, as_node(agent))]

    out = [Statement(activity_id, predicate, agent.id)]
    if agent.inbox is not None:
        out.append(Statement(agent.id, LDP.inbox, as_node(agent.inbox)))
    if agent.name:
        out.append(Statement(agent.id, AS.name, Literal(agent.name)))
    for kind in agent.type:
        out.append(Statement(agent.id, RDF.type, kind.iri))
    return out


def _object_statements(activity_id: Node, obj: ObjectLike) -> List[Statement]:
    if isinstance(obj, Notification):
        return [Statement(activity_id, AS.object, obj.id), *obj.statements]
    if not isinstance(obj, ObjectRef):
        return [Statement(activity_id, AS.object, as_node(obj))]

    out = [Statement(activity_id, AS.object, obj.id)]
    for t in obj.type:
        out.append(Statement(obj.id, RDF.type, as_node(t)))

    extras = {
        AS.subject: obj.subject,
        AS.relationship: obj.relationship,
        AS.object: obj.object,
    }
    if any(v is not None for v in extras.values()):
        if AS.Relationship not in {as_node(t) for t in obj.type}:
            raise InvalidActivityComposition.extended_property(str(obj.id))
        for predicate, value in extras.items():
            if value is not None:
                out.append(Statement(obj.id, predicate, as_node(value)))
    return out


def build(
    type: TypeArg,
    actor: Optional[AgentLike],
    object: Optional[ObjectLike],
    target: Optional[AgentLike] = None,
    origin: Optional[AgentLike] = None,
    in_reply_to: Optional[Union[str, Node]] = None,
    context: Optional[Union[str, Node]] = None,
    id: Optional[Union[str, Node]] = None,
) -> Notification:
    """Assemble a new notification from explicit fields.

    Parameters
    ----------
    type : ActivityType or sequence
        One or more allowed activity types.
    actor, target, origin : str, term or Agent
        A bare id, or a full :class:`Agent` whose inbox, name and types
        are asserted as well.
    object : str, term, ObjectRef or Notification
        A bare id, a full :class:`ObjectRef` (types and Relationship
        extras asserted), or a notification to nest.
    in_reply_to, context : str or term, optional
        Optional links.
    id : str or term, optional
        Activity id; a fresh ``urn:uuid:`` is generated when absent.

    Raises
    ------
    InvalidActivityComposition
        On a missing actor/object, an unknown type, or Relationship
        extras on a non-Relationship object.
    """
    types = _activity_types(type)
    if actor is None:
        raise InvalidActivityComposition.missing("actor")
    if object is None:
        raise InvalidActivityComposition.missing("object")

    activity_id = as_node(id) if id is not None else new_activity_id()

    statements: List[Statement] = [Statement(activity_id, RDF.type, t.iri) for t in types]
    statements += _agent_statements(activity_id, AS.actor, actor)
    if target is not None:
        statements += _agent_statements(activity_id, AS.target, target)
    if origin is not None:
        statements += _agent_statements(activity_id, AS.origin, origin)
    statements += _object_statements(activity_id, object)
    if in_reply_to is not None:
        statements.append(Statement(activity_id, AS.inReplyTo, as_node(in_reply_to)))
    if context is not None:
        statements.append(Statement(activity_id, AS.context, as_node(context)))

    notification = Notification.parse(statements)
    if notification.id != activity_id:
        raise MalformedNotification.identity_mismatch(str(activity_id), str(notification.id))

    logger.debug("Built %r", notification)
    return notification


# ======================================================================
# Verb helpers
# ======================================================================


def create(object: ObjectLike, actor: AgentLike, target: Optional[AgentLike] = None) -> Notification:
    return build(ActivityType.CREATE, actor, object, target=target)


def update(object: ObjectLike, actor: AgentLike, target: Optional[AgentLike] = None) -> Notification:
    return build(ActivityType.UPDATE, actor, object, target=target)


def remove(object: ObjectLike, actor: AgentLike, target: Optional[AgentLike] = None) -> Notification:
    return build(ActivityType.REMOVE, actor, object, target=target)


def offer(object: ObjectLike, actor: AgentLike, target: Optional[AgentLike] = None) -> Notification:
    return build(ActivityType.OFFER, actor, object, target=target)


def announce(
    object: ObjectLike,
    actor: AgentLike,
    context: Optional[Union[str, Node, Notification]] = None,
) -> Notification:
    """Announce *object*; a notification given as *context* is replied to.

    When *context* is a notification, ``in_reply_to`` becomes its id and
    ``context`` becomes the id of its object.
    """
    in_reply_to = None
    if isinstance(context, Notification):
        in_reply_to = context.id
        announced = context.object
        context = announced.id if announced is not None else None
    return build(ActivityType.ANNOUNCE, actor, object, in_reply_to=in_reply_to, context=context)


def accept(offer: Notification, actor: Optional[AgentLike] = None) -> Notification:
    """Accept an Offer.  *actor* defaults to the offer's target."""
    return _respond(ActivityType.ACCEPT, offer, actor)


def reject(offer: Notification, actor: Optional[AgentLike] = None) -> Notification:
    """Reject an Offer.  *actor* defaults to the offer's target."""
    return _respond(ActivityType.REJECT, offer, actor)


def _respond(kind: ActivityType, offer: Notification, actor: Optional[AgentLike]) -> Notification:
    if not offer.is_type(ActivityType.OFFER):
        raise InvalidActivityComposition.not_an_offer(kind.value, str(offer.id))

    if actor is None:
        actor = offer.target
    offered = offer.object
    return build(
        kind,
        actor,
        offer,
        target=offer.actor,
        in_reply_to=offer.id,
        context=offered.id if offered is not None else None,
    )


def undo(activity: Notification, actor: Optional[AgentLike] = None) -> Notification:
    """Undo a previous activity.  *actor* defaults to the activity's actor."""
    forbidden = [t for t in activity.type if t in _UNDO_FORBIDDEN]
    if forbidden:
        raise InvalidActivityComposition.forbidden_undo(str(activity.id), forbidden)

    if actor is None:
        actor = activity.actor
    undone = activity.object
    return build(
        ActivityType.UNDO,
        actor,
        activity,
        context=undone.id if undone is not None else None,
    )
