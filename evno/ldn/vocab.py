# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Vocabularies and closed type sets used by inbox notifications.

Notifications follow the ActivityStreams 2.0 model.  Only a small,
closed subset of activity and actor types is recognised; everything
else in a decoded document is carried along as plain statements but
never used to identify the activity.

References
----------
- W3C ActivityStreams 2.0 Vocabulary
- W3C Linked Data Notifications (``ldp:inbox``)
- Solid Web Access Control (``acl:``)
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from rdflib import URIRef
from rdflib.term import Node
from rdflib.namespace import FOAF, RDF, Namespace

__all__ = [
    "AS",
    "ACL",
    "FOAF",
    "LDP",
    "RDF",
    "AS_CONTEXT",
    "ActivityType",
    "AgentType",
]

AS_URI = "https://www.w3.org/ns/activitystreams#"
AS = Namespace(AS_URI)

LDP_URI = "http://www.w3.org/ns/ldp#"
LDP = Namespace(LDP_URI)

ACL_URI = "http://www.w3.org/ns/auth/acl#"
ACL = Namespace(ACL_URI)

# Inline context used when compacting outgoing JSON-LD.  Kept local so
# that encoding never needs to dereference the remote AS context.
AS_CONTEXT = {"@vocab": AS_URI}


class ActivityType(str, Enum):
    """Activity verbs an inbox notification may carry."""

    CREATE = "Create"
    UPDATE = "Update"
    REMOVE = "Remove"
    ANNOUNCE = "Announce"
    OFFER = "Offer"
    ACCEPT = "Accept"
    REJECT = "Reject"
    UNDO = "Undo"

    @property
    def iri(self) -> URIRef:
        return AS[self.value]

    @classmethod
    def from_term(cls, term: object) -> Optional["ActivityType"]:
        """Map an RDF term (or short name) to an activity type, if allowed."""
        return _lookup(cls, term)


class AgentType(str, Enum):
    """Actor types recognised on ``actor``, ``target`` and ``origin``."""

    PERSON = "Person"
    ORGANIZATION = "Organization"
    APPLICATION = "Application"
    GROUP = "Group"
    SERVICE = "Service"

    @property
    def iri(self) -> URIRef:
        return AS[self.value]

    @classmethod
    def from_term(cls, term: object) -> Optional["AgentType"]:
        found = _lookup(cls, term)
        if found is None and term in _FOAF_AGENT_TYPES:
            return _FOAF_AGENT_TYPES[term]
        return found


# WebID profiles usually type their subject with FOAF rather than AS.
_FOAF_AGENT_TYPES = {
    FOAF.Person: AgentType.PERSON,
    FOAF.Organization: AgentType.ORGANIZATION,
    FOAF.Group: AgentType.GROUP,
}


def _lookup(enum_cls, term: object):
    if isinstance(term, enum_cls):
        return term
    if isinstance(term, URIRef):
        value = str(term)
        if not value.startswith(AS_URI):
            return None
        value = value[len(AS_URI):]
    elif isinstance(term, str) and not isinstance(term, Node):
        value = term[len(AS_URI):] if term.startswith(AS_URI) else term
    else:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        return None

