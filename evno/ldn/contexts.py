# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""JSON-LD context documents shipped with evno.

Inbox notifications almost always reference the ActivityStreams context
by URL.  rdflib would dereference it with a blocking HTTP request in the
middle of a watcher tick, so known context URLs are swapped for the
bundled document before a body is parsed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

__all__ = [
    "AS_CONTEXT_DOCUMENT",
    "KNOWN_CONTEXTS",
    "inline_known_contexts",
]


def _id(term: str) -> Dict[str, str]:
    return {"@id": term, "@type": "@id"}


def _typed(term: str, datatype: str) -> Dict[str, str]:
    return {"@id": term, "@type": datatype}


_AS_CLASSES = [
    "Accept", "Activity", "IntransitiveActivity", "Add", "Announce",
    "Application", "Arrive", "Article", "Audio", "Block", "Collection",
    "CollectionPage", "Relationship", "Create", "Delete", "Dislike",
    "Document", "Event", "Follow", "Flag", "Group", "Ignore", "Image",
    "Invite", "Join", "Leave", "Like", "Link", "Mention", "Note", "Object",
    "Offer", "OrderedCollection", "OrderedCollectionPage", "Organization",
    "Page", "Person", "Place", "Profile", "Question", "Reject", "Remove",
    "Service", "TentativeAccept", "TentativeReject", "Tombstone", "Undo",
    "Update", "Video", "View", "Listen", "Read", "Move", "Travel",
    "IsFollowing", "IsFollowedBy", "IsContact", "IsMember",
]

_AS_LINKS = [
    "subject", "relationship", "actor", "attributedTo", "attachment", "bcc",
    "bto", "cc", "context", "current", "first", "generator", "icon", "image",
    "inReplyTo", "items", "instrument", "last", "location", "next", "object",
    "oneOf", "anyOf", "origin", "prev", "preview", "provider", "replies",
    "result", "audience", "partOf", "tag", "target", "to", "url", "describes",
    "formerType", "outbox", "following", "followers", "streams", "endpoints",
    "uploadMedia", "proxyUrl", "liked", "oauthAuthorizationEndpoint",
    "oauthTokenEndpoint", "provideClientKey", "signClientKey", "sharedInbox",
    "likes", "shares", "alsoKnownAs",
]

_AS_DATATYPED = {
    "closed": "xsd:dateTime",
    "accuracy": "xsd:float",
    "altitude": "xsd:float",
    "duration": "xsd:duration",
    "endTime": "xsd:dateTime",
    "height": "xsd:nonNegativeInteger",
    "latitude": "xsd:float",
    "longitude": "xsd:float",
    "published": "xsd:dateTime",
    "radius": "xsd:float",
    "startIndex": "xsd:nonNegativeInteger",
    "startTime": "xsd:dateTime",
    "totalItems": "xsd:nonNegativeInteger",
    "updated": "xsd:dateTime",
    "width": "xsd:nonNegativeInteger",
    "deleted": "xsd:dateTime",
}

_AS_PLAIN = ["content", "name", "hreflang", "mediaType", "rel", "summary", "units", "preferredUsername", "source"]


def _as_context() -> Dict[str, Any]:
    ctx: Dict[str, Any] = {
        "@vocab": "_:",
        "xsd": "http://www.w3.org/2001/XMLSchema#",
        "as": "https://www.w3.org/ns/activitystreams#",
        "ldp": "http://www.w3.org/ns/ldp#",
        "vcard": "http://www.w3.org/2006/vcard/ns#",
        "id": "@id",
        "type": "@type",
    }
    ctx.update({name: f"as:{name}" for name in _AS_CLASSES})
    ctx.update({name: _id(f"as:{name}") for name in _AS_LINKS})
    ctx.update({name: _typed(f"as:{name}", dt) for name, dt in _AS_DATATYPED.items()})
    ctx.update({name: f"as:{name}" for name in _AS_PLAIN})
    ctx.update({
        "orderedItems": {"@id": "as:items", "@type": "@id", "@container": "@list"},
        "contentMap": {"@id": "as:content", "@container": "@language"},
        "nameMap": {"@id": "as:name", "@container": "@language"},
        "summaryMap": {"@id": "as:summary", "@container": "@language"},
        "href": _id("as:href"),
        "inbox": _id("ldp:inbox"),
        "Public": _id("as:Public"),
    })
    return ctx


AS_CONTEXT_DOCUMENT = {"@context": _as_context()}

# Keyed by host + path, without scheme, trailing slash or ".jsonld".
KNOWN_CONTEXTS = {
    "www.w3.org/ns/activitystreams": AS_CONTEXT_DOCUMENT,
}


def _context_key(url: str) -> str:
    pieces = urlparse(url)
    path = pieces.path.rstrip("/")
    if path.endswith(".jsonld"):
        path = path[: -len(".jsonld")]
    return f"{pieces.hostname or ''}{path}"


def _resolve(value: Any) -> Any:
    if isinstance(value, str):
        known = KNOWN_CONTEXTS.get(_context_key(value))
        if known is None:
            logger.debug("No bundled context for %s", value)
            return value
        return known["@context"]
    if isinstance(value, list):
        return [_resolve(v) for v in value]
    return value


def inline_known_contexts(doc: Any) -> Any:
    """Replace references to bundled contexts in *doc* by their content.

    Every ``@context`` in the document is visited, including those on
    nested node objects.  Unknown context URLs are left in place.
    """
    if isinstance(doc, list):
        return [inline_known_contexts(item) for item in doc]
    if not isinstance(doc, dict):
        return doc
    out = {}
    for key, value in doc.items():
        if key == "@context":
            out[key] = _resolve(value)
        else:
            out[key] = inline_known_contexts(value)
    return out
