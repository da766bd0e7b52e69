# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Inbox notification exceptions.

Identity and composition errors are raised synchronously to the caller.
Decode and transport errors raised while polling are turned into
per-resource watcher events instead of stopping the watcher.
"""


class EvnoError(Exception):
    """Base exception for notification and inbox errors."""
    pass


class MalformedNotification(EvnoError):
    """Decoded statements carry no recognisable activity identifier."""

    @classmethod
    def no_activity(cls) -> "MalformedNotification":
        return cls("The activity has no identifier: no subject is typed with an allowed activity type")

    @classmethod
    def identity_mismatch(cls, expected: str, found: str) -> "MalformedNotification":
        return cls(f"Assembled activity resolved to {found!r} instead of {expected!r}")


class InvalidActivityComposition(EvnoError):
    """A verb helper was asked to wrap or link an unsuitable activity."""

    @classmethod
    def not_an_offer(cls, verb: str, activity_id: str) -> "InvalidActivityComposition":
        return cls(f"{verb} can only respond to an Offer; {activity_id} is not typed Offer")

    @classmethod
    def forbidden_undo(cls, activity_id: str, types: list) -> "InvalidActivityComposition":
        names = ", ".join(t.value for t in types)
        return cls(f"Undo cannot wrap {activity_id} typed {names}")

    @classmethod
    def missing(cls, field: str) -> "InvalidActivityComposition":
        return cls(f"Activity field '{field}' is required")

    @classmethod
    def unknown_type(cls, value: object) -> "InvalidActivityComposition":
        return cls(f"{value!r} is not an allowed activity type")

    @classmethod
    def extended_property(cls, object_id: str) -> "InvalidActivityComposition":
        return cls(
            f"Object {object_id} carries subject/relationship/object but is not typed Relationship"
        )


class DecodeFailure(EvnoError):
    """Wire bytes could not be decoded into statements."""

    @classmethod
    def unsupported_media_type(cls, content_type: str) -> "DecodeFailure":
        return cls(f"No codec for content-type {content_type!r}")


class TransportFailure(EvnoError):
    """HTTP fetch, listing or delivery failure."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_status(cls, method: str, url: str, status_code: int) -> "TransportFailure":
        return cls(f"{method} {url} returned HTTP {status_code}", status_code=status_code)


class TransportStartupError(EvnoError):
    """Authenticated transport could not be established before polling."""
    pass


class WatcherStateError(EvnoError):
    """Illegal inbox watcher state transition."""
    pass


class AgentResolutionError(EvnoError):
    """An agent document could not be dereferenced or has no usable agent."""
    pass
