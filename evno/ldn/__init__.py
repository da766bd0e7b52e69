# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Linked Data Notification inbox engine."""

from evno.ldn.cache import FileDedupCache, MemoryDedupCache, make_dedup_cache
from evno.ldn.exceptions import (
    AgentResolutionError,
    DecodeFailure,
    EvnoError,
    InvalidActivityComposition,
    MalformedNotification,
    TransportFailure,
    TransportStartupError,
    WatcherStateError,
)
from evno.ldn.notification import Agent, Notification, ObjectRef
from evno.ldn.sender import Sender
from evno.ldn.transport import SolidTransport
from evno.ldn.vocab import ActivityType, AgentType
from evno.ldn.watcher import DedupStrategy, InboxWatcher, WatcherEvent, WatcherState

__all__ = [
    "ActivityType",
    "Agent",
    "AgentResolutionError",
    "AgentType",
    "DecodeFailure",
    "DedupStrategy",
    "EvnoError",
    "FileDedupCache",
    "InboxWatcher",
    "InvalidActivityComposition",
    "MalformedNotification",
    "MemoryDedupCache",
    "Notification",
    "ObjectRef",
    "Sender",
    "SolidTransport",
    "TransportFailure",
    "TransportStartupError",
    "WatcherEvent",
    "WatcherState",
    "WatcherStateError",
    "make_dedup_cache",
]
