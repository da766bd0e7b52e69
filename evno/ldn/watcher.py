# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Inbox watcher: poll an LDN inbox and emit each new notification once.

The watcher runs a single asyncio task that ticks at a fixed interval.
Each tick lists the inbox and processes its members one by one:

1. fetch the member (failure → ``fetch-error`` event);
2. decode it into a :class:`~evno.ldn.notification.Notification`
   (failure → ``parse-error`` event);
3. derive the dedup key (resource URL or activity id, per
   :class:`DedupStrategy`) and the SHA256 fingerprint of the raw bytes;
4. emit a ``notification`` event and store the fingerprint when the key
   is unknown or its fingerprint changed; otherwise skip.

Under the activity-id strategy the cache entry also records the resource
that first carried the activity.  Another resource with the same id is a
redelivery and is skipped whatever its bytes; only a change at the first
resource is emitted again.

A failing member never aborts the tick.  A failing *listing* aborts
only the current tick (``list-error`` event); the next tick retries at
the same interval.

State machine
-------------
``IDLE → POLLING → STOPPED``.  :meth:`InboxWatcher.stop` is cooperative:
it lets the in-flight tick run to completion, and once it returns no
further events are emitted and :meth:`InboxWatcher.events` terminates.

Events are handed to the consumer through an ``asyncio.Queue``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, List, Optional, Union

from rdflib.term import Node

from evno.config import INBOX_PATH, POLL_INTERVAL_SECONDS
from evno.ldn.cache import DedupCache, MemoryDedupCache, fingerprint
from evno.ldn.exceptions import (
    DecodeFailure,
    EvnoError,
    MalformedNotification,
    TransportFailure,
    TransportStartupError,
    WatcherStateError,
)
from evno.ldn.models import EventKind, EventRecord
from evno.ldn.notification import Agent, Notification, as_node
from evno.ldn.transport import Transport

logger = logging.getLogger("evno.watcher")

__all__ = [
    "DedupStrategy",
    "WatcherState",
    "WatcherEvent",
    "InboxWatcher",
]


# ======================================================================
# Strategy / state / events
# ======================================================================


class DedupStrategy(str, Enum):
    """Which identity a notification is deduplicated by.

    RESOURCE_URL
        The physical inbox resource: two resources carrying the same
        activity are both emitted.
    ACTIVITY_ID
        The logical activity: a re-delivery of the same activity under a
        new resource URL is not emitted again.
    """

    RESOURCE_URL = "resource_url"
    ACTIVITY_ID = "activity_id"

    @classmethod
    def parse(cls, value: Union[str, "DedupStrategy"]) -> "DedupStrategy":
        if isinstance(value, cls):
            return value
        if value in _LEGACY_STRATEGY_NAMES:
            return _LEGACY_STRATEGY_NAMES[value]
        return cls(value)


# Earlier releases named the resource-URL strategy "notification_id".
_LEGACY_STRATEGY_NAMES = {"notification_id": DedupStrategy.RESOURCE_URL}


class WatcherState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    STOPPED = "stopped"


@dataclass(frozen=True)
class WatcherEvent:
    """One item of the watcher event stream."""

    kind: EventKind
    resource: str
    notification: Optional[Notification] = None
    error: Optional[BaseException] = None

    def to_record(self, include_body: bool = False) -> EventRecord:
        n = self.notification
        return EventRecord(
            kind=self.kind,
            resource=self.resource,
            activity_id=str(n.id) if n is not None else None,
            types=[t.value for t in n.type] if n is not None else [],
            error=str(self.error) if self.error is not None else None,
            body=n.serialize() if (n is not None and include_body) else None,
        )


_END = object()

# Activity-id entries record where the activity was first seen: "<url>|<sha256>".
_ENTRY_SEP = "|"


# ======================================================================
# InboxWatcher
# ======================================================================


class InboxWatcher:
    """Polls one inbox and emits newly seen notifications.

    Parameters
    ----------
    transport : Transport
        Authenticated session used for listing and fetching.
    cache : DedupCache, optional
        Dedup state; an in-memory cache is used when omitted.
    interval : float
        Seconds between the end of one tick and the start of the next.
    """

    def __init__(
        self,
        transport: Transport,
        cache: Optional[DedupCache] = None,
        interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self._transport = transport
        self._cache = cache if cache is not None else MemoryDedupCache()
        self._interval = interval

        self._state = WatcherState.IDLE
        self._stop_requested = False
        self._wakeup = asyncio.Event()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

        self._inbox_url: Optional[str] = None
        self._strategy = DedupStrategy.ACTIVITY_ID
        self._ticks = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def inbox_url(self) -> Optional[str]:
        return self._inbox_url

    @property
    def strategy(self) -> DedupStrategy:
        return self._strategy

    @property
    def ticks(self) -> int:
        """Number of completed ticks."""
        return self._ticks

    @property
    def webid(self) -> Optional[str]:
        return self._transport.webid

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        inbox_url: str,
        strategy: Union[str, DedupStrategy] = DedupStrategy.ACTIVITY_ID,
    ) -> "InboxWatcher":
        """Connect the transport and begin polling *inbox_url*.

        Raises
        ------
        WatcherStateError
            If the watcher is already polling or has been stopped.
        TransportStartupError
            If the transport cannot be established; no polling begins.
        """
        if self._state is not WatcherState.IDLE:
            raise WatcherStateError(f"Cannot start a watcher in state {self._state.value}")

        strategy = DedupStrategy.parse(strategy)
        try:
            await self._transport.connect()
        except Exception as exc:
            raise TransportStartupError(f"Could not establish session for {inbox_url}: {exc}") from exc

        self._inbox_url = inbox_url
        self._strategy = strategy
        self._state = WatcherState.POLLING
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Watching %s every %.1fs (strategy=%s)", inbox_url, self._interval, strategy.value
        )
        return self

    async def stop(self) -> None:
        """Request a stop and wait for the in-flight tick to finish.  Idempotent."""
        self._stop_requested = True
        self._wakeup.set()

        if self._task is not None:
            await self._task
            return

        if self._state is WatcherState.IDLE:
            self._state = WatcherState.STOPPED
            self._queue.put_nowait(_END)

    async def _run(self) -> None:
        try:
            while not self._stop_requested:
                try:
                    await self.poll_once()
                except Exception:
                    logger.exception("Tick %d on %s failed", self._ticks + 1, self._inbox_url)
                self._ticks += 1

                if self._stop_requested:
                    break
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=self._interval)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._state = WatcherState.STOPPED
            self._queue.put_nowait(_END)
            logger.info("Stopped watching %s after %d ticks", self._inbox_url, self._ticks)

    # ------------------------------------------------------------------
    # Event stream
    # ------------------------------------------------------------------

    async def events(self) -> AsyncIterator[WatcherEvent]:
        """Yield events until the watcher stops."""
        while True:
            item = await self._queue.get()
            if item is _END:
                # Leave the marker for any other consumer.
                self._queue.put_nowait(_END)
                return
            yield item

    async def next_event(self, timeout: Optional[float] = None) -> Optional[WatcherEvent]:
        """Next event, or ``None`` once stopped (or on *timeout*)."""
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if item is _END:
            self._queue.put_nowait(_END)
            return None
        return item

    def _emit(self, event: WatcherEvent) -> None:
        self._queue.put_nowait(event)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def poll_once(
        self,
        inbox_url: Optional[str] = None,
        strategy: Optional[Union[str, DedupStrategy]] = None,
    ) -> List[WatcherEvent]:
        """Run one tick and return the events it emitted.

        *inbox_url* and *strategy* default to the values given to
        :meth:`start`; passing them allows one-shot polling without
        starting the loop.
        """
        inbox_url = inbox_url or self._inbox_url
        if inbox_url is None:
            raise WatcherStateError("No inbox to poll; pass inbox_url or call start()")
        strategy = DedupStrategy.parse(strategy) if strategy is not None else self._strategy

        try:
            members = await self._transport.list_container(inbox_url)
        except EvnoError as exc:
            logger.warning("Listing %s failed: %s", inbox_url, exc)
            event = WatcherEvent(EventKind.LIST_ERROR, inbox_url, error=exc)
            self._emit(event)
            return [event]

        emitted: List[WatcherEvent] = []
        for url in members:
            if url.endswith("/"):
                logger.debug("Skipping sub-container %s", url)
                continue
            event = await self._process(url, strategy)
            if event is not None:
                self._emit(event)
                emitted.append(event)
        return emitted

    async def _process(self, url: str, strategy: DedupStrategy) -> Optional[WatcherEvent]:
        try:
            resource = await self._transport.fetch(url)
        except TransportFailure as exc:
            logger.warning("Fetching %s failed: %s", url, exc)
            return WatcherEvent(EventKind.FETCH_ERROR, url, error=exc)
        except Exception as exc:
            logger.warning("Fetching %s failed (%s): %s", url, type(exc).__name__, exc)
            return WatcherEvent(EventKind.FETCH_ERROR, url, error=exc)

        try:
            notification = Notification.decode(resource.content, resource.content_type, base=url)
        except (DecodeFailure, MalformedNotification) as exc:
            logger.warning("Parsing %s failed: %s", url, exc)
            return WatcherEvent(EventKind.PARSE_ERROR, url, error=exc)

        digest = fingerprint(resource.content)
        if strategy is DedupStrategy.RESOURCE_URL:
            key, entry = url, digest
        else:
            key, entry = str(notification.id), f"{url}{_ENTRY_SEP}{digest}"

        cached = await self._cache.get(key)
        if cached == entry:
            logger.debug("Already seen %s (key=%s)", url, key)
            return None
        if cached is not None and strategy is DedupStrategy.ACTIVITY_ID:
            seen_at = cached.rpartition(_ENTRY_SEP)[0]
            if seen_at != url:
                logger.debug("Skipping redelivery of %s at %s (first seen at %s)", key, url, seen_at)
                return None

        await self._cache.set(key, entry)
        logger.info("New notification %s at %s", notification.id, url)
        return WatcherEvent(EventKind.NOTIFICATION, url, notification=notification)

    # ------------------------------------------------------------------
    # Inbox setup
    # ------------------------------------------------------------------

    async def init_inbox(self, base_url: str, inbox_path: str = INBOX_PATH) -> str:
        """Create the inbox container under *base_url* if missing.

        The session owner is granted read and append on the inbox.
        Returns the inbox URL.
        """
        if not base_url.endswith("/"):
            base_url += "/"
        inbox_url = base_url + inbox_path.lstrip("/")
        if not inbox_url.endswith("/"):
            inbox_url += "/"

        await self._transport.connect()
        members = await self._transport.list_container(base_url)
        if inbox_url in members:
            logger.info("Container %s already exists", inbox_url)
        else:
            logger.info("Creating container at %s", inbox_url)
            await self._transport.make_container(inbox_url)

        owner = self._transport.webid
        if owner:
            logger.info("Setting read and append permissions on %s", inbox_url)
            await self._transport.grant_access(inbox_url, owner, read=True, append=True)
        else:
            logger.warning("No WebID configured; leaving permissions on %s unchanged", inbox_url)
        return inbox_url

    async def grant_access(self, inbox_url: str, agent: Union[str, Node, Agent]) -> None:
        """Allow *agent* to append notifications to *inbox_url*."""
        agent_id = str(as_node(agent))
        logger.info("Granting %s append permissions on %s", agent_id, inbox_url)
        await self._transport.grant_access(inbox_url, agent_id, append=True)
