# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Shared test fixtures for the evno test suite.

Provides two pod doubles:

* :class:`PodTransport`: an ``httpx.AsyncBaseTransport`` serving canned
  responses per ``(method, url)``, for exercising
  :class:`~evno.ldn.transport.SolidTransport` end to end.
* :class:`FakeInbox`: an in-memory implementation of the
  :class:`~evno.ldn.transport.Transport` protocol, for driving the
  inbox watcher without HTTP.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import httpx
import pytest
from rdflib import URIRef

from evno.ldn import factory
from evno.ldn.exceptions import TransportFailure
from evno.ldn.models import SendResult
from evno.ldn.notification import Agent, Notification
from evno.ldn.transport import FetchedResource

ASSETS = Path(__file__).parent / "assets"

ALICE = "https://alice.example/profile/card#me"
BOB = "https://bob.example/profile/card#me"
POD = "https://alice.example/"
INBOX = "https://alice.example/inbox/"
PAPER = "https://alice.example/papers/ldn-2024"

ALICE_REF = URIRef(ALICE)
BOB_REF = URIRef(BOB)
INBOX_REF = URIRef(INBOX)
PAPER_REF = URIRef(PAPER)


# =========================================================================
# httpx mock transport
# =========================================================================

class PodTransport(httpx.AsyncBaseTransport):
    """Mock HTTP transport answering from a route table.

    Unrouted requests get a 404.  Fragments are ignored when matching,
    as they are never sent on the wire.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Union[Tuple[int, bytes, dict], Exception]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        status_code: int = 200,
        content: Union[str, bytes] = b"",
        headers: Optional[dict] = None,
    ) -> None:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.routes[(method, url)] = (status_code, content, headers or {})

    def fail(self, method: str, url: str, exc: Exception) -> None:
        self.routes[(method, url)] = exc

    def sent(self, method: str, url: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.method == method and (url is None or _strip(str(r.url)) == url)
        ]

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        route = self.routes.get((request.method, _strip(str(request.url))))
        if route is None:
            return httpx.Response(404, content=b"Not found")
        if isinstance(route, Exception):
            raise route
        status_code, content, headers = route
        return httpx.Response(status_code, content=content, headers=headers)


def _strip(url: str) -> str:
    return url.split("#", 1)[0]


def container_turtle(*members: str) -> str:
    """Turtle listing of an LDP container with the given member URLs."""
    lines = [
        "@prefix ldp: <http://www.w3.org/ns/ldp#> .",
        "<> a ldp:BasicContainer ;",
    ]
    if members:
        lines.append("   ldp:contains " + ", ".join(f"<{m}>" for m in members) + " .")
    else:
        lines[-1] = "<> a ldp:BasicContainer ."
    return "\n".join(lines)


# =========================================================================
# In-memory Transport
# =========================================================================

class FakeInbox:
    """In-memory pod implementing the Transport protocol."""

    def __init__(self, webid: Optional[str] = None):
        self.webid = webid
        self.resources: Dict[str, Tuple[bytes, Optional[str]]] = {}
        self.containers: Dict[str, List[str]] = {POD: [], INBOX: []}
        self.fetch_errors: set = set()
        self.list_error: Optional[Exception] = None
        self.connect_error: Optional[Exception] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.fetch_started: Optional[asyncio.Event] = None

        self.connects = 0
        self.fetches: List[str] = []
        self.created: List[str] = []
        self.grants: List[tuple] = []
        self.posted: List[tuple] = []
        self.closed = False

    def put(
        self,
        url: str,
        body: Union[str, bytes],
        content_type: Optional[str] = "application/ld+json",
        container: str = INBOX,
    ) -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.resources[url] = (body, content_type)
        members = self.containers.setdefault(container, [])
        if url not in members:
            members.append(url)

    def gate_fetches(self) -> asyncio.Event:
        """Block every fetch until the returned event is set."""
        self.fetch_gate = asyncio.Event()
        self.fetch_started = asyncio.Event()
        return self.fetch_gate

    async def connect(self) -> None:
        self.connects += 1
        if self.connect_error is not None:
            raise self.connect_error

    async def list_container(self, container_url: str) -> List[str]:
        if self.list_error is not None:
            raise self.list_error
        if container_url not in self.containers:
            raise TransportFailure.http_status("GET", container_url, 404)
        return sorted(self.containers[container_url])

    async def fetch(self, url: str) -> FetchedResource:
        self.fetches.append(url)
        if self.fetch_gate is not None:
            self.fetch_started.set()
            await self.fetch_gate.wait()
        if url in self.fetch_errors or url not in self.resources:
            raise TransportFailure.http_status("GET", url, 500 if url in self.fetch_errors else 404)
        content, content_type = self.resources[url]
        return FetchedResource(url=url, content=content, content_type=content_type)

    async def post(self, url: str, body: Union[str, bytes], content_type: str) -> SendResult:
        self.posted.append((url, body, content_type))
        return SendResult(success=True, status_code=201, location=f"{url}{len(self.posted)}")

    async def make_container(self, container_url: str) -> None:
        self.created.append(container_url)
        self.containers.setdefault(container_url, [])
        parent = container_url.rstrip("/").rsplit("/", 1)[0] + "/"
        self.containers.setdefault(parent, []).append(container_url)

    async def grant_access(self, container_url, agent_id, *, read=False, append=True, write=False) -> None:
        self.grants.append((container_url, agent_id, read, append, write))

    async def close(self) -> None:
        self.closed = True


# =========================================================================
# Fixtures
# =========================================================================

@pytest.fixture
def pod() -> PodTransport:
    return PodTransport()


@pytest.fixture
def inbox() -> FakeInbox:
    return FakeInbox()


@pytest.fixture
def alice() -> Agent:
    return Agent(id=ALICE_REF, inbox=INBOX_REF, name="Alice")


@pytest.fixture
def offer() -> Notification:
    """An Offer from Alice to Bob of Alice's paper."""
    return factory.offer(PAPER, ALICE, target=BOB)


@pytest.fixture
def offer_jsonld() -> bytes:
    return (ASSETS / "offer.jsonld").read_bytes()

