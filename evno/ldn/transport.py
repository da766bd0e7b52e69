# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Authenticated HTTP transport against a Solid pod.

The watcher, the sender and agent resolution only depend on the
:class:`Transport` protocol.  :class:`SolidTransport` implements it on
top of a single ``httpx.AsyncClient`` carrying a bearer token:

- :meth:`list_container`: GET the container as Turtle and read its
  ``ldp:contains`` members.
- :meth:`fetch`: GET a member resource (bytes + content-type).
- :meth:`post`: deliver a body to an inbox; the created resource URL
  is reported through the ``Location`` header.
- :meth:`make_container`: PUT an empty ``ldp:BasicContainer``.
- :meth:`grant_access`: add a Web Access Control authorization to the
  container's ACL document.

Token acquisition is not handled here: the token is supplied by the
caller (``EVNO_AUTH_TOKEN``).  After :meth:`connect` the session is
shared read-only by every operation.

References
----------
- W3C Linked Data Platform 1.0 §5.2: Containers
- Solid Protocol §5: Reading and writing resources
- Solid Web Access Control
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Union

import httpx
from rdflib import Graph, URIRef

from evno.config import HTTP_TIMEOUT_SECONDS
from evno.ldn.codec import TURTLE
from evno.ldn.exceptions import TransportFailure
from evno.ldn.models import SendResult
from evno.ldn.vocab import ACL, LDP, RDF

logger = logging.getLogger(__name__)

__all__ = [
    "FetchedResource",
    "Transport",
    "SolidTransport",
]

_BASIC_CONTAINER_LINK = f'<{LDP.BasicContainer}>; rel="type"'


@dataclass(frozen=True)
class FetchedResource:
    """Body and declared media type of a fetched resource."""

    url: str
    content: bytes
    content_type: Optional[str] = None


class Transport(Protocol):
    """Operations the inbox engine needs from an authenticated session."""

    @property
    def webid(self) -> Optional[str]:
        ...

    async def connect(self) -> None:
        ...

    async def list_container(self, container_url: str) -> List[str]:
        ...

    async def fetch(self, url: str) -> FetchedResource:
        ...

    async def post(self, url: str, body: Union[str, bytes], content_type: str) -> SendResult:
        ...

    async def make_container(self, container_url: str) -> None:
        ...

    async def grant_access(
        self,
        container_url: str,
        agent_id: str,
        *,
        read: bool = False,
        append: bool = True,
        write: bool = False,
    ) -> None:
        ...

    async def close(self) -> None:
        ...


# =============================================================================
# Solid / httpx implementation
# =============================================================================


class SolidTransport:
    """Bearer-token session over ``httpx.AsyncClient``.

    Parameters
    ----------
    auth_token : str
        Bearer token sent on every request (omitted when empty).
    webid : str, optional
        WebID of the session owner.  When set, :meth:`connect`
        dereferences it to confirm the session can reach the pod.
    timeout : float
        Per-request timeout in seconds.
    transport : httpx.AsyncBaseTransport, optional
        Override the network transport (used by tests).
    """

    def __init__(
        self,
        auth_token: str = "",
        webid: Optional[str] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._auth_token = auth_token
        self._webid = webid or None
        self._timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def webid(self) -> Optional[str]:
        return self._webid

    @property
    def connected(self) -> bool:
        return self._http is not None and not self._http.is_closed

    async def connect(self) -> None:
        """Open the HTTP session.  Idempotent.

        Raises
        ------
        TransportFailure
            If the owner's WebID cannot be dereferenced.
        """
        if self.connected:
            return

        headers = {}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"

        self._http = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=True,
            transport=self._transport,
        )

        if self._webid:
            try:
                await self._request("GET", self._webid, headers={"Accept": TURTLE})
            except TransportFailure:
                await self.close()
                raise
            logger.info("Session established for %s", self._webid)

    async def close(self) -> None:
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
        self._http = None

    # -------------------------------------------------------------------------
    # Internal request helper
    # -------------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[dict] = None,
        content: Optional[Union[str, bytes]] = None,
        allow_status: tuple = (),
    ) -> httpx.Response:
        if not self.connected:
            await self.connect()

        try:
            response = await self._http.request(method, url, headers=headers, content=content)
        except httpx.TimeoutException as exc:
            raise TransportFailure(f"{method} {url} timed out after {self._timeout}s") from exc
        except httpx.HTTPError as exc:
            raise TransportFailure(f"HTTP error on {method} {url}: {exc}") from exc

        if response.is_success or response.status_code in allow_status:
            return response
        raise TransportFailure.http_status(method, url, response.status_code)

    # -------------------------------------------------------------------------
    # Transport operations
    # -------------------------------------------------------------------------

    async def list_container(self, container_url: str) -> List[str]:
        """Member URLs of an LDP container, sorted."""
        response = await self._request("GET", container_url, headers={"Accept": TURTLE})

        graph = Graph()
        try:
            graph.parse(data=response.text, format="turtle", publicID=container_url)
        except Exception as exc:
            raise TransportFailure(f"Container listing for {container_url} is not valid Turtle: {exc}") from exc

        members = sorted({str(o) for o in graph.objects(URIRef(container_url), LDP.contains)})
        logger.debug("Listed %d members of %s", len(members), container_url)
        return members

    async def fetch(self, url: str) -> FetchedResource:
        response = await self._request("GET", url)
        return FetchedResource(
            url=str(response.url),
            content=response.content,
            content_type=response.headers.get("content-type"),
        )

    async def post(self, url: str, body: Union[str, bytes], content_type: str) -> SendResult:
        """POST *body* to *url*.  Non-2xx responses are reported, not raised."""
        if not self.connected:
            await self.connect()
        try:
            response = await self._http.post(url, content=body, headers={"Content-Type": content_type})
        except httpx.HTTPError as exc:
            raise TransportFailure(f"HTTP error on POST {url}: {exc}") from exc

        return SendResult(
            success=response.is_success,
            status_code=response.status_code,
            location=response.headers.get("location"),
        )

    async def make_container(self, container_url: str) -> None:
        if not container_url.endswith("/"):
            container_url += "/"
        await self._request(
            "PUT",
            container_url,
            headers={"Content-Type": TURTLE, "Link": _BASIC_CONTAINER_LINK},
            content=b"",
        )
        logger.info("Created container %s", container_url)

    async def grant_access(
        self,
        container_url: str,
        agent_id: str,
        *,
        read: bool = False,
        append: bool = True,
        write: bool = False,
    ) -> None:
        """Add a WAC authorization for *agent_id* on *container_url*.

        The container's ACL document is located through its ``Link:
        rel="acl"`` header (falling back to ``<container>.acl``).  When
        the document does not exist yet, the session owner is granted
        full control in the new document so the pod owner keeps access.
        """
        acl_url = await self._acl_url(container_url)

        response = await self._request("GET", acl_url, headers={"Accept": TURTLE}, allow_status=(404,))
        graph = Graph()
        if response.status_code == 404:
            if self._webid:
                self._add_authorization(graph, acl_url, container_url, self._webid, (ACL.Read, ACL.Write, ACL.Append, ACL.Control))
        else:
            try:
                graph.parse(data=response.text, format="turtle", publicID=acl_url)
            except Exception as exc:
                raise TransportFailure(f"ACL {acl_url} is not valid Turtle: {exc}") from exc

        modes = []
        if read:
            modes.append(ACL.Read)
        if append:
            modes.append(ACL.Append)
        if write:
            modes.append(ACL.Write)
        self._add_authorization(graph, acl_url, container_url, agent_id, tuple(modes))

        await self._request(
            "PUT",
            acl_url,
            headers={"Content-Type": TURTLE},
            content=graph.serialize(format="turtle"),
        )
        logger.info("Granted %s on %s to %s", ",".join(str(m).rsplit("#", 1)[-1] for m in modes), container_url, agent_id)

    async def _acl_url(self, resource_url: str) -> str:
        response = await self._request("HEAD", resource_url)
        link = response.links.get("acl")
        if link and link.get("url"):
            return str(response.url.join(link["url"]))
        return resource_url + ".acl"

    @staticmethod
    def _add_authorization(
        graph: Graph,
        acl_url: str,
        resource_url: str,
        agent_id: str,
        modes: tuple,
    ) -> None:
        digest = hashlib.sha256(f"{agent_id} {resource_url}".encode()).hexdigest()[:12]
        auth = URIRef(f"{acl_url}#evno-{digest}")
        graph.add((auth, RDF.type, ACL.Authorization))
        graph.add((auth, ACL.agent, URIRef(agent_id)))
        graph.add((auth, ACL.accessTo, URIRef(resource_url)))
        graph.add((auth, ACL.default, URIRef(resource_url)))
        for mode in modes:
            graph.add((auth, ACL.mode, mode))
