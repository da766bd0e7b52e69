# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for the Solid HTTP transport.

Uses a mock httpx transport (no real pod needed) to exercise container
listing, fetching, delivery, container creation, ACL updates and the
mapping of network errors to TransportFailure.
"""

from __future__ import annotations

import httpx
import pytest
from rdflib import Graph, URIRef

from evno.ldn.exceptions import TransportFailure
from evno.ldn.transport import SolidTransport
from evno.ldn.vocab import ACL, LDP, RDF

from conftest import ALICE, BOB, INBOX, PodTransport, container_turtle


class TimeoutTransport(httpx.AsyncBaseTransport):
    """Transport that always times out."""

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("Mock timeout")


def _client(pod, **kwargs) -> SolidTransport:
    return SolidTransport(transport=pod, **kwargs)


# =========================================================================
# Session
# =========================================================================

class TestConnect:

    @pytest.mark.asyncio
    async def test_bearer_token_sent(self, pod):
        pod.add("GET", INBOX, content=container_turtle(), headers={"content-type": "text/turtle"})
        t = _client(pod, auth_token="s3cret")
        await t.list_container(INBOX)
        assert pod.requests[0].headers["authorization"] == "Bearer s3cret"
        await t.close()

    @pytest.mark.asyncio
    async def test_no_token_no_header(self, pod):
        pod.add("GET", INBOX, content=container_turtle())
        t = _client(pod)
        await t.list_container(INBOX)
        assert "authorization" not in pod.requests[0].headers
        await t.close()

    @pytest.mark.asyncio
    async def test_webid_dereferenced_on_connect(self, pod):
        pod.add("GET", "https://alice.example/profile/card", content="")
        t = _client(pod, webid=ALICE)
        await t.connect()
        assert t.connected
        assert t.webid == ALICE
        await t.connect()
        assert len(pod.requests) == 1
        await t.close()
        assert not t.connected

    @pytest.mark.asyncio
    async def test_unreachable_webid_fails_connect(self, pod):
        t = _client(pod, webid=ALICE)
        with pytest.raises(TransportFailure) as exc_info:
            await t.connect()
        assert exc_info.value.status_code == 404
        assert not t.connected


# =========================================================================
# Reading
# =========================================================================

class TestListAndFetch:

    @pytest.mark.asyncio
    async def test_list_container_members_sorted_and_absolute(self, pod):
        pod.add("GET", INBOX, content=container_turtle("n2.jsonld", "n1.jsonld", "sub/"))
        t = _client(pod)
        members = await t.list_container(INBOX)
        assert members == [INBOX + "n1.jsonld", INBOX + "n2.jsonld", INBOX + "sub/"]
        assert pod.requests[0].headers["accept"] == "text/turtle"
        await t.close()

    @pytest.mark.asyncio
    async def test_empty_container(self, pod):
        pod.add("GET", INBOX, content=container_turtle())
        t = _client(pod)
        assert await t.list_container(INBOX) == []
        await t.close()

    @pytest.mark.asyncio
    async def test_list_http_error(self, pod):
        pod.add("GET", INBOX, status_code=500)
        t = _client(pod)
        with pytest.raises(TransportFailure) as exc_info:
            await t.list_container(INBOX)
        assert exc_info.value.status_code == 500
        await t.close()

    @pytest.mark.asyncio
    async def test_list_invalid_turtle(self, pod):
        pod.add("GET", INBOX, content="this is not turtle <")
        t = _client(pod)
        with pytest.raises(TransportFailure):
            await t.list_container(INBOX)
        await t.close()

    @pytest.mark.asyncio
    async def test_fetch(self, pod):
        url = INBOX + "n1.jsonld"
        pod.add("GET", url, content=b'{"@id": "x"}', headers={"content-type": "application/ld+json"})
        t = _client(pod)
        resource = await t.fetch(url)
        assert resource.url == url
        assert resource.content == b'{"@id": "x"}'
        assert resource.content_type == "application/ld+json"
        await t.close()

    @pytest.mark.asyncio
    async def test_fetch_missing(self, pod):
        t = _client(pod)
        with pytest.raises(TransportFailure) as exc_info:
            await t.fetch(INBOX + "gone")
        assert exc_info.value.status_code == 404
        await t.close()

    @pytest.mark.asyncio
    async def test_timeout_mapped(self):
        t = SolidTransport(transport=TimeoutTransport(), timeout=0.5)
        with pytest.raises(TransportFailure, match="timed out"):
            await t.fetch(INBOX + "n1")
        await t.close()

    @pytest.mark.asyncio
    async def test_connect_error_mapped(self, pod):
        pod.fail("GET", INBOX, httpx.ConnectError("Connection refused"))
        t = _client(pod)
        with pytest.raises(TransportFailure, match="Connection refused"):
            await t.list_container(INBOX)
        await t.close()


# =========================================================================
# Writing
# =========================================================================

class TestPost:

    @pytest.mark.asyncio
    async def test_created_location(self, pod):
        pod.add("POST", INBOX, status_code=201, headers={"location": INBOX + "abc"})
        t = _client(pod)
        result = await t.post(INBOX, '{"@id": "x"}', "application/ld+json")
        assert result.success
        assert result.status_code == 201
        assert result.location == INBOX + "abc"
        sent = pod.sent("POST", INBOX)[0]
        assert sent.headers["content-type"] == "application/ld+json"
        assert sent.content == b'{"@id": "x"}'
        await t.close()

    @pytest.mark.asyncio
    async def test_refused_is_reported_not_raised(self, pod):
        pod.add("POST", INBOX, status_code=403)
        t = _client(pod)
        result = await t.post(INBOX, b"{}", "application/ld+json")
        assert not result.success
        assert result.status_code == 403
        assert result.location is None
        await t.close()

    @pytest.mark.asyncio
    async def test_network_error_raises(self, pod):
        pod.fail("POST", INBOX, httpx.ConnectError("down"))
        t = _client(pod)
        with pytest.raises(TransportFailure):
            await t.post(INBOX, b"{}", "application/ld+json")
        await t.close()


class TestMakeContainer:

    @pytest.mark.asyncio
    async def test_put_basic_container(self, pod):
        pod.add("PUT", INBOX, status_code=201)
        t = _client(pod)
        await t.make_container(INBOX.rstrip("/"))
        put = pod.sent("PUT", INBOX)[0]
        assert 'rel="type"' in put.headers["link"]
        assert str(LDP.BasicContainer) in put.headers["link"]
        await t.close()


class TestGrantAccess:
    """WAC authorizations written to the container's ACL."""

    ACL_URL = INBOX + ".acl"

    def _acl_graph(self, pod) -> Graph:
        put = pod.sent("PUT", self.ACL_URL)[-1]
        g = Graph()
        g.parse(data=put.content.decode(), format="turtle", publicID=self.ACL_URL)
        return g

    def _modes(self, g: Graph, agent: str) -> set:
        modes = set()
        for auth in g.subjects(ACL.agent, URIRef(agent)):
            modes.update(g.objects(auth, ACL.mode))
        return modes

    @pytest.mark.asyncio
    async def test_new_acl_keeps_owner_control(self, pod):
        pod.add("GET", "https://alice.example/profile/card")
        pod.add("HEAD", INBOX, headers={"link": f'<{self.ACL_URL}>; rel="acl"'})
        pod.add("PUT", self.ACL_URL, status_code=201)
        t = _client(pod, webid=ALICE)

        await t.grant_access(INBOX, BOB, append=True)

        g = self._acl_graph(pod)
        assert self._modes(g, ALICE) == {ACL.Read, ACL.Write, ACL.Append, ACL.Control}
        assert self._modes(g, BOB) == {ACL.Append}
        for auth in g.subjects(RDF.type, ACL.Authorization):
            assert (auth, ACL.accessTo, URIRef(INBOX)) in g
            assert (auth, ACL.default, URIRef(INBOX)) in g
        await t.close()

    @pytest.mark.asyncio
    async def test_existing_acl_is_extended(self, pod):
        existing = (
            "@prefix acl: <http://www.w3.org/ns/auth/acl#> .\n"
            "<#owner> a acl:Authorization ; acl:agent <https://alice.example/profile/card#me> ;\n"
            "  acl:accessTo <./> ; acl:mode acl:Control .\n"
        )
        pod.add("HEAD", INBOX, headers={"link": '<.acl>; rel="acl"'})
        pod.add("GET", self.ACL_URL, content=existing)
        pod.add("PUT", self.ACL_URL, status_code=205)
        t = _client(pod)

        await t.grant_access(INBOX, BOB, read=True, append=True)

        g = self._acl_graph(pod)
        assert (URIRef(self.ACL_URL + "#owner"), ACL.mode, ACL.Control) in g
        assert self._modes(g, BOB) == {ACL.Read, ACL.Append}
        await t.close()

    @pytest.mark.asyncio
    async def test_acl_url_fallback(self, pod):
        pod.add("HEAD", INBOX)
        pod.add("PUT", self.ACL_URL, status_code=201)
        t = _client(pod)

        await t.grant_access(INBOX, BOB)

        assert self._modes(self._acl_graph(pod), BOB) == {ACL.Append}
        await t.close()

    @pytest.mark.asyncio
    async def test_repeated_grant_is_idempotent(self, pod):
        pod.add("HEAD", INBOX)
        pod.add("PUT", self.ACL_URL, status_code=201)
        t = _client(pod)
        await t.grant_access(INBOX, BOB)
        first = self._acl_graph(pod)

        pod.add("GET", self.ACL_URL, content=pod.sent("PUT", self.ACL_URL)[-1].content)
        await t.grant_access(INBOX, BOB)
        assert len(self._acl_graph(pod)) == len(first)
        await t.close()
