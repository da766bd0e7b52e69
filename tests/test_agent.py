# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for agent resolution against WebID profile documents."""

from __future__ import annotations

import pytest
from rdflib import URIRef

from evno.ldn.agent import resolve_agent
from evno.ldn.exceptions import AgentResolutionError
from evno.ldn.notification import Agent
from evno.ldn.transport import SolidTransport
from evno.ldn.vocab import AgentType

from conftest import BOB, BOB_REF

PROFILE = "https://bob.example/profile/card"

BOB_CARD = """
@prefix foaf: <http://xmlns.com/foaf/0.1/> .
@prefix ldp: <http://www.w3.org/ns/ldp#> .

<> a foaf:PersonalProfileDocument ; foaf:primaryTopic <#me> .
<#me> a foaf:Person ;
    foaf:name "Bob" ;
    ldp:inbox </inbox/> .
"""

TWO_AGENTS = """
@prefix as: <https://www.w3.org/ns/activitystreams#> .
@prefix ldp: <http://www.w3.org/ns/ldp#> .

<#lab> a as:Organization ; as:name "Bob's Lab" ; ldp:inbox </lab/inbox/> .
<#me> a as:Person ; as:name "Bob" ; ldp:inbox </inbox/> .
"""


def _transport(pod, body: str, status_code: int = 200) -> SolidTransport:
    pod.add("GET", PROFILE, status_code=status_code, content=body, headers={"content-type": "text/turtle"})
    return SolidTransport(transport=pod)


class TestResolveAgent:

    @pytest.mark.asyncio
    async def test_without_transport_returns_reference(self):
        agent = await resolve_agent(BOB)
        assert agent == Agent(id=BOB_REF)

    @pytest.mark.asyncio
    async def test_foaf_profile(self, pod):
        t = _transport(pod, BOB_CARD)
        agent = await resolve_agent(BOB, t)
        assert agent.id == BOB_REF
        assert agent.name == "Bob"
        assert agent.inbox == URIRef("https://bob.example/inbox/")
        assert agent.type == (AgentType.PERSON,)
        await t.close()

    @pytest.mark.asyncio
    async def test_requested_id_preferred(self, pod):
        t = _transport(pod, TWO_AGENTS)
        agent = await resolve_agent(BOB, t)
        assert agent.id == BOB_REF
        assert agent.inbox == URIRef("https://bob.example/inbox/")
        await t.close()

    @pytest.mark.asyncio
    async def test_first_candidate_when_document_url_given(self, pod):
        t = _transport(pod, BOB_CARD)
        agent = await resolve_agent(PROFILE, t)
        assert agent.id == BOB_REF
        await t.close()

    @pytest.mark.asyncio
    async def test_no_person_in_document(self, pod):
        t = _transport(pod, "<#x> <http://example.org/p> <#y> .")
        with pytest.raises(AgentResolutionError):
            await resolve_agent(BOB, t)
        await t.close()

    @pytest.mark.asyncio
    async def test_unreachable_profile(self, pod):
        t = _transport(pod, "", status_code=410)
        with pytest.raises(AgentResolutionError):
            await resolve_agent(BOB, t)
        await t.close()

    @pytest.mark.asyncio
    async def test_unparseable_profile(self, pod):
        t = _transport(pod, "@prefix broken")
        with pytest.raises(AgentResolutionError):
            await resolve_agent(BOB, t)
        await t.close()
