# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for notification delivery (evno.ldn.sender)."""

from __future__ import annotations

import pytest
from rdflib import URIRef

from evno.ldn.exceptions import AgentResolutionError
from evno.ldn.notification import Agent, Notification
from evno.ldn.sender import Sender
from evno.ldn.transport import SolidTransport
from evno.ldn.vocab import ActivityType

from conftest import ALICE, ALICE_REF, BOB, BOB_REF, PAPER, PAPER_REF

BOB_INBOX = "https://bob.example/inbox/"


def _posted(pod) -> Notification:
    request = pod.sent("POST", BOB_INBOX)[-1]
    assert request.headers["content-type"] == "application/ld+json"
    return Notification.decode(request.content, request.headers["content-type"])


@pytest.fixture
def sender(pod) -> Sender:
    pod.add("POST", BOB_INBOX, status_code=201, headers={"location": BOB_INBOX + "n1"})
    return Sender(SolidTransport(transport=pod), ALICE)


class TestSend:

    @pytest.mark.asyncio
    async def test_send_posts_jsonld(self, pod, sender, offer):
        result = await sender.send(offer, BOB_INBOX)
        assert result.success
        assert result.location == BOB_INBOX + "n1"
        assert _posted(pod) == offer

    @pytest.mark.asyncio
    async def test_refused_delivery(self, pod, offer):
        pod.add("POST", BOB_INBOX, status_code=401)
        result = await Sender(SolidTransport(transport=pod), ALICE).send(offer, BOB_INBOX)
        assert not result.success
        assert result.status_code == 401

    def test_actor_promoted(self, sender):
        assert sender.actor == Agent(id=ALICE_REF)


class TestSendToAgent:

    @pytest.mark.asyncio
    async def test_known_inbox_skips_lookup(self, pod, sender, offer):
        bob = Agent(id=BOB_REF, inbox=URIRef(BOB_INBOX))
        await sender.send_to_agent(offer, bob)
        assert pod.sent("GET") == []
        assert _posted(pod).id == offer.id

    @pytest.mark.asyncio
    async def test_inbox_resolved_from_profile(self, pod, sender, offer):
        pod.add(
            "GET",
            "https://bob.example/profile/card",
            content="<#me> a <http://xmlns.com/foaf/0.1/Person> ; "
                    "<http://www.w3.org/ns/ldp#inbox> </inbox/> .",
            headers={"content-type": "text/turtle"},
        )
        result = await sender.send_to_agent(offer, BOB)
        assert result.success
        assert _posted(pod).id == offer.id

    @pytest.mark.asyncio
    async def test_profile_without_inbox(self, pod, sender, offer):
        pod.add(
            "GET",
            "https://bob.example/profile/card",
            content="<#me> a <http://xmlns.com/foaf/0.1/Person> .",
            headers={"content-type": "text/turtle"},
        )
        with pytest.raises(AgentResolutionError):
            await sender.send_to_agent(offer, BOB)
        assert pod.sent("POST") == []


class TestShortcuts:

    @pytest.mark.asyncio
    async def test_offer(self, pod, sender):
        await sender.offer(PAPER, BOB_INBOX, target=BOB)
        sent = _posted(pod)
        assert sent.type == [ActivityType.OFFER]
        assert sent.actor.id == ALICE_REF
        assert sent.target.id == BOB_REF
        assert sent.object.id == PAPER_REF

    @pytest.mark.asyncio
    async def test_announce_in_reply(self, pod, sender, offer):
        await sender.announce("https://alice.example/reviews/1", BOB_INBOX, context=offer)
        sent = _posted(pod)
        assert sent.type == [ActivityType.ANNOUNCE]
        assert sent.in_reply_to == offer.id
        assert sent.context == PAPER_REF
