# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Deliver notifications to LDN inboxes."""

from __future__ import annotations

import logging
from typing import Optional, Union

from rdflib.term import Node

from evno.ldn import factory
from evno.ldn.agent import resolve_agent
from evno.ldn.codec import JSON_LD
from evno.ldn.exceptions import AgentResolutionError
from evno.ldn.models import SendResult
from evno.ldn.notification import Agent, Notification, ObjectRef, as_agent
from evno.ldn.transport import Transport

log = logging.getLogger(__name__)

__all__ = ["Sender"]


class Sender:
    """Posts notifications on behalf of one actor.

    Args:
        transport: Authenticated session used for delivery and for
            dereferencing recipients.
        actor: The sending agent, used by the verb shortcuts.
    """

    def __init__(self, transport: Transport, actor: Union[str, Node, Agent]):
        self._transport = transport
        self._actor = as_agent(actor)

    @property
    def actor(self) -> Agent:
        return self._actor

    async def send(self, notification: Notification, inbox_url: str) -> SendResult:
        """Encode *notification* as JSON-LD and POST it to *inbox_url*."""
        await self._transport.connect()
        body = notification.serialize()
        result = await self._transport.post(inbox_url, body, JSON_LD)
        if result.success:
            log.info(f"Notification {notification.id} delivered at {result.location}")
        else:
            log.warning(
                f"Delivery of {notification.id} to {inbox_url} failed with HTTP {result.status_code}"
            )
        return result

    async def send_to_agent(
        self, notification: Notification, agent: Union[str, Node, Agent]
    ) -> SendResult:
        """Resolve *agent*'s inbox and deliver *notification* there."""
        recipient = as_agent(agent)
        if recipient.inbox is None:
            recipient = await resolve_agent(recipient, self._transport)
        if recipient.inbox is None:
            raise AgentResolutionError(f"Agent {recipient.id} advertises no inbox")
        return await self.send(notification, str(recipient.inbox))

    async def announce(
        self,
        object: Union[str, Node, ObjectRef],
        inbox_url: str,
        context: Optional[Union[str, Node, Notification]] = None,
    ) -> SendResult:
        notification = factory.announce(object, self._actor, context=context)
        return await self.send(notification, inbox_url)

    async def offer(
        self,
        object: Union[str, Node, ObjectRef],
        inbox_url: str,
        target: Optional[Union[str, Node, Agent]] = None,
    ) -> SendResult:
        notification = factory.offer(object, self._actor, target=target)
        return await self.send(notification, inbox_url)
