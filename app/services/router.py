"""Entry point of the fan-out: one inbound event in, one aggregated result out.

    kind -> descriptor -> validated payload -> audience -> channels
         -> composed message -> push batches + SMS -> aggregated result

Validation and audience lookups happen before anything is sent, so an
invalid event or a store failure never produces a partial send. Once
sending starts, delivery problems only show up in the per-recipient results.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx
from pydantic import BaseModel

import db
from app.services import aggregator
from app.services.audience import AudienceResolver
from app.services.channels import ChannelResolver
from app.services.composer import compose
from app.services.events import AudienceRule, EventDescriptor, lookup
from app.services.push_dispatcher import BatchDispatcher, PushItem
from app.services.sms_fallback import SMSFallbackNotifier
from app.types.notification_contract import (
    AggregatedResult,
    DeliveryResult,
    GroupNotificationData,
    MemberIdentity,
    PushChannel,
    Recipient,
    SingleNotificationData,
    SmsChannel,
)

_LOGGER = logging.getLogger(__name__)


def _direct_tokens(event: BaseModel) -> List[str]:
    if isinstance(event, SingleNotificationData):
        return [event.to]
    if isinstance(event, GroupNotificationData):
        return list(event.tokens)
    return []


class EventRouter:
    def __init__(
        self,
        settings: Any,
        store: Any = db,
        client: Optional[httpx.AsyncClient] = None,
        push: Optional[BatchDispatcher] = None,
        sms: Optional[SMSFallbackNotifier] = None,
    ):
        self.settings = settings
        self.store = store
        self.audience = AudienceResolver(store)
        self.channels = ChannelResolver(store, self.audience)
        self.push = push or BatchDispatcher(settings, client)
        self.sms = sms or SMSFallbackNotifier(settings, client)

    async def dispatch(self, kind: Any, data: Any) -> AggregatedResult:
        """Validate, resolve, compose and deliver one event.

        Raises InvalidEventKind / EventValidationError before any lookup and
        AudienceLookupFailed before any send. Never raises for delivery errors.
        """
        descriptor = lookup(kind)
        event = descriptor.parse(data)
        template_data: Dict[str, Any] = event.model_dump(mode="json", by_alias=True)
        if descriptor.loader is not None:
            template_data.update(await descriptor.loader(self.store, event))

        echo = {k: template_data.get(k) for k in descriptor.echo}
        group_id = template_data.get("groupId")
        _LOGGER.info("Dispatching %s event (group=%s)", kind, group_id)

        members: List[MemberIdentity] = []
        if descriptor.audience is AudienceRule.DIRECT:
            recipients = [Recipient(channel=PushChannel(tokens=_direct_tokens(event)))]
        else:
            members = await self._members(descriptor, event)
            if not members:
                _LOGGER.info("%s: %s", kind, descriptor.empty_message)
                return aggregator.no_op(descriptor.empty_message, echo)
            recipients = await self.channels.resolve_all(members, allow_sms=descriptor.sms_fallback)

        message = compose(descriptor.template, template_data)
        push_batch: List[PushItem] = [
            (message, token)
            for recipient in recipients
            if isinstance(recipient.channel, PushChannel)
            for token in recipient.channel.tokens
        ]
        sms_phones = [r.channel.phone for r in recipients if isinstance(r.channel, SmsChannel)]
        group_sms = descriptor.group_sms_event is not None and any(not m.registered for m in members)

        if not push_batch and not sms_phones and not group_sms:
            _LOGGER.info("%s: no reachable recipients in group %s", kind, group_id)
            return aggregator.no_op("No push tokens found for group members", echo)

        push_results, sms_results = await asyncio.gather(
            self.push.send_push(push_batch),
            self._send_sms(descriptor, template_data, sms_phones, group_sms),
        )

        summary = f"Sent {len(push_results)} {descriptor.label} notifications"
        if sms_results:
            sent = sum(1 for r in sms_results if r.ok)
            summary += f", {sent} of {len(sms_results)} SMS request(s) accepted"
        if sms_phones and not push_results:
            summary = "SMS sent to unregistered member" if sms_results[0].ok else "SMS to unregistered member failed"
            echo["phone"] = sms_phones[0]

        result = aggregator.merge(push_results, sms_results, message=summary, extra=echo)
        _LOGGER.info(
            "%s done: %d ok, %d error", kind, result.counts.ok, result.counts.error
        )
        return result

    async def _members(self, descriptor: EventDescriptor, event: BaseModel) -> List[MemberIdentity]:
        if descriptor.audience is AudienceRule.NEW_MEMBER:
            member = await self.audience.resolve_user(
                event.group_id, event.new_member_id, event.new_member_name
            )
            return [member]
        exclude = getattr(event, descriptor.exclude_field) if descriptor.exclude_field else None
        return await self.audience.resolve(event.group_id, descriptor.exclusion, exclude)

    async def _send_sms(
        self,
        descriptor: EventDescriptor,
        template_data: Mapping[str, Any],
        phones: Sequence[str],
        group_sms: bool,
    ) -> List[DeliveryResult]:
        results: List[DeliveryResult] = []
        if group_sms:
            results.append(
                await self.sms.send_group(
                    descriptor.group_sms_event, template_data["groupId"], template_data
                )
            )
        for phone in phones:
            results.append(await self.sms.send_single(descriptor.kind, phone, template_data))
        return results
