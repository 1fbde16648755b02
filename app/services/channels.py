"""Pick a delivery channel for each audience member.

Registered members with at least one device token get push on every device.
Only callers that pass `allow_sms=True` (group_joined) fall back to SMS for
members without a token; everyone else without a token is Unreachable and is
silently skipped.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable, Optional

import db
from app.errors import AudienceLookupFailed
from app.services.audience import AudienceResolver, Exclusion
from app.types.notification_contract import (
    Channel,
    MemberIdentity,
    PushChannel,
    Recipient,
    SmsChannel,
    Unreachable,
)

_LOGGER = logging.getLogger(__name__)


class ChannelResolver:
    def __init__(self, store: Any = db, audience: Optional[AudienceResolver] = None):
        self.store = store
        self.audience = audience or AudienceResolver(store)

    async def resolve(self, member: MemberIdentity, allow_sms: bool = False) -> Channel:
        tokens = await self._tokens_by_user([member])
        return await self._channel_for(member, tokens.get(member.user_id, []), allow_sms)

    async def resolve_all(
        self, members: Iterable[MemberIdentity], allow_sms: bool = False
    ) -> list[Recipient]:
        """Resolve many members with a single push-token query."""
        members = list(members)
        tokens = await self._tokens_by_user(members)
        recipients = []
        for member in members:
            channel = await self._channel_for(member, tokens.get(member.user_id, []), allow_sms)
            recipients.append(Recipient(member=member, channel=channel))
        return recipients

    async def _tokens_by_user(self, members: list[MemberIdentity]) -> dict[str, list[str]]:
        user_ids = [m.user_id for m in members if m.user_id]
        if not user_ids:
            return {}
        try:
            rows = await self.store.fetch_push_tokens(user_ids)
        except Exception as exc:  # noqa: BLE001
            raise AudienceLookupFailed(f"Failed to fetch push tokens: {exc}") from exc

        by_user: dict[str, list[str]] = defaultdict(list)
        for row in rows:
            token = (row.get("token") or "").strip()
            if token and token not in by_user[row["user_id"]]:
                by_user[row["user_id"]].append(token)
        _LOGGER.info(
            "Found %d push token(s) for %d user(s)",
            sum(len(v) for v in by_user.values()),
            len(set(user_ids)),
        )
        return by_user

    async def _channel_for(self, member: MemberIdentity, tokens: list[str], allow_sms: bool) -> Channel:
        if tokens:
            return PushChannel(tokens=tokens)
        if not allow_sms:
            return Unreachable()
        phone = await self._fallback_phone(member)
        if phone:
            return SmsChannel(phone=phone)
        _LOGGER.info("No push token or phone for member %s in group %s", member.key, member.group_id)
        return Unreachable()

    async def _fallback_phone(self, member: MemberIdentity) -> Optional[str]:
        # profile phone, then invited phone, then the member row's phone
        if member.user_id:
            try:
                profile = await self.store.fetch_profile(member.user_id)
            except Exception as exc:  # noqa: BLE001
                raise AudienceLookupFailed(f"Failed to fetch profile: {exc}") from exc
            if profile and profile.get("phone"):
                return profile["phone"]

        if member.invited_phone or member.phone:
            return member.invited_phone or member.phone

        invitees = await self.audience.resolve(member.group_id, Exclusion.ONLY_UNREGISTERED_MOST_RECENT)
        for invitee in invitees:
            if invitee.invited_phone or invitee.phone:
                return invitee.invited_phone or invitee.phone
        return None
