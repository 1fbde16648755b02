"""Who should hear about an event: group members after exclusion rules."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

import db
from app.errors import AudienceLookupFailed
from app.types.notification_contract import MemberIdentity

_LOGGER = logging.getLogger(__name__)


class Exclusion(str, Enum):
    NONE = "none"
    EXCLUDE_USER = "exclude_user"
    ONLY_PENDING = "only_pending"
    ONLY_UNREGISTERED_MOST_RECENT = "only_unregistered_most_recent"


def member_from_row(row: dict[str, Any]) -> MemberIdentity:
    return MemberIdentity(
        group_id=str(row["group_id"]),
        member_id=str(row["id"]) if row.get("id") is not None else None,
        user_id=row.get("user_id"),
        name=row.get("name"),
        phone=row.get("phone"),
        invited_phone=row.get("invited_phone"),
    )


class AudienceResolver:
    """Reads group membership from the store.

    Any store failure becomes `AudienceLookupFailed`: payloads embed totals
    computed from the audience, so a partial audience is never used.
    """

    def __init__(self, store: Any = db):
        self.store = store

    async def resolve(
        self,
        group_id: str,
        exclusion: Exclusion = Exclusion.NONE,
        user_id: Optional[str] = None,
    ) -> list[MemberIdentity]:
        if exclusion is Exclusion.EXCLUDE_USER and not user_id:
            raise ValueError("EXCLUDE_USER needs the user id to exclude")

        try:
            if exclusion is Exclusion.ONLY_UNREGISTERED_MOST_RECENT:
                row = await self.store.fetch_latest_unregistered_member(group_id)
                rows = [row] if row else []
            else:
                rows = await self.store.fetch_group_members(
                    group_id,
                    contribution_status="pending" if exclusion is Exclusion.ONLY_PENDING else None,
                    exclude_user_id=user_id if exclusion is Exclusion.EXCLUDE_USER else None,
                )
        except Exception as exc:  # noqa: BLE001
            raise AudienceLookupFailed(f"Failed to fetch group members: {exc}") from exc

        members: list[MemberIdentity] = []
        seen: set[str] = set()
        for row in rows:
            member = member_from_row(row)
            if exclusion is Exclusion.EXCLUDE_USER and member.user_id == user_id:
                continue
            if member.key in seen:
                continue
            seen.add(member.key)
            members.append(member)

        _LOGGER.info(
            "Audience for group %s (%s): %d member(s)", group_id, exclusion.value, len(members)
        )
        return members

    async def resolve_user(self, group_id: str, user_id: str, name: Optional[str] = None) -> MemberIdentity:
        """Identity of one specific member, e.g. the person who just joined."""
        try:
            row = await self.store.fetch_member(group_id, user_id)
        except Exception as exc:  # noqa: BLE001
            raise AudienceLookupFailed(f"Failed to fetch group member: {exc}") from exc
        if row:
            return member_from_row(row)
        # Not visible yet (row written in the same transaction as the event)
        return MemberIdentity(group_id=group_id, user_id=user_id, name=name)
