"""Static description of every notification kind.

Adding a kind means adding one row to `EVENT_TABLE` (plus a template in
`composer.py`); the router has no per-kind branches.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from app.errors import AudienceLookupFailed, EventValidationError, InvalidEventKind
from app.services.audience import Exclusion
from app.types.notification_contract import (
    BidPlacedData,
    BidRoundStartData,
    BidUpdatedData,
    DrawCompletedData,
    GroupJoinedData,
    GroupNotificationData,
    LuckyDrawData,
    LuckyDrawStartedData,
    PaymentMarkedDoneData,
    PaymentReminderData,
    SingleNotificationData,
    WinnerDeclaredData,
)


class AudienceRule(str, Enum):
    GROUP = "group"            # members of data.groupId, after the exclusion rule
    NEW_MEMBER = "new_member"  # only data.newMemberId
    DIRECT = "direct"          # tokens are in the payload; no store lookups


ContextLoader = Callable[[Any, BaseModel], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class EventDescriptor:
    kind: str
    model: Type[BaseModel]
    template: str
    label: str
    audience: AudienceRule = AudienceRule.GROUP
    exclusion: Exclusion = Exclusion.NONE
    exclude_field: Optional[str] = None
    group_sms_event: Optional[str] = None
    sms_fallback: bool = False
    echo: Tuple[str, ...] = ("groupName",)
    loader: Optional[ContextLoader] = None
    empty_message: str = "No members to notify"

    def parse(self, data: Any) -> BaseModel:
        try:
            return self.model.model_validate(data or {})
        except ValidationError as exc:
            detail = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'data'}: {err['msg']}" for err in exc.errors()
            )
            raise EventValidationError(self.kind, detail) from exc


async def load_lucky_draw_context(store: Any, event: LuckyDrawData) -> Dict[str, Any]:
    """Group name, winner name and prize (monthly amount x members)."""
    try:
        group = await store.fetch_group(event.group_id)
        winner = await store.fetch_member(event.group_id, event.winner_id)
    except Exception as exc:  # noqa: BLE001
        raise AudienceLookupFailed(f"Failed to fetch lucky draw details: {exc}") from exc
    if not group:
        raise AudienceLookupFailed(f"Failed to fetch group details: group {event.group_id} not found")
    if not winner:
        raise AudienceLookupFailed(f"Failed to fetch winner details: {event.winner_id} not in group")

    return {
        "groupName": group.get("name"),
        "winnerName": winner.get("name"),
        "amount": (group.get("monthly_amount") or 0) * (group.get("current_members") or 0),
    }


_DESCRIPTORS = (
    EventDescriptor(
        kind="payment_reminder",
        model=PaymentReminderData,
        template="payment_reminder",
        label="payment reminder",
        exclusion=Exclusion.ONLY_PENDING,
        echo=("groupName", "daysUntilDraw"),
        empty_message="No pending members found for payment reminders",
    ),
    EventDescriptor(
        kind="single_notification",
        model=SingleNotificationData,
        template="custom",
        label="single",
        audience=AudienceRule.DIRECT,
        echo=(),
    ),
    EventDescriptor(
        kind="group_notification",
        model=GroupNotificationData,
        template="custom",
        label="group",
        audience=AudienceRule.DIRECT,
        echo=(),
    ),
    EventDescriptor(
        kind="lucky_draw",
        model=LuckyDrawData,
        template="lucky_draw",
        label="lucky draw",
        echo=("groupName", "winnerName", "amount"),
        loader=load_lucky_draw_context,
    ),
    EventDescriptor(
        kind="lucky_draw_started",
        model=LuckyDrawStartedData,
        template="lucky_draw_started",
        label="lucky draw started",
    ),
    EventDescriptor(
        kind="payment_marked_done",
        model=PaymentMarkedDoneData,
        template="payment_marked_done",
        label="payment marked done",
        echo=("groupName", "payerName", "amount"),
    ),
    EventDescriptor(
        kind="draw_completed",
        model=DrawCompletedData,
        template="draw_completed",
        label="draw completed",
    ),
    EventDescriptor(
        kind="group_joined",
        model=GroupJoinedData,
        template="group_joined",
        label="group joined",
        audience=AudienceRule.NEW_MEMBER,
        sms_fallback=True,
        echo=("groupName", "newMemberName"),
    ),
    EventDescriptor(
        kind="bid_round_start",
        model=BidRoundStartData,
        template="bid_round_start",
        label="bid round start",
        group_sms_event="bidding_start",
        echo=("groupName", "roundNumber"),
    ),
    EventDescriptor(
        kind="bid_placed",
        model=BidPlacedData,
        template="bid_placed",
        label="bid placed",
        exclusion=Exclusion.EXCLUDE_USER,
        exclude_field="bidder_id",
        echo=("groupName", "bidderName", "bidAmount"),
        empty_message="No other members to notify",
    ),
    EventDescriptor(
        kind="bid_updated",
        model=BidUpdatedData,
        template="bid_updated",
        label="bid updated",
        exclusion=Exclusion.EXCLUDE_USER,
        exclude_field="bidder_id",
        echo=("groupName", "bidderName", "bidAmount"),
        empty_message="No other members to notify",
    ),
    EventDescriptor(
        kind="winner_declared",
        model=WinnerDeclaredData,
        template="winner_declared",
        label="winner declared",
        group_sms_event="lucky_draw_winner",
        echo=("groupName", "winnerName", "winningAmount"),
    ),
)

EVENT_TABLE: Dict[str, EventDescriptor] = {d.kind: d for d in _DESCRIPTORS}


def lookup(kind: Any) -> EventDescriptor:
    descriptor = EVENT_TABLE.get(kind) if isinstance(kind, str) else None
    if descriptor is None:
        raise InvalidEventKind(kind)
    return descriptor
