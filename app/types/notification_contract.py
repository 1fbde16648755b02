"""Pydantic models shared by the notification pipeline.

Inbound event payloads use the camelCase field names the mobile app and the
database triggers send (`groupId`, `daysUntilDraw`, ...). Python code works
with the snake_case attributes; both spellings validate.

These classes do not import FastAPI, SQLAlchemy or httpx so workers, the API
and tests can share them freely.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Literal, Optional, Union
from typing_extensions import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

EventKind = Literal[
    "payment_reminder",
    "single_notification",
    "group_notification",
    "lucky_draw",
    "lucky_draw_started",
    "payment_marked_done",
    "draw_completed",
    "group_joined",
    "bid_round_start",
    "bid_placed",
    "bid_updated",
    "winner_declared",
]

Amount = Union[int, float]
PushPriority = Literal["default", "normal", "high"]
AndroidPriority = Literal["default", "low", "min", "high", "max"]


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ──────────────────────────────
# Inbound event data, one model per kind
# ──────────────────────────────


class PaymentReminderData(_Payload):
    group_id: str
    group_name: str
    amount: Amount
    draw_date: date
    days_until_draw: Optional[int] = None


class AndroidHints(_Payload):
    channel_id: Optional[str] = None
    priority: Optional[AndroidPriority] = None


class SingleNotificationData(_Payload):
    """A fully-formed push message addressed to one token."""

    to: str
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None
    priority: Optional[PushPriority] = None
    sound: Optional[str] = None
    android: Optional[AndroidHints] = None


class GroupNotificationData(_Payload):
    tokens: List[str]
    title: str
    body: str
    data: Optional[Dict[str, Any]] = None

    @field_validator("tokens")
    def _require_tokens(cls, v: list[str]):  # noqa: N805
        tokens = [t.strip() for t in v if t and t.strip()]
        if not tokens:
            raise ValueError("No tokens provided")
        return tokens


class LuckyDrawData(_Payload):
    group_id: str
    winner_id: str


class LuckyDrawStartedData(_Payload):
    group_id: str
    group_name: str
    admin_name: str
    timestamp: Optional[str] = None


class PaymentMarkedDoneData(_Payload):
    group_id: str
    payer_name: str
    group_name: str
    amount: Amount


class DrawCompletedData(_Payload):
    group_id: str
    group_name: str


class GroupJoinedData(_Payload):
    group_id: str
    group_name: str
    new_member_name: str
    new_member_id: str
    admin_name: Optional[str] = None
    next_draw_date: Optional[str] = None


class BidRoundStartData(_Payload):
    group_id: str
    group_name: str
    round_number: int
    admin_name: Optional[str] = None


class BidPlacedData(_Payload):
    group_id: str
    group_name: str
    round_number: int
    bidder_name: str
    bidder_id: str
    bid_amount: Amount


class BidUpdatedData(BidPlacedData):
    pass


class WinnerDeclaredData(_Payload):
    group_id: str
    group_name: str
    round_number: int
    winner_name: str
    winner_id: str
    winning_amount: Amount


class NotificationRequest(BaseModel):
    """Body of POST /functions/v1/send-notifications (and /send-sms).

    Both fields are left loose here; an unknown or missing type and a
    malformed data object are rejected downstream with a 400.
    """

    type: Any = None
    data: Any = None


# ──────────────────────────────
# Audience and channels
# ──────────────────────────────


class MemberIdentity(BaseModel):
    """One `group_members` row as seen by the dispatcher.

    `user_id` is None for invitees who have not registered in the app yet.
    """

    model_config = ConfigDict(frozen=True)

    group_id: str
    member_id: Optional[str] = None
    user_id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    invited_phone: Optional[str] = None

    @property
    def key(self) -> str:
        return self.user_id or f"member:{self.member_id}"

    @property
    def registered(self) -> bool:
        return self.user_id is not None


class PushChannel(BaseModel):
    kind: Literal["push"] = "push"
    tokens: List[str]


class SmsChannel(BaseModel):
    kind: Literal["sms"] = "sms"
    phone: str


class Unreachable(BaseModel):
    kind: Literal["unreachable"] = "unreachable"


Channel = Annotated[Union[PushChannel, SmsChannel, Unreachable], Field(discriminator="kind")]


class Recipient(BaseModel):
    """A member (or a bare token for direct sends) with its resolved channel."""

    member: Optional[MemberIdentity] = None
    channel: Channel


# ──────────────────────────────
# Rendered content and delivery outcomes
# ──────────────────────────────


class ComposedMessage(BaseModel):
    title: str
    body: str
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: Optional[PushPriority] = None
    sound: Optional[str] = None
    android_channel_id: Optional[str] = None
    android_priority: Optional[AndroidPriority] = None

    def to_push(self, to: str) -> dict[str, Any]:
        """Expo message object for one device token."""
        message: dict[str, Any] = {"to": to, "title": self.title, "body": self.body}
        if self.data:
            message["data"] = self.data
        if self.priority:
            message["priority"] = self.priority
        if self.sound:
            message["sound"] = self.sound
        android = {
            k: v
            for k, v in (("channelId", self.android_channel_id), ("priority", self.android_priority))
            if v
        }
        if android:
            message["android"] = android
        return message


class DeliveryResult(BaseModel):
    status: Literal["ok", "error"]
    channel: Literal["push", "sms"] = "push"
    to: Optional[str] = None
    id: Optional[str] = None
    message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class DeliveryCounts(BaseModel):
    ok: int = 0
    error: int = 0


class AggregatedResult(BaseModel):
    success: bool
    message: str
    counts: DeliveryCounts = Field(default_factory=DeliveryCounts)
    results: List[DeliveryResult] = Field(default_factory=list)
    extra: Dict[str, Any] = Field(default_factory=dict)

    def to_response(self) -> dict[str, Any]:
        """JSON body for the HTTP caller; echo fields sit at the top level."""
        body: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "counts": self.counts.model_dump(),
            "results": [r.model_dump(exclude_none=True) for r in self.results],
        }
        for key, value in self.extra.items():
            body.setdefault(key, value)
        return body


# ──────────────────────────────
# Scheduler
# ──────────────────────────────

REMINDER_OFFSETS = (1, 2, 3)


class ReminderWindow(BaseModel):
    """A day offset before a group's draw plus the calendar date it targets."""

    model_config = ConfigDict(frozen=True)

    offset: int
    target_date: date

    @field_validator("offset")
    def _validate_offset(cls, v: int):  # noqa: N805
        if v not in REMINDER_OFFSETS:
            raise ValueError(f"reminder offset must be one of {REMINDER_OFFSETS}, got {v}")
        return v


class ReminderRunReport(BaseModel):
    """Outcome of one scheduler pass. Keys are `<group_id>:<offset>`."""

    today: date
    dates_checked: List[date] = Field(default_factory=list)
    dispatched: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)
    deliveries_ok: int = 0
    deliveries_error: int = 0
    error: Optional[str] = None
