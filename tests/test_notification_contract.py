from datetime import date

import pytest
from pydantic import ValidationError

from app.types.notification_contract import (
    AggregatedResult,
    ComposedMessage,
    DeliveryCounts,
    DeliveryResult,
    GroupNotificationData,
    MemberIdentity,
    PaymentReminderData,
    ReminderWindow,
)


def test_payload_accepts_camel_and_snake_case():
    camel = PaymentReminderData.model_validate(
        {"groupId": "g1", "groupName": "Office", "amount": 5000, "drawDate": "2024-06-11"}
    )
    snake = PaymentReminderData.model_validate(
        {"group_id": "g1", "group_name": "Office", "amount": 5000, "draw_date": "2024-06-11"}
    )
    assert camel == snake
    assert camel.draw_date == date(2024, 6, 11)
    assert camel.model_dump(mode="json", by_alias=True)["drawDate"] == "2024-06-11"


def test_payment_reminder_rejects_bad_amount():
    with pytest.raises(ValidationError):
        PaymentReminderData.model_validate(
            {"groupId": "g1", "groupName": "Office", "amount": "lots", "drawDate": "2024-06-11"}
        )


def test_group_notification_requires_tokens():
    with pytest.raises(ValidationError, match="No tokens provided"):
        GroupNotificationData.model_validate({"tokens": ["", "  "], "title": "t", "body": "b"})

    ok = GroupNotificationData.model_validate({"tokens": [" tok-1 ", "tok-2"], "title": "t", "body": "b"})
    assert ok.tokens == ["tok-1", "tok-2"]


def test_reminder_window_only_allows_known_offsets():
    assert ReminderWindow(offset=3, target_date=date(2024, 6, 13)).offset == 3
    with pytest.raises(ValidationError):
        ReminderWindow(offset=4, target_date=date(2024, 6, 14))


def test_member_key_falls_back_to_row_id_for_invitees():
    registered = MemberIdentity(group_id="g1", member_id="m1", user_id="u1")
    invitee = MemberIdentity(group_id="g1", member_id="m2")
    assert registered.key == "u1" and registered.registered
    assert invitee.key == "member:m2" and not invitee.registered


def test_to_push_omits_empty_hints():
    bare = ComposedMessage(title="Hi", body="there").to_push("tok")
    assert bare == {"to": "tok", "title": "Hi", "body": "there"}

    full = ComposedMessage(
        title="Hi", body="there", data={"type": "x"}, priority="high", sound="default",
        android_channel_id="default", android_priority="max",
    ).to_push("tok")
    assert full["android"] == {"channelId": "default", "priority": "max"}
    assert full["data"] == {"type": "x"}


def test_response_flattens_echo_fields():
    result = AggregatedResult(
        success=True,
        message="Sent 1 payment reminder notifications",
        counts=DeliveryCounts(ok=1),
        results=[DeliveryResult(status="ok", to="tok", id="abc")],
        extra={"groupName": "Office", "success": False},
    )
    body = result.to_response()
    assert body["groupName"] == "Office"
    # echo fields never shadow the envelope
    assert body["success"] is True
    assert body["results"] == [{"status": "ok", "channel": "push", "to": "tok", "id": "abc"}]
