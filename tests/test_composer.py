import pytest

from app.services.composer import compose, compose_sms, format_amount


def _reminder(days):
    return {
        "groupId": "g1",
        "groupName": "Office Bhishi",
        "amount": 5000,
        "drawDate": "2024-06-11",
        "daysUntilDraw": days,
    }


def test_format_amount():
    assert format_amount(5000) == "5,000"
    assert format_amount(12500.5) == "12,500.5"
    assert format_amount(100000.0) == "100,000"
    assert format_amount(None) == "0"


def test_payment_reminder_due_tomorrow_is_urgent():
    msg = compose("payment_reminder", _reminder(1))
    assert msg.title == "Payment Due Tomorrow ⏳"
    assert "₹5,000" in msg.body
    assert (msg.priority, msg.android_priority) == ("high", "max")
    assert msg.sound == "default" and msg.android_channel_id == "default"
    assert msg.data["type"] == "payment_reminder"
    assert msg.data["daysUntilDraw"] == 1


def test_payment_reminder_due_today():
    msg = compose("payment_reminder", _reminder(0))
    assert msg.title == "Payment Due Today! 🚨"
    assert msg.priority == "high"


def test_payment_reminder_later_is_routine():
    msg = compose("payment_reminder", _reminder(3))
    assert msg.title == "Payment Due Soon 🔔"
    assert "3 day(s)" in msg.body
    assert (msg.priority, msg.android_priority) == ("normal", "high")


def test_payment_reminder_five_days_out():
    msg = compose("payment_reminder", _reminder(5))
    assert msg.title == "Payment Due Soon 🔔"
    assert "5 day(s)" in msg.body
    assert (msg.priority, msg.android_priority) == ("normal", "high")
    assert msg.data["daysUntilDraw"] == 5


def test_payment_reminder_without_day_count():
    msg = compose("payment_reminder", _reminder(None))
    assert "few day(s)" in msg.body


def test_lucky_draw_has_no_priority_hints():
    msg = compose(
        "lucky_draw",
        {"groupId": "g1", "groupName": "Office", "winnerName": "Asha", "winnerId": "u1", "amount": 50000},
    )
    assert msg.title == "🏆 Winner: Asha!"
    assert "₹50,000" in msg.body
    assert msg.priority is None and msg.sound is None and msg.android_priority is None


def test_group_joined_placeholders():
    msg = compose("group_joined", {"groupId": "g1", "groupName": "Office", "newMemberName": "Ravi"})
    assert "Admin ne aapko add kiya" in msg.body
    assert "Next draw: TBD" in msg.body


def test_bid_round_start_routes_to_live_bidding():
    msg = compose("bid_round_start", {"groupId": "g1", "groupName": "Office", "roundNumber": 2})
    assert msg.data == {"type": "live_bidding_started", "groupId": "g1", "groupName": "Office", "roundNumber": 2}
    assert "Round 2" in msg.body


def test_payload_text_is_not_a_format_string():
    msg = compose("draw_completed", {"groupId": "g1", "groupName": "{amount} {0}"})
    assert "{amount} {0}" in msg.body


def test_custom_passes_caller_hints_through():
    msg = compose(
        "custom",
        {
            "to": "tok",
            "title": "Hello",
            "body": "World",
            "data": {"screen": "home"},
            "priority": "high",
            "sound": "ping.wav",
            "android": {"channelId": "alerts", "priority": "max"},
        },
    )
    assert (msg.title, msg.body) == ("Hello", "World")
    assert msg.data == {"screen": "home"}
    assert msg.priority == "high" and msg.sound == "ping.wav"
    assert msg.android_channel_id == "alerts" and msg.android_priority == "max"


def test_unknown_template():
    with pytest.raises(ValueError):
        compose("nope", {})


def test_sms_templates_embed_the_app_link():
    text = compose_sms("bidding_start", {"groupName": "Office", "adminName": "Meena"}, "https://x.test/app")
    assert text == "Meena has started bidding for 'Office'. Open Bhishi to view now: https://x.test/app"
    assert len(compose_sms("lucky_draw_winner", {"groupName": "Office", "winnerName": "Asha"})) <= 160

    with pytest.raises(ValueError):
        compose_sms("payment_reminder", {})
