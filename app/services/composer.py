"""Push and SMS message templates.

Every template is a pure function of the event data (camelCase keys, the
shape the event arrived in). Values are interpolated with f-strings only;
nothing from the payload is ever used as a format string. Missing optional
values render as placeholders, so composing never raises.

Push copy is the app's Hinglish phrasing; SMS copy is plain English GSM-7
kept under one 160-character segment for typical group names.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Dict, Mapping, NamedTuple

from app.types.notification_contract import ComposedMessage

DEFAULT_APP_LINK = "https://bit.ly/Bhishi"


class Severity(str, Enum):
    URGENT = "urgent"
    ROUTINE = "routine"
    DEFAULT = "default"  # no priority hints; provider defaults apply


class Rendered(NamedTuple):
    title: str
    body: str
    data: Dict[str, Any]
    severity: Severity


def format_amount(value: Any) -> str:
    """5000 -> '5,000'; 12500.5 -> '12,500.5'."""
    if value is None or isinstance(value, bool):
        return "0"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return str(value)
    if number.is_integer():
        return f"{int(number):,}"
    return f"{number:,.3f}".rstrip("0").rstrip(".")


def _text(data: Mapping[str, Any], key: str, default: str) -> str:
    value = data.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return str(value)


def _pick(data: Mapping[str, Any], *keys: str) -> Dict[str, Any]:
    return {k: data.get(k) for k in keys if data.get(k) is not None}


# ──────────────────────────────
# Push templates
# ──────────────────────────────


def _payment_reminder(d: Mapping[str, Any]) -> Rendered:
    group = _text(d, "groupName", "your group")
    amount = format_amount(d.get("amount"))
    days = d.get("daysUntilDraw")
    days = days if isinstance(days, int) and not isinstance(days, bool) else None

    if days == 0:
        title = "Payment Due Today! 🚨"
        body = f"Aaj draw hai! ₹{amount} payment due for {group}. Jaldi pay karo to join live."
        severity = Severity.URGENT
    elif days == 1:
        title = "Payment Due Tomorrow ⏳"
        body = f"Kal payment due hai for {group}. ₹{amount} abhi pay karo to stay eligible."
        severity = Severity.URGENT
    else:
        title = "Payment Due Soon 🔔"
        body = (
            f"{group} ka payment ₹{amount} due in {days or 'few'} day(s). "
            "Don't miss the fun, pay now! 💳"
        )
        severity = Severity.ROUTINE

    data = {"type": "payment_reminder"}
    data.update(_pick(d, "groupId", "groupName", "amount", "drawDate", "daysUntilDraw"))
    return Rendered(title, body, data, severity)


def _lucky_draw(d: Mapping[str, Any]) -> Rendered:
    winner = _text(d, "winnerName", "A member")
    group = _text(d, "groupName", "your group")
    body = (
        f"🎊 Congrats! {winner} has won today's draw in \"{group}\".\n"
        f"Amount: ₹{format_amount(d.get('amount'))} 🎁\n"
        "Tap to send wishes!"
    )
    data = {"type": "lucky_draw"}
    data.update(_pick(d, "groupId", "groupName", "winnerName", "winnerId", "amount"))
    return Rendered(f"🏆 Winner: {winner}!", body, data, Severity.DEFAULT)


def _draw_live(admin: str, group: str) -> str:
    return (
        f"🎉 Hey! {admin} ne Lucky Draw start kiya hai in {group}. "
        "Aaiye aur crowd ke saath enjoy karo, best of luck!"
    )


def _lucky_draw_started(d: Mapping[str, Any]) -> Rendered:
    body = _draw_live(_text(d, "adminName", "Admin"), _text(d, "groupName", "your group"))
    data = {"type": "lucky_draw_started", "screen": "home"}
    data.update(_pick(d, "groupId", "groupName", "timestamp"))
    return Rendered("🎉 Lucky Draw Live!", body, data, Severity.URGENT)


def _draw_completed(d: Mapping[str, Any]) -> Rendered:
    body = _draw_live("Admin", _text(d, "groupName", "your group"))
    data = {"type": "draw_completed"}
    data.update(_pick(d, "groupId", "groupName"))
    return Rendered("🎉 Lucky Draw Live!", body, data, Severity.URGENT)


def _payment_marked_done(d: Mapping[str, Any]) -> Rendered:
    group = _text(d, "groupName", "your group")
    body = f"Got it! ₹{format_amount(d.get('amount'))} received for {group}. You're good to go! 🙌"
    data = {"type": "payment_marked_done"}
    data.update(_pick(d, "groupId", "groupName", "payerName", "amount"))
    return Rendered("Payment Received ✅", body, data, Severity.ROUTINE)


def _group_joined(d: Mapping[str, Any]) -> Rendered:
    group = _text(d, "groupName", "your group")
    admin = _text(d, "adminName", "Admin")
    next_draw = _text(d, "nextDrawDate", "TBD")
    body = f"Welcome to {group}! {admin} ne aapko add kiya. Next draw: {next_draw}. Explore app now ✨"
    data = {"type": "group_joined"}
    data.update(_pick(d, "groupId", "groupName", "newMemberName"))
    return Rendered("You're In! 🎉", body, data, Severity.ROUTINE)


def _bid_round_start(d: Mapping[str, Any]) -> Rendered:
    round_number = _text(d, "roundNumber", "?")
    body = f"Quick! Round {round_number} live hai, bids tez ho rahe hain. Jaldi aao aur participate karo 🔥"
    # the app routes on this type to open the live bidding screen
    data = {"type": "live_bidding_started"}
    data.update(_pick(d, "groupId", "groupName", "roundNumber"))
    return Rendered("Bidding Live, Join Now ⚡", body, data, Severity.URGENT)


def _bid_data(kind: str, d: Mapping[str, Any]) -> Dict[str, Any]:
    data = {"type": kind}
    data.update(_pick(d, "groupId", "groupName", "roundNumber", "bidderName", "bidderId", "bidAmount"))
    return data


def _bid_placed(d: Mapping[str, Any]) -> Rendered:
    bidder = _text(d, "bidderName", "Someone")
    body = f"{bidder} ne ₹{format_amount(d.get('bidAmount'))} lagaaya, ab aapki move! Dekho aur compete karo 🚀"
    return Rendered("New Bid Alert 💸", body, _bid_data("bid_placed", d), Severity.ROUTINE)


def _bid_updated(d: Mapping[str, Any]) -> Rendered:
    bidder = _text(d, "bidderName", "Someone")
    body = f"{bidder} ne bid update ki in Round {_text(d, 'roundNumber', '?')}. Aap ready ho? Open app! ⚔️"
    return Rendered("Bid Updated 🔄", body, _bid_data("bid_updated", d), Severity.ROUTINE)


def _winner_declared(d: Mapping[str, Any]) -> Rendered:
    winner = _text(d, "winnerName", "A member")
    body = f"Badhai! {winner} ne Round {_text(d, 'roundNumber', '?')} jeet liya. Result dekhne ke liye tap karo 🎉"
    data = {"type": "winner_declared"}
    data.update(_pick(d, "groupId", "groupName", "roundNumber", "winnerName", "winnerId", "winningAmount"))
    return Rendered("Winner Declared 🏆", body, data, Severity.URGENT)


def _custom(d: Mapping[str, Any]) -> Rendered:
    data = d.get("data") if isinstance(d.get("data"), dict) else {}
    return Rendered(_text(d, "title", ""), _text(d, "body", ""), dict(data), Severity.DEFAULT)


TEMPLATES: Dict[str, Callable[[Mapping[str, Any]], Rendered]] = {
    "payment_reminder": _payment_reminder,
    "lucky_draw": _lucky_draw,
    "lucky_draw_started": _lucky_draw_started,
    "payment_marked_done": _payment_marked_done,
    "draw_completed": _draw_completed,
    "group_joined": _group_joined,
    "bid_round_start": _bid_round_start,
    "bid_placed": _bid_placed,
    "bid_updated": _bid_updated,
    "winner_declared": _winner_declared,
    "custom": _custom,
}


def compose(template_id: str, data: Mapping[str, Any]) -> ComposedMessage:
    """Render one template into a message with provider priority hints."""
    try:
        template = TEMPLATES[template_id]
    except KeyError:
        raise ValueError(f"Unknown template: {template_id}") from None

    rendered = template(data)
    message = ComposedMessage(title=rendered.title, body=rendered.body, data=rendered.data)

    if rendered.severity is Severity.URGENT:
        message.priority, message.android_priority = "high", "max"
    elif rendered.severity is Severity.ROUTINE:
        message.priority, message.android_priority = "normal", "high"

    if rendered.severity is not Severity.DEFAULT:
        message.sound = "default"
        message.android_channel_id = "default"
    elif template_id == "custom":
        # caller-built payloads carry their own hints
        android = data.get("android") or {}
        message.priority = data.get("priority")
        message.sound = data.get("sound")
        message.android_channel_id = android.get("channelId")
        message.android_priority = android.get("priority")
    return message


# ──────────────────────────────
# SMS templates
# ──────────────────────────────


def _sms_group_joined(d: Mapping[str, Any], link: str) -> str:
    return (
        f"{_text(d, 'adminName', 'Admin')} has added you to the Bhishi group "
        f"'{_text(d, 'groupName', 'your group')}'. Download Bhishi to join: {link}"
    )


def _sms_bidding_start(d: Mapping[str, Any], link: str) -> str:
    return (
        f"{_text(d, 'adminName', 'Admin')} has started bidding for "
        f"'{_text(d, 'groupName', 'your group')}'. Open Bhishi to view now: {link}"
    )


def _sms_lucky_draw_winner(d: Mapping[str, Any], link: str) -> str:
    return (
        f"{_text(d, 'winnerName', 'A member')} has won the Bhishi draw in "
        f"'{_text(d, 'groupName', 'your group')}'! Download Bhishi to join: {link}"
    )


def _sms_otp(d: Mapping[str, Any], link: str) -> str:
    return f"Your Bhishi login code is {_text(d, 'otp', '')}. Please do not share it with anyone."


SMS_TEMPLATES: Dict[str, Callable[[Mapping[str, Any], str], str]] = {
    "group_joined": _sms_group_joined,
    "bidding_start": _sms_bidding_start,
    "lucky_draw_winner": _sms_lucky_draw_winner,
    "otp": _sms_otp,
}


def compose_sms(event: str, data: Mapping[str, Any], link: str = DEFAULT_APP_LINK) -> str:
    try:
        template = SMS_TEMPLATES[event]
    except KeyError:
        raise ValueError(f"Unknown SMS template: {event}") from None
    return template(data, link)
