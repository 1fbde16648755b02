"""Server side of POST /functions/v1/send-sms.

Three request types:

* ``single_sms``  {to, message}
* ``group_sms``   {groupId, event, groupName, adminName?, winnerName?}
  Texts every unregistered member (user_id IS NULL) of the group.
* ``otp_sms``     {to, otp}

Group SMS is limited to a small whitelist of events, can be switched off
globally, and suppresses repeats of the same (phone, event, group) inside
the dedup window. The window cache lives in this process only.
"""

from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from typing import Any, Callable, Dict, Mapping, Optional

import db
from app.errors import AudienceLookupFailed, SMSDeliveryFailed, SMSRequestError
from app.services.composer import compose_sms
from app.utils.phone import normalize_phone
from app.utils.sms import send_sms

_LOGGER = logging.getLogger(__name__)

SMS_EVENT_WHITELIST = frozenset({"lucky_draw_winner", "group_joined", "bidding_start"})

# event -> extra field its template needs besides groupName
_REQUIRED_FIELD = {
    "group_joined": "adminName",
    "bidding_start": "adminName",
    "lucky_draw_winner": "winnerName",
}


class SMSGateway:
    def __init__(
        self,
        settings: Any,
        store: Any = db,
        sender: Optional[Callable[[str, str], Optional[str]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.enabled = settings.ENABLE_SMS_NOTIFICATIONS
        self.dedup_window = settings.SMS_DEDUP_WINDOW_SECONDS
        self.country_code = settings.SMS_COUNTRY_CODE
        self.app_link = settings.APP_DOWNLOAD_LINK
        self._sender = sender or partial(
            send_sms, api_key=settings.TELNYX_API_KEY, from_number=settings.TELNYX_FROM_NUMBER
        )
        self._clock = clock
        self._recent: Dict[str, float] = {}

    async def handle(self, kind: Any, data: Any) -> dict:
        handlers = {
            "single_sms": self.single_sms,
            "group_sms": self.group_sms,
            "otp_sms": self.otp_sms,
        }
        handler = handlers.get(kind) if isinstance(kind, str) else None
        if handler is None:
            raise SMSRequestError("Invalid SMS type")
        return await handler(data if isinstance(data, dict) else {})

    # ──────────────────────────────
    # Request types
    # ──────────────────────────────

    async def single_sms(self, data: Mapping[str, Any]) -> dict:
        to, message = data.get("to"), data.get("message")
        if not to or not message:
            raise SMSRequestError("Missing phone number or message")
        result = await self._deliver(to, message)
        return {"success": True, "message": "SMS sent successfully", "result": result}

    async def otp_sms(self, data: Mapping[str, Any]) -> dict:
        to, otp = data.get("to"), data.get("otp")
        if not to or not otp:
            raise SMSRequestError("Missing phone number or OTP")
        result = await self._deliver(to, compose_sms("otp", {"otp": otp}, self.app_link))
        return {"success": True, "message": "OTP SMS sent successfully", "result": result}

    async def group_sms(self, data: Mapping[str, Any]) -> dict:
        group_id, event = data.get("groupId"), data.get("event")
        if not group_id or not event:
            raise SMSRequestError("Missing groupId or event type")

        if not self.enabled:
            _LOGGER.info("SMS notifications disabled globally, dropping %s for %s", event, group_id)
            return {"success": True, "message": "SMS notifications are disabled", "sent": 0}

        if event not in SMS_EVENT_WHITELIST:
            _LOGGER.info("Skipping non-whitelisted SMS event %s", event)
            return {"success": True, "message": f"Event '{event}' is not whitelisted for SMS", "sent": 0}

        if not data.get("groupName"):
            raise SMSRequestError("Missing groupName parameter")
        required = _REQUIRED_FIELD[event]
        if not data.get(required):
            raise SMSRequestError(f"{required} is required for {event}")

        try:
            members = await self.store.fetch_unregistered_members(group_id)
        except Exception as exc:  # noqa: BLE001
            raise AudienceLookupFailed(f"Failed to fetch group members: {exc}") from exc
        if not members:
            return {"success": True, "message": "No unregistered members to notify", "sent": 0}

        message = compose_sms(event, data, self.app_link)
        _LOGGER.info("Group SMS %s for %s: %d unregistered member(s)", event, group_id, len(members))

        sent, failures, skipped = [], [], []
        now = self._clock()
        for member in members:
            name = member.get("name")
            phone = member.get("phone") or member.get("invited_phone")
            to = normalize_phone(phone, self.country_code)
            if to is None:
                failures.append({"memberId": member.get("id"), "memberName": name, "reason": "No phone number available"})
                continue

            key = f"{to}:{event}:{group_id}"
            last = self._recent.get(key)
            if last is not None and now - last < self.dedup_window:
                skipped.append(
                    {"memberName": name, "phone": to, "reason": f"Duplicate prevented (sent {round(now - last)}s ago)"}
                )
                continue

            # reserve before the await so an overlapping request sees it
            self._recent[key] = now
            try:
                result = await self._deliver(to, message)
            except SMSDeliveryFailed as exc:
                self._recent.pop(key, None)
                failures.append({"memberId": member.get("id"), "memberName": name, "phone": to, "error": str(exc)})
                continue
            sent.append({"memberId": member.get("id"), "memberName": name, **result})

        self._prune(now)
        _LOGGER.info(
            "Group SMS %s: %d sent, %d failed, %d deduplicated", event, len(sent), len(failures), len(skipped)
        )
        return {
            "success": True,
            "message": f"SMS sent for {event} to unregistered members only",
            "results": {
                "sent": len(sent),
                "failed": len(failures),
                "deduplicated": len(skipped),
                "total": len(members),
                "recipientType": "unregistered_only",
                "details": sent,
                "failures": failures,
                "skipped": skipped,
            },
            "groupId": group_id,
            "event": event,
        }

    # ──────────────────────────────
    # Helpers
    # ──────────────────────────────

    async def _deliver(self, phone: str, message: str) -> dict:
        to = normalize_phone(phone, self.country_code)
        if to is None:
            raise SMSRequestError(f"Invalid phone number: {phone}")
        try:
            sid = await asyncio.to_thread(self._sender, to, message)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("SMS to %s failed: %s", to, exc)
            raise SMSDeliveryFailed(f"SMS provider error: {exc}") from exc
        return {"success": True, "sid": sid, "to": to}

    def _prune(self, now: float) -> None:
        cutoff = now - self.dedup_window
        for key in [k for k, ts in self._recent.items() if ts < cutoff]:
            del self._recent[key]
