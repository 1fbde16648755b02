"""Best-effort SMS delivery through the send-sms gateway.

Used in two cases: kinds that also alert unregistered members by group SMS
(bid_round_start, winner_declared), and group_joined when the new member has
no device but a known phone. SMS runs independently of push. Any failure is
logged and returned as an `error` result; nothing here raises.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from app.services.composer import compose_sms
from app.types.notification_contract import DeliveryResult

_LOGGER = logging.getLogger(__name__)


class SMSFallbackNotifier:
    def __init__(self, settings: Any, client: Optional[httpx.AsyncClient] = None):
        self.url = settings.SMS_SERVICE_URL
        self.service_key = settings.SERVICE_ROLE_KEY
        self.timeout = settings.SMS_TIMEOUT
        self.app_link = settings.APP_DOWNLOAD_LINK
        self._client = client

    async def send_single(self, event: str, phone: str, template_data: Mapping[str, Any]) -> DeliveryResult:
        """One templated SMS to one phone number."""
        try:
            message = compose_sms(event, template_data, self.app_link)
        except ValueError as exc:
            _LOGGER.warning("SMS for %s not sent: %s", event, exc)
            return DeliveryResult(status="error", channel="sms", to=phone, message=str(exc))
        body = {"type": "single_sms", "data": {"to": phone, "message": message}}
        return await self._post(body, to=phone, event=event)

    async def send_group(self, event: str, group_id: str, template_data: Mapping[str, Any]) -> DeliveryResult:
        """Ask the gateway to text every unregistered member of the group."""
        data = {"groupId": group_id, "event": event}
        for key in ("groupName", "adminName", "winnerName", "roundNumber"):
            if template_data.get(key) is not None:
                data[key] = template_data[key]
        if event == "bidding_start":
            data.setdefault("adminName", "Admin")
        data["appLink"] = self.app_link
        return await self._post({"type": "group_sms", "data": data}, to=None, event=event)

    async def _post(self, body: dict[str, Any], to: Optional[str], event: str) -> DeliveryResult:
        if not self.url or not self.service_key:
            _LOGGER.warning("SMS for %s skipped: SMS_SERVICE_URL/SERVICE_ROLE_KEY not configured", event)
            return DeliveryResult(
                status="error", channel="sms", to=to, message="Missing SMS service configuration"
            )

        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=body, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=body, headers=headers)

            if response.status_code < 200 or response.status_code >= 300:
                raise RuntimeError(f"SMS service error: HTTP {response.status_code} {response.text[:200]}")
            payload = response.json()
        except Exception as exc:  # noqa: BLE001
            # SMS never fails the dispatch
            _LOGGER.warning("SMS for %s failed, continuing with push results: %s", event, exc)
            return DeliveryResult(status="error", channel="sms", to=to, message=str(exc) or exc.__class__.__name__)

        payload = payload if isinstance(payload, dict) else {}
        result = payload.get("result") if isinstance(payload.get("result"), dict) else {}
        _LOGGER.info("SMS service accepted %s: %s", event, payload.get("message"))
        return DeliveryResult(
            status="ok",
            channel="sms",
            to=to,
            id=result.get("sid"),
            message=payload.get("message"),
            details=payload.get("results") if isinstance(payload.get("results"), dict) else None,
        )
