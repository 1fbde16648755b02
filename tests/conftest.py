import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest

EXPO_URL = "https://exp.test/--/api/v2/push/send"
SMS_URL = "https://sms.test/functions/v1/send-sms"


class FakeStore:
    """In-memory stand-in for the `db` helpers, same call signatures."""

    def __init__(self):
        self.groups = {}
        self.members = []
        self.tokens = []
        self.profiles = {}
        self.dispatches = set()
        self.calls = []
        self.fail = set()
        self.timeouts = set()

    # -- setup helpers -------------------------------------------------
    def add_group(self, group_id, name="Office Bhishi", monthly_amount=5000, draw_date=None, current_members=0):
        self.groups[group_id] = {
            "id": group_id,
            "name": name,
            "monthly_amount": monthly_amount,
            "draw_date": draw_date,
            "current_members": current_members,
        }

    def add_member(self, group_id, user_id=None, name=None, phone=None, invited_phone=None,
                   status="pending", tokens=()):
        row = {
            "id": f"m{len(self.members) + 1}",
            "group_id": group_id,
            "user_id": user_id,
            "name": name,
            "phone": phone,
            "invited_phone": invited_phone,
            "contribution_status": status,
            "created_at": len(self.members) + 1,
        }
        self.members.append(row)
        for token in tokens:
            self.tokens.append({"user_id": user_id, "token": token})
        return row

    def _call(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise ConnectionError(f"{name} unavailable")
        if name in self.timeouts:
            raise asyncio.TimeoutError()

    # -- db helper surface -----------------------------------------------
    async def fetch_group_members(self, group_id, contribution_status=None, exclude_user_id=None):
        self._call("fetch_group_members")
        rows = [m for m in self.members if m["group_id"] == group_id]
        if contribution_status:
            rows = [m for m in rows if m["contribution_status"] == contribution_status]
        if exclude_user_id:
            rows = [m for m in rows if m["user_id"] != exclude_user_id]
        return [dict(m) for m in rows]

    async def fetch_member(self, group_id, user_id):
        self._call("fetch_member")
        for m in self.members:
            if m["group_id"] == group_id and m["user_id"] == user_id:
                return dict(m)
        return None

    async def fetch_latest_unregistered_member(self, group_id):
        self._call("fetch_latest_unregistered_member")
        rows = [m for m in self.members if m["group_id"] == group_id and m["user_id"] is None]
        return dict(max(rows, key=lambda m: m["created_at"])) if rows else None

    async def fetch_unregistered_members(self, group_id):
        self._call("fetch_unregistered_members")
        return [dict(m) for m in self.members if m["group_id"] == group_id and m["user_id"] is None]

    async def fetch_push_tokens(self, user_ids):
        self._call("fetch_push_tokens")
        wanted = set(user_ids)
        return [dict(t) for t in self.tokens if t["user_id"] in wanted]

    async def fetch_profile(self, user_id):
        self._call("fetch_profile")
        return self.profiles.get(user_id)

    async def fetch_group(self, group_id):
        self._call("fetch_group")
        group = self.groups.get(group_id)
        return dict(group) if group else None

    async def fetch_groups_by_draw_dates(self, dates):
        self._call("fetch_groups_by_draw_dates")
        wanted = set(dates)
        return [dict(g) for g in self.groups.values() if g["draw_date"] in wanted]

    async def claim_reminder_slot(self, group_id, offset, reminder_date):
        self._call("claim_reminder_slot")
        key = (group_id, offset, reminder_date)
        if key in self.dispatches:
            return False
        self.dispatches.add(key)
        return True

    async def release_reminder_slot(self, group_id, offset, reminder_date):
        self._call("release_reminder_slot")
        self.dispatches.discard((group_id, offset, reminder_date))


class FakeProviders:
    """MockTransport handler playing both the Expo push API and the SMS gateway."""

    def __init__(self):
        self.push_requests = []
        self.sms_requests = []
        self.headers = []
        self.fail_chunks_starting_with = set()
        self.rejected_tokens = set()
        self.sms_status = 200

    def handler(self, request):
        body = json.loads(request.content)
        self.headers.append(dict(request.headers))
        if request.url.host == "exp.test":
            self.push_requests.append(body)
            if body and body[0]["to"] in self.fail_chunks_starting_with:
                return httpx.Response(500, text="upstream exploded")
            tickets = [
                {"status": "error", "message": "DeviceNotRegistered", "details": {"error": "DeviceNotRegistered"}}
                if m["to"] in self.rejected_tokens
                else {"status": "ok", "id": f"ticket-{m['to']}"}
                for m in body
            ]
            return httpx.Response(200, json={"data": tickets})

        self.sms_requests.append(body)
        if self.sms_status != 200:
            return httpx.Response(self.sms_status, text="sms gateway down")
        return httpx.Response(
            200, json={"success": True, "message": "SMS sent successfully", "result": {"sid": "SM123"}}
        )

    def client(self):
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def pushed_tokens(self):
        return [m["to"] for body in self.push_requests for m in body]


def _settings(**overrides):
    values = dict(
        EXPO_PUSH_URL=EXPO_URL,
        EXPO_ACCESS_TOKEN=None,
        PUSH_BATCH_SIZE=100,
        PUSH_MAX_CONCURRENT_CHUNKS=4,
        PUSH_TIMEOUT=5.0,
        SMS_SERVICE_URL=SMS_URL,
        SERVICE_ROLE_KEY="service-role-key",
        SMS_TIMEOUT=5.0,
        ENABLE_SMS_NOTIFICATIONS=True,
        SMS_DEDUP_WINDOW_SECONDS=60,
        SMS_COUNTRY_CODE="+91",
        APP_DOWNLOAD_LINK="https://bit.ly/Bhishi",
        TELNYX_API_KEY=None,
        TELNYX_FROM_NUMBER=None,
        REMINDER_TIMEZONE="Asia/Kolkata",
        REMINDER_HOUR=9,
        REMINDER_MINUTE=0,
        REMINDER_DEDUP_ENABLED=True,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def make_settings():
    return _settings


@pytest.fixture
def settings():
    return _settings()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def providers():
    return FakeProviders()
