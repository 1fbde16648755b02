"""Batched delivery to the Expo push API.

Messages go out in consecutive chunks of at most 100 (Expo's documented
ceiling). Each chunk is one POST whose response holds one ticket per message,
in request order. A chunk that fails as a whole (transport error, timeout,
non-2xx, malformed body) yields one `error` result per message in it; other
chunks are unaffected. Results come back in input order whatever the
concurrency setting. There is no retry here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Sequence, Tuple

import httpx

from app.types.notification_contract import ComposedMessage, DeliveryResult

_LOGGER = logging.getLogger(__name__)

EXPO_MAX_BATCH = 100

PushItem = Tuple[ComposedMessage, str]


def chunked(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [items[i : i + size] for i in range(0, len(items), size)]


def _short(token: str) -> str:
    return token[:20] + "..." if len(token) > 20 else token


class BatchDispatcher:
    def __init__(self, settings: Any, client: Optional[httpx.AsyncClient] = None):
        self.url = settings.EXPO_PUSH_URL
        self.access_token = settings.EXPO_ACCESS_TOKEN
        self.batch_size = max(1, min(int(settings.PUSH_BATCH_SIZE), EXPO_MAX_BATCH))
        self.max_in_flight = max(1, int(settings.PUSH_MAX_CONCURRENT_CHUNKS))
        self.timeout = settings.PUSH_TIMEOUT
        self._client = client

    async def send_push(self, messages: Sequence[PushItem]) -> list[DeliveryResult]:
        if not messages:
            return []

        chunks = chunked(list(messages), self.batch_size)
        _LOGGER.info(
            "Sending %d push message(s) in %d chunk(s) of <= %d",
            len(messages), len(chunks), self.batch_size,
        )
        semaphore = asyncio.Semaphore(self.max_in_flight)

        async def _run(
            client: httpx.AsyncClient, index: int, chunk: Sequence[PushItem]
        ) -> tuple[int, list[DeliveryResult]]:
            async with semaphore:
                return index, await self._send_chunk(client, index, chunk)

        if self._client is not None:
            done = await asyncio.gather(*(_run(self._client, i, c) for i, c in enumerate(chunks)))
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                done = await asyncio.gather(*(_run(client, i, c) for i, c in enumerate(chunks)))

        results: list[DeliveryResult] = []
        for _, chunk_results in sorted(done, key=lambda pair: pair[0]):
            results.extend(chunk_results)

        ok = sum(1 for r in results if r.ok)
        _LOGGER.info("Push summary: %d ok, %d failed out of %d", ok, len(results) - ok, len(results))
        return results

    async def _send_chunk(
        self, client: httpx.AsyncClient, index: int, chunk: Sequence[PushItem]
    ) -> list[DeliveryResult]:
        tokens = [to for _, to in chunk]
        body = [message.to_push(to) for message, to in chunk]
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        try:
            response = await client.post(self.url, json=body, headers=headers, timeout=self.timeout)
            if response.status_code < 200 or response.status_code >= 300:
                raise RuntimeError(
                    f"Expo Push API error: HTTP {response.status_code} {response.text[:200]}"
                )
            tickets = response.json().get("data")
            if not isinstance(tickets, list) or len(tickets) != len(chunk):
                raise RuntimeError(
                    f"Expo Push API returned {len(tickets) if isinstance(tickets, list) else 'no'} "
                    f"ticket(s) for {len(chunk)} message(s)"
                )
        except (httpx.HTTPError, ValueError, RuntimeError, AttributeError) as exc:
            reason = str(exc) or exc.__class__.__name__
            _LOGGER.error("Push chunk %d (%d messages) failed: %s", index + 1, len(chunk), reason)
            return [DeliveryResult(status="error", to=to, message=reason) for to in tokens]

        results = []
        for to, ticket in zip(tokens, tickets):
            ticket = ticket if isinstance(ticket, dict) else {}
            if ticket.get("status") == "ok":
                results.append(DeliveryResult(status="ok", to=to, id=ticket.get("id")))
            else:
                _LOGGER.warning("Push to %s failed: %s", _short(to), ticket.get("message"))
                results.append(
                    DeliveryResult(
                        status="error",
                        to=to,
                        message=ticket.get("message") or "unknown error",
                        details=ticket.get("details"),
                    )
                )
        return results
