"""
Relay backends — webhook over httpx, and an in-memory recorder.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping

import httpx

from cashier.relay._types import RelaySummary


class WebhookRelay:
    """
    POSTs the summary as JSON.

    Example:
        async with httpx.AsyncClient(timeout=5.0) as client:
            relay = WebhookRelay("https://hooks.example.com/checkout", client=client)

    Note: без client создаёт собственный AsyncClient на каждый вызов.
    """

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        self._url = url
        self._client = client
        self._headers = dict(headers or {})

    async def notify(self, summary: RelaySummary) -> bool:
        payload = summary.to_payload()
        if self._client is not None:
            response = await self._client.post(self._url, json=payload, headers=self._headers)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(self._url, json=payload, headers=self._headers)
        return response.is_success


class MemoryRelay:
    """
    Records every summary it is given.

    fail_with(exc) makes notify raise; refuse() makes it return False;
    delay simulates a slow channel.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.received: list[RelaySummary] = []
        self.calls = 0
        self._delay = delay
        self._raise: Exception | None = None
        self._refuse = False

    def fail_with(self, exc: Exception) -> None:
        self._raise = exc

    def refuse(self) -> None:
        self._refuse = True

    def heal(self) -> None:
        self._raise = None
        self._refuse = False

    async def notify(self, summary: RelaySummary) -> bool:
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._raise is not None:
            raise self._raise
        if self._refuse:
            return False
        self.received.append(summary)
        return True


__all__ = ("WebhookRelay", "MemoryRelay")
