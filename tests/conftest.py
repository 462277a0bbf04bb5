"""Shared fixtures: an in-memory Blockfrost served through httpx.MockTransport."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Tuple

import httpx
import pytest

from config import Settings

API_BASE = "https://blockfrost.test/api/v0"
PREFIX = "/api/v0"


class FakeBlockfrost:
    """Routes keyed by path (without the ``/api/v0`` prefix).

    ``lists`` are sliced by the ``page``/``count`` query parameters,
    ``pages`` return one explicit payload per page number, ``objects`` are
    returned as-is and ``errors`` answer with a status code and body.
    """

    def __init__(self) -> None:
        self.lists: Dict[str, List[Any]] = {}
        self.pages: Dict[str, List[Any]] = {}
        self.objects: Dict[str, Any] = {}
        self.errors: Dict[str, Tuple[int, str]] = {}
        self.calls: List[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path[len(PREFIX) :]
        self.calls.append(path)
        if path in self.errors:
            status, body = self.errors[path]
            return httpx.Response(status, text=body)
        page = int(request.url.params.get("page", 1))
        count = int(request.url.params.get("count", 100))
        if path in self.pages:
            payloads = self.pages[path]
            if page > len(payloads):
                return httpx.Response(200, json=[])
            status, payload = payloads[page - 1]
            if status != 200:
                return httpx.Response(status, text=str(payload))
            return httpx.Response(200, json=payload)
        if path in self.lists:
            rows = self.lists[path]
            return httpx.Response(200, json=rows[(page - 1) * count : page * count])
        if path in self.objects:
            return httpx.Response(200, json=self.objects[path])
        return httpx.Response(404, json={"status_code": 404, "error": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def calls_to(self, prefix: str) -> int:
        return sum(1 for c in self.calls if c.startswith(prefix))

    # helpers -----------------------------------------------------------

    def add_asset(self, asset_id: str, name: str | None = None, decimals: int | None = None, ticker: str | None = None) -> None:
        metadata = None
        if name is not None or decimals is not None or ticker is not None:
            metadata = {"name": name, "ticker": ticker, "decimals": decimals}
        self.objects[f"/assets/{asset_id}"] = {
            "asset": asset_id,
            "policy_id": asset_id[:56],
            "asset_name": asset_id[56:],
            "fingerprint": "asset1" + asset_id[-8:],
            "quantity": "1000000",
            "metadata": metadata,
        }

    def add_holders(self, asset_id: str, holders: Dict[str, int]) -> None:
        self.lists[f"/assets/{asset_id}/addresses"] = [
            {"address": a, "quantity": str(q)} for a, q in holders.items()
        ]

    def add_stake(self, stake: str | None, *addresses: str) -> None:
        for a in addresses:
            self.objects[f"/addresses/{a}"] = {"address": a, "stake_address": stake, "type": "shelley"}
        if stake is not None:
            self.lists[f"/accounts/{stake}/addresses"] = [{"address": a} for a in addresses]


class FakeClock:
    """Monotonic clock that only moves when :meth:`sleep` is awaited."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        await asyncio.sleep(0)
        self.now += delay


@pytest.fixture
def fake() -> FakeBlockfrost:
    return FakeBlockfrost()


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="test-key", api_base=API_BASE, related_batch_delay_sec=0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
