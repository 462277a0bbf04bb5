"""Minimal async client for the Blockfrost Cardano API.

Only the handful of endpoints needed to build a holder distribution are
wrapped.  Every request goes through the session's :class:`RateLimiter`
when one is given, and every non-success status is turned into one of the
typed errors from :mod:`errors`.

List endpoints are paginated with ``page``/``count`` query parameters;
:meth:`BlockfrostClient.fetch_all` walks them until a short or empty page.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from config import BLOCKFROST_MAINNET
from errors import ApiError, BlockfrostError, MissingConfigError, classify
from models import AccountAddress, AddressInfo, AddressQuantity, Asset, parse_records
from ratelimit import RateLimiter

PAGE_SIZE = 100  # Blockfrost maximum

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass
class Paginated(Generic[T]):
    """Records gathered by :meth:`BlockfrostClient.fetch_all`.

    ``error`` is set when a failed page stopped the walk; ``records`` then
    holds whatever was fetched before it.
    """

    records: List[T]
    error: Optional[BlockfrostError] = None

    @property
    def partial(self) -> bool:
        return self.error is not None and bool(self.records)


class BlockfrostClient:
    def __init__(
        self,
        api_key: str,
        *,
        api_base: str = BLOCKFROST_MAINNET,
        limiter: RateLimiter | None = None,
        timeout: float = 15,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise MissingConfigError("Blockfrost API key is not configured")
        self._limiter = limiter
        self._client = httpx.AsyncClient(
            base_url=api_base.rstrip("/"),
            headers={"project_id": api_key, "accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "BlockfrostClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, path: str, params: Dict[str, Any] | None) -> httpx.Response:
        try:
            return await self._client.get(path, params=params)
        except httpx.TransportError as exc:
            raise ApiError(f"Request to {path} failed: {exc}") from exc

    async def get(self, path: str, params: Dict[str, Any] | None = None) -> Any:
        """GET ``path`` and return the decoded JSON body."""

        if self._limiter is not None:
            resp = await self._limiter.schedule(self._request, path, params)
        else:
            resp = await self._request(path, params)
        logger.debug("GET {} {} -> {}", path, params or "", resp.status_code)
        if not resp.is_success:
            raise classify(resp.status_code, resp.text)
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(f"Malformed response from {path}", resp.status_code, resp.text) from exc

    async def fetch_all(
        self,
        path: str,
        *,
        page_size: int = PAGE_SIZE,
        max_records: int | None = None,
        order: str = "asc",
        params: Dict[str, Any] | None = None,
    ) -> Paginated[Any]:
        """Collect every record of a paginated list endpoint.

        Stops at the first page shorter than ``page_size``, at an empty or
        non-list page, or once ``max_records`` records are collected.  A
        failing page stops the walk and is reported via
        :attr:`Paginated.error`; nothing is retried.
        """

        records: List[Any] = []
        page = 1
        while max_records is None or len(records) < max_records:
            query = {**(params or {}), "page": page, "count": page_size, "order": order}
            try:
                data = await self.get(path, query)
            except BlockfrostError as exc:
                logger.warning("Pagination of {} stopped at page {}: {}", path, page, exc.message)
                return Paginated(records[:max_records] if max_records else records, exc)
            if not isinstance(data, list):
                logger.warning("Non-list payload from {} page {}; treating as end of data", path, page)
                break
            if not data:
                break
            records.extend(data)
            if len(data) < page_size:
                break
            page += 1

        if max_records is not None:
            records = records[:max_records]
        return Paginated(records)

    async def _fetch_records(self, model: Type[M], path: str, **kwargs: Any) -> Paginated[M]:
        raw = await self.fetch_all(path, **kwargs)
        return Paginated(parse_records(model, raw.records), raw.error)

    async def _fetch_one(self, model: Type[M], path: str) -> M:
        data = await self.get(path)
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ApiError(f"Malformed {model.__name__} response from {path}") from exc

    # ------------------------------------------------------------------
    # Endpoints

    async def policy_assets(self, policy_id: str, page_size: int = PAGE_SIZE) -> Paginated[Asset]:
        return await self._fetch_records(Asset, f"/assets/policy/{policy_id}", page_size=page_size)

    async def asset(self, asset_id: str) -> Asset:
        return await self._fetch_one(Asset, f"/assets/{asset_id}")

    async def asset_addresses(
        self, asset_id: str, max_records: int | None = None, page_size: int = PAGE_SIZE
    ) -> Paginated[AddressQuantity]:
        return await self._fetch_records(
            AddressQuantity,
            f"/assets/{asset_id}/addresses",
            page_size=page_size,
            max_records=max_records,
            order="desc",
        )

    async def address(self, address: str) -> AddressInfo:
        return await self._fetch_one(AddressInfo, f"/addresses/{address}")

    async def account_addresses(
        self, stake_address: str, max_records: int | None = None, page_size: int = PAGE_SIZE
    ) -> Paginated[AccountAddress]:
        return await self._fetch_records(
            AccountAddress,
            f"/accounts/{stake_address}/addresses",
            page_size=page_size,
            max_records=max_records,
        )
