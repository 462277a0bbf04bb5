"""Policy and asset lookups.

A :class:`LookupSession` owns everything that is shared between the
requests of one lookup: the rate limiter, the Blockfrost client and the
related-wallet cache.  Nothing is kept at module level, so concurrent
lookups never interfere and a stale one can simply be dropped.

Typical use::

    async with LookupSession(load_settings()) as session:
        dist = await session.lookup_policy(policy_id)
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Tuple

import httpx
from loguru import logger

from config import Settings
from errors import BlockfrostError, LookupTimeoutError, NotFoundError
from holdings import aggregate, classify_assets, concentration, format_quantity, total_quantity
from models import AddressQuantity, Asset, Distribution, policy_of
from providers.blockfrost import BlockfrostClient, Paginated
from ratelimit import RateLimiter
from related import RelatedWalletResolver, annotate


class LookupSession:
    """State for a single lookup; use as an async context manager."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.limiter = RateLimiter(settings.requests_per_second, settings.burst)
        self.client = BlockfrostClient(
            settings.api_key,
            api_base=settings.api_base,
            limiter=self.limiter,
            timeout=settings.timeout_sec,
            transport=transport,
        )
        self.resolver = RelatedWalletResolver(
            self.client,
            batch_size=settings.related_batch_size,
            batch_delay=settings.related_batch_delay_sec,
            max_account_addresses=settings.max_account_addresses,
        )

    async def __aenter__(self) -> "LookupSession":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.limiter.aclose()
        await self.client.aclose()

    # ------------------------------------------------------------------

    async def _with_timeout(self, coro: Any) -> Distribution:
        timeout = self.settings.lookup_timeout_sec
        if timeout is None:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout)
        except asyncio.TimeoutError as exc:
            raise LookupTimeoutError(f"Lookup did not finish within {timeout:g}s") from exc

    async def lookup_policy(self, policy_id: str) -> Distribution:
        """Build the holder distribution for every asset under ``policy_id``."""

        return await self._with_timeout(self._lookup_policy(policy_id.strip()))

    async def lookup_asset(self, asset_id: str) -> Distribution:
        """Build the distribution of a single asset (asset selection)."""

        return await self._with_timeout(self._lookup_asset(asset_id.strip()))

    # ------------------------------------------------------------------

    async def _detail(self, asset: Asset) -> Asset:
        """Full details for ``asset``, or the listing row if the lookup fails."""

        try:
            return await self.client.asset(asset.asset)
        except BlockfrostError as exc:
            logger.warning("Asset details unavailable for {}: {}", asset.asset, exc.message)
            return asset

    async def _name_assets(self, assets: List[Asset]) -> Tuple[List[Asset], str]:
        """Fetch details until the policy is known to be a collection.

        Details are requested ``detail_lookup_limit`` at a time; the walk stops
        at the first round that contains a distinct display name.  Assets past
        that point keep their listing rows.
        """

        named: List[Asset] = []
        step = self.settings.detail_lookup_limit
        for start in range(0, len(assets), step):
            chunk = assets[start : start + step]
            named.extend(await asyncio.gather(*(self._detail(a) for a in chunk)))
            if classify_assets(named) == "collection":
                return named + list(assets[len(named) :]), "collection"
        return named, classify_assets(named)

    async def _holders(self, asset_id: str) -> Paginated[AddressQuantity]:
        return await self.client.asset_addresses(
            asset_id, max_records=self.settings.max_holders, page_size=self.settings.page_size
        )

    async def _lookup_policy(self, policy_id: str) -> Distribution:
        listing = await self.client.policy_assets(policy_id, page_size=self.settings.page_size)
        if listing.error is not None and not listing.records:
            raise listing.error
        if not listing.records:
            raise NotFoundError("No assets found for this policy ID")
        logger.info("Policy {} has {} asset(s)", policy_id, len(listing.records))

        assets = listing.records
        if len(assets) == 1:
            return await self._single(policy_id, assets, partial=listing.partial)

        named, kind = await self._name_assets(assets)
        if kind == "collection":
            return await self._single(
                policy_id, named, kind=kind, partial=listing.partial, detailed=True
            )
        return await self._fungible(policy_id, named, partial=listing.partial)

    async def _lookup_asset(self, asset_id: str) -> Distribution:
        asset = await self.client.asset(asset_id)
        return await self._single(policy_of(asset_id), [asset], detailed=True)

    async def _single(
        self,
        policy_id: str,
        assets: List[Asset],
        *,
        kind: str = "single",
        partial: bool = False,
        detailed: bool = False,
    ) -> Distribution:
        """Distribution of ``assets[0]``; the full list is kept for selection.

        ``detailed`` means ``assets[0]`` already came from the details endpoint.
        """

        shown = assets[0]
        if not detailed and shown.metadata is None:
            shown = await self.client.asset(shown.asset)
        rows = await self._holders(shown.asset)
        if rows.error is not None and not rows.records:
            raise rows.error
        if not rows.records:
            raise NotFoundError("No holders found for this asset")

        holders = aggregate([rows.records], shown.decimals)
        return await self._finish(
            Distribution(
                policy_id=policy_id,
                kind=kind,
                asset=shown.asset,
                assets=[shown] + list(assets[1:]),
                decimals=shown.decimals,
                ticker=shown.ticker,
                holders=holders,
                partial=partial or rows.partial,
            )
        )

    async def _fungible(self, policy_id: str, assets: List[Asset], *, partial: bool) -> Distribution:
        decimals = assets[0].decimals
        rows_per_asset = []
        for a in assets:
            rows = await self._holders(a.asset)
            if rows.error is not None and not rows.records:
                raise rows.error
            partial = partial or rows.partial
            rows_per_asset.append(rows.records)

        holders = aggregate(rows_per_asset, decimals)
        if not holders:
            raise NotFoundError("No holders found for this token")
        return await self._finish(
            Distribution(
                policy_id=policy_id,
                kind="fungible",
                assets=assets,
                decimals=decimals,
                ticker=assets[0].ticker,
                holders=holders,
                partial=partial,
            )
        )

    async def _finish(self, dist: Distribution) -> Distribution:
        """Attach relations, totals and concentration figures."""

        failures_before = self.resolver.failures
        graph = await self.resolver.resolve([h.address for h in dist.holders])
        failures = self.resolver.failures - failures_before
        if failures:
            logger.warning("{} related-wallet lookup(s) failed; relations are incomplete", failures)

        holders = annotate(dist.holders, graph)
        total = total_quantity(holders)
        top_10, top_20, top_50 = concentration(holders)
        return dist.model_copy(
            update={
                "holders": holders,
                "total_quantity": total,
                "total_supply": format_quantity(total, dist.decimals),
                "top_10": top_10,
                "top_20": top_20,
                "top_50": top_50,
                "relations_incomplete": failures > 0,
                "relation_failures": failures,
            }
        )


async def lookup_policy(
    policy_id: str, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Distribution:
    async with LookupSession(settings, transport) as session:
        return await session.lookup_policy(policy_id)


async def lookup_asset(
    asset_id: str, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> Distribution:
    async with LookupSession(settings, transport) as session:
        return await session.lookup_asset(asset_id)
