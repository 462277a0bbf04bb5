"""Discover holders that belong to the same wallet.

Cardano wallets derive many payment addresses from one staking key.  For
every holder the resolver looks up the stake address, then lists all
addresses registered under it; holders found in that list are grouped as
"related".  The relation is symmetric and never includes the holder itself.

Two chained requests per holder make this the heaviest part of a lookup, so
holders are processed in small batches with a pause between batches, and a
group found once is cached under each of its members.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Sequence, Set

from loguru import logger

from errors import BlockfrostError
from models import Holder
from providers.blockfrost import BlockfrostClient

RelationGraph = Dict[str, Set[str]]


class RelatedWalletResolver:
    """
    Parameters
    ----------
    client : BlockfrostClient
        Client used for the address and account lookups.
    batch_size : int
        Number of holders looked up concurrently.
    batch_delay : float
        Seconds to wait between batches.
    max_account_addresses : int
        Cap on addresses listed per stake key.
    """

    def __init__(
        self,
        client: BlockfrostClient,
        *,
        batch_size: int = 5,
        batch_delay: float = 1.0,
        max_account_addresses: int = 1000,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.batch_size = max(1, batch_size)
        self.batch_delay = batch_delay
        self.max_account_addresses = max_account_addresses
        self._sleep = sleep
        # address -> members of its stake-key group within the distribution
        self.cache: Dict[str, FrozenSet[str]] = {}
        self.failures = 0

    async def _group_of(self, address: str, present: Set[str]) -> FrozenSet[str]:
        info = await self.client.address(address)
        if not info.stake_address:
            return frozenset({address})

        listing = await self.client.account_addresses(
            info.stake_address, max_records=self.max_account_addresses
        )
        if listing.error is not None and not listing.records:
            raise listing.error
        group = {a.address for a in listing.records if a.address in present}
        group.add(address)
        return frozenset(group)

    async def _resolve_one(self, address: str, present: Set[str]) -> None:
        if address in self.cache:
            return
        try:
            group = await self._group_of(address, present)
        except BlockfrostError as exc:
            self.failures += 1
            logger.warning("Related-wallet lookup failed for {}: {}", address, exc.message)
            self.cache[address] = frozenset({address})
            return
        for member in group:
            self.cache[member] = group

    async def resolve(self, addresses: Sequence[str]) -> RelationGraph:
        """Return the relationship graph for ``addresses``."""

        present = set(addresses)
        for start in range(0, len(addresses), self.batch_size):
            if start:
                await self._sleep(self.batch_delay)
            batch = addresses[start : start + self.batch_size]
            await asyncio.gather(*(self._resolve_one(a, present) for a in batch))

        return {a: set(self.cache.get(a, frozenset())) - {a} for a in addresses}


def annotate(holders: Iterable[Holder], graph: RelationGraph) -> List[Holder]:
    """Copy ``holders`` with ``related`` filled from ``graph``.

    Related addresses are listed in distribution order.
    """

    holders = list(holders)
    rank = {h.address: i for i, h in enumerate(holders)}
    return [
        h.model_copy(update={"related": sorted(graph.get(h.address, ()), key=rank.__getitem__)})
        for h in holders
    ]
