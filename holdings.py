"""Holder aggregation for Cardano native tokens.

Blockfrost reports holders per *asset*, while a token may be minted under a
single policy as several assets.  This module turns the per-asset rows into
one ranked distribution:

* a policy with one asset is shown as-is,
* several assets sharing a display name are treated as one fungible token
  split across sub-assets and their balances are summed per address,
* several assets with distinct names are treated as a collection and only
  one asset is shown at a time.

Quantities stay integers until display; :func:`format_quantity` applies the
asset's decimals without ever rounding.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Literal, Sequence, Tuple

from models import AddressQuantity, Asset, Holder

Kind = Literal["single", "fungible", "collection"]

TOP_N = (10, 20, 50)


def format_quantity(raw: int, decimals: int = 0) -> str:
    """Return ``raw / 10**decimals`` as a string with trailing zeros stripped.

    >>> format_quantity(1550, 2)
    '15.5'
    """

    if decimals <= 0:
        return str(raw)
    whole, frac = divmod(raw, 10**decimals)
    digits = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{whole}.{digits}" if digits else str(whole)


def classify_assets(assets: Sequence[Asset]) -> Kind:
    """Decide how the assets of a policy should be displayed.

    An asset without a metadata name does not count as distinct.
    """

    if len(assets) <= 1:
        return "single"
    first = assets[0].display_name
    for a in assets[1:]:
        if a.display_name and a.display_name != first:
            return "collection"
    return "fungible"


def merge_quantities(rows: Iterable[Iterable[AddressQuantity]]) -> Dict[str, int]:
    """Sum raw quantities per address across any number of row sets."""

    totals: Dict[str, int] = {}
    for asset_rows in rows:
        for r in asset_rows:
            totals[r.address] = totals.get(r.address, 0) + r.quantity
    return totals


def rank_holders(totals: Dict[str, int], decimals: int = 0) -> List[Holder]:
    """Build :class:`Holder` records sorted by quantity, largest first.

    Ties keep first-seen order.  Each holder's ``share`` is its percentage of
    the summed quantity.
    """

    supply = sum(totals.values())
    ordered = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    return [
        Holder(
            address=addr,
            quantity=qty,
            amount=format_quantity(qty, decimals),
            share=(qty / supply * 100) if supply else 0.0,
        )
        for addr, qty in ordered
    ]


def aggregate(rows: Iterable[Iterable[AddressQuantity]], decimals: int = 0) -> List[Holder]:
    """Merge per-asset holder rows into one ranked distribution."""

    return rank_holders(merge_quantities(rows), decimals)


def total_quantity(holders: Iterable[Holder]) -> int:
    return sum(h.quantity for h in holders)


def concentration(holders: Sequence[Holder]) -> Tuple[float, ...]:
    """Return the summed share of the top 10, 20 and 50 holders.

    ``holders`` must already be ranked.
    """

    return tuple(sum(h.share for h in holders[:n]) for n in TOP_N)
