"""Convert a distribution into the payload drawn by the bubble map.

Each holder becomes a node sized by its share of supply; every related
pair becomes one undirected link.
"""

from __future__ import annotations

from typing import Any, Dict, List, Set, Tuple

from models import Distribution

LABEL_CHARS = 15


def short_label(address: str) -> str:
    if len(address) <= LABEL_CHARS:
        return address
    return address[:LABEL_CHARS] + "..."


def to_bubble_map(dist: Distribution) -> Dict[str, Any]:
    nodes: List[Dict[str, Any]] = []
    links: List[Dict[str, str]] = []
    seen: Set[Tuple[str, str]] = set()

    for rank, h in enumerate(dist.holders, start=1):
        nodes.append(
            {
                "id": h.address,
                "label": short_label(h.address),
                "rank": rank,
                "amount": h.amount,
                "quantity": str(h.quantity),
                "share": h.share,
            }
        )
        for other in h.related:
            pair = (h.address, other) if h.address < other else (other, h.address)
            if pair in seen:
                continue
            seen.add(pair)
            links.append({"source": pair[0], "target": pair[1]})

    return {
        "policy_id": dist.policy_id,
        "asset": dist.asset,
        "ticker": dist.ticker,
        "total_supply": dist.total_supply,
        "nodes": nodes,
        "links": links,
    }
