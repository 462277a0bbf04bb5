"""FastAPI application serving Cardano token holder distributions.

Every request runs its own :class:`lookup.LookupSession`; the only state
kept between requests is the most recent completed distribution, exposed
at ``/distribution/latest`` for the front-end.  Settings are read from
``settings.json`` (falling back to ``settings.example.json``) on every
lookup so key changes need no restart.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from bubbles import to_bubble_map
from config import Settings, load_settings, setup_logging
from errors import BlockfrostError, LookupTimeoutError, MissingConfigError, NotFoundError
from lookup import lookup_asset, lookup_policy
from models import Distribution

app = FastAPI()

# ---------------------------------------------------------------------------
# Lookup state

# Latest completed distribution; only the most recently started lookup may
# replace it, so a slow stale lookup never overwrites a newer one.
LAST_DISTRIBUTION: Distribution | None = None
_GENERATION = 0

Lookup = Callable[[str, Settings], Awaitable[Distribution]]


async def _run(lookup: Lookup, key: str) -> Distribution:
    global LAST_DISTRIBUTION, _GENERATION
    _GENERATION += 1
    generation = _GENERATION
    dist = await lookup(key, load_settings())
    if generation == _GENERATION:
        LAST_DISTRIBUTION = dist
    else:
        logger.info("Discarding stale lookup result for {}", key)
    return dist


@app.on_event("startup")
async def _startup() -> None:
    setup_logging(load_settings().log_level)


# ---------------------------------------------------------------------------
# Error mapping

_STATUS = (
    (NotFoundError, 404),
    (MissingConfigError, 500),
    (LookupTimeoutError, 504),
)


@app.exception_handler(BlockfrostError)
async def _blockfrost_error(request: Request, exc: BlockfrostError) -> JSONResponse:
    status = next((code for cls, code in _STATUS if isinstance(exc, cls)), 502)
    logger.warning("{} {} failed: {}", request.method, request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=status)


# ---------------------------------------------------------------------------
# REST endpoints


@app.get("/policy/{policy_id}")
async def policy_distribution(policy_id: str) -> Dict[str, Any]:
    """Return the ranked holder distribution for every asset under ``policy_id``."""

    dist = await _run(lookup_policy, policy_id)
    return dist.model_dump(mode="json")


@app.get("/policy/{policy_id}/bubbles")
async def policy_bubbles(policy_id: str) -> Dict[str, Any]:
    """Return nodes and links for the bubble map of ``policy_id``."""

    dist = await _run(lookup_policy, policy_id)
    return to_bubble_map(dist)


@app.get("/asset/{asset_id}")
async def asset_distribution(asset_id: str) -> Dict[str, Any]:
    """Return the distribution of one asset, used when selecting from a collection."""

    dist = await _run(lookup_asset, asset_id)
    return dist.model_dump(mode="json")


@app.get("/distribution/latest")
def latest_distribution() -> Any:
    """Return the most recent completed distribution."""

    if LAST_DISTRIBUTION is None:
        return JSONResponse({"error": "no lookup has completed yet"}, status_code=404)
    return LAST_DISTRIBUTION.model_dump(mode="json")


# End of file
