"""Settings loading and logging setup.

Settings live in the ``blockfrost`` section of ``settings.json`` next to
this file, falling back to ``settings.example.json`` when the former is
absent.  The API key may also be supplied through the
``BLOCKFROST_API_KEY`` environment variable so it never has to be written to
disk.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from errors import MissingConfigError

# Base directory of the project – ensures paths work regardless of CWD
BASE_DIR = Path(__file__).resolve().parent

BLOCKFROST_MAINNET = "https://cardano-mainnet.blockfrost.io/api/v0"


class Settings(BaseModel):
    api_key: str = ""
    api_base: str = BLOCKFROST_MAINNET
    timeout_sec: float = Field(15.0, gt=0)
    requests_per_second: float = Field(10.0, gt=0)
    burst: int = Field(500, ge=1)
    page_size: int = Field(100, ge=1, le=100)
    max_holders: int = Field(150, ge=1)
    max_account_addresses: int = Field(1000, ge=1)
    related_batch_size: int = Field(5, ge=1)
    related_batch_delay_sec: float = Field(1.0, ge=0)
    detail_lookup_limit: int = Field(50, ge=1)
    lookup_timeout_sec: Optional[float] = Field(None, gt=0)
    log_level: str = "INFO"


def settings_path() -> Path:
    p = BASE_DIR / "settings.json"
    if not p.exists():
        p = BASE_DIR / "settings.example.json"
    return p


def load_settings(path: str | Path | None = None) -> Settings:
    """Read the ``blockfrost`` section of the settings file.

    A missing or unreadable file yields the defaults; the environment key
    only fills in an empty ``api_key``.  Out-of-range values raise
    :class:`~errors.MissingConfigError`.
    """

    cfg_path = Path(path) if path else settings_path()
    cfg: Dict[str, Any] = {}
    try:
        cfg = json.loads(cfg_path.read_text(encoding="utf-8")).get("blockfrost", {})
    except FileNotFoundError:
        logger.debug("No settings file at {}, using defaults", cfg_path)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable settings file {}: {}", cfg_path, exc)

    try:
        settings = Settings.model_validate(cfg)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise MissingConfigError(f"Invalid settings in {cfg_path.name}: {fields}") from exc
    if not settings.api_key:
        env_key = os.getenv("BLOCKFROST_API_KEY", "")
        if env_key:
            settings = settings.model_copy(update={"api_key": env_key})
    return settings


def setup_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{line} - {message}",
    )
