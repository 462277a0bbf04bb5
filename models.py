"""Record types for Blockfrost payloads and lookup results.

Blockfrost returns quantities as decimal strings of arbitrary size; the
records below coerce them to Python ``int`` so no precision is lost.  Any
payload that does not match is rejected at the network edge by
:func:`parse_records` and never reaches the aggregation code.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Literal, Optional, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

POLICY_ID_LENGTH = 56


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class AssetMetadata(_Record):
    name: Optional[str] = None
    ticker: Optional[str] = None
    decimals: int = 0

    @field_validator("decimals", mode="before")
    @classmethod
    def _none_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v


class Asset(_Record):
    """An asset under a policy.

    The policy listing endpoint only returns ``asset`` and ``quantity``;
    the remaining fields are filled in from the asset details endpoint.
    """

    asset: str
    quantity: int = 0
    policy_id: Optional[str] = None
    asset_name: Optional[str] = None
    fingerprint: Optional[str] = None
    metadata: Optional[AssetMetadata] = None

    @property
    def display_name(self) -> Optional[str]:
        return self.metadata.name if self.metadata else None

    @property
    def decimals(self) -> int:
        return self.metadata.decimals if self.metadata else 0

    @property
    def ticker(self) -> Optional[str]:
        return self.metadata.ticker if self.metadata else None


class AddressQuantity(_Record):
    """One row of ``/assets/{asset}/addresses``."""

    address: str
    quantity: int = Field(ge=0)


class AddressInfo(_Record):
    address: str
    stake_address: Optional[str] = None


class AccountAddress(_Record):
    address: str


class Holder(BaseModel):
    address: str
    quantity: int
    amount: str
    share: float = 0.0
    related: List[str] = Field(default_factory=list)


class Distribution(BaseModel):
    """Ranked holder distribution handed to the visualization layer."""

    policy_id: str
    kind: Literal["single", "fungible", "collection"]
    asset: Optional[str] = None
    assets: List[Asset] = Field(default_factory=list)
    decimals: int = 0
    ticker: Optional[str] = None
    holders: List[Holder] = Field(default_factory=list)
    total_quantity: int = 0
    total_supply: str = "0"
    top_10: float = 0.0
    top_20: float = 0.0
    top_50: float = 0.0
    partial: bool = False
    relations_incomplete: bool = False
    relation_failures: int = 0


R = TypeVar("R", bound=BaseModel)


def parse_records(model: Type[R], items: Iterable[Any]) -> List[R]:
    """Validate ``items`` as ``model``, dropping and logging the rejects."""

    out: List[R] = []
    for item in items:
        try:
            out.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning("Dropping malformed {} record: {}", model.__name__, exc.errors()[0]["msg"])
    return out


def policy_of(asset_id: str) -> str:
    """Return the policy id prefix of a Cardano asset id."""

    return asset_id[:POLICY_ID_LENGTH]
