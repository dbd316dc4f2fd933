"""Shared enums and types used across the settlement modules."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ────────────────────────────────────────────────────────────────────


class ParamsKind(str, enum.Enum):
    """Tag of a fixed-offset trade parameter blob."""

    SALE = "sale"
    BID = "bid"


# ── Shared Schemas ───────────────────────────────────────────────────────────


class TradeTerms(BaseModel):
    """Canonical trade terms covered by the bidder's signature.

    Field order mirrors the signed struct and must not change.
    """

    model_config = ConfigDict(frozen=True)

    seller: str
    bidder: str
    seller_token: str
    bidder_token: str
    seller_input_hash: bytes = Field(min_length=32, max_length=32)
    bidder_output_hash: bytes = Field(min_length=32, max_length=32)
    bidder_input_hash: bytes = Field(min_length=32, max_length=32)
    seller_output_hash: bytes = Field(min_length=32, max_length=32)
    sale_expire_block_number: int = Field(ge=0)
    bid_expire_block_number: int = Field(ge=0)
