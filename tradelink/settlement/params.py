"""Fixed-offset trade parameter blobs.

Each side of a linked trade arrives as a flat byte blob whose offsets are a
compatibility contract with off-chain signers. They are decoded into tagged
structs here and nowhere else.

Sale blob (124 bytes)::

    [0,20)     seller address
    [20,40)    seller token address
    [40,72)    counterparty (bidder) token, address left-padded to 32 bytes
    [72,104)   sale expiry block height, uint256
    [104,124)  transfer authorizer address

Bid blob (137 bytes)::

    [0,20)     bidder address
    [20,40)    bidder token address
    [40,72)    bid expiry block height, uint256
    [72,104)   signature r
    [104,136)  signature s
    [136,137)  signature v
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import ClassVar

from tradelink.core.crypto import (
    UINT256_MAX,
    WORD_SIZE,
    address_to_bytes,
    encode_address_word,
    encode_uint256,
    to_checksum_address,
)
from tradelink.core.errors import InvalidSignature, MalformedTradeParams
from tradelink.core.types import ParamsKind
from tradelink.settlement.codec import ByteReader

SALE_PARAMS_SIZE = 124
BID_PARAMS_SIZE = 137
SIGNATURE_SIZE = 65


@dataclass(frozen=True)
class Signature:
    """Recoverable secp256k1 signature, serialized as ``r || s || v``."""

    r: bytes
    s: bytes
    v: int

    def __post_init__(self) -> None:
        if len(self.r) != WORD_SIZE or len(self.s) != WORD_SIZE:
            raise InvalidSignature("r and s must be 32 bytes each")
        if not 0 <= self.v <= 0xFF:
            raise InvalidSignature(f"v must fit in one byte, got {self.v}")

    def to_bytes(self) -> bytes:
        return self.r + self.s + bytes([self.v])

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Signature":
        if len(raw) != SIGNATURE_SIZE:
            raise InvalidSignature(f"signature must be {SIGNATURE_SIZE} bytes, got {len(raw)}")
        return cls(r=raw[:32], s=raw[32:64], v=raw[64])


EMPTY_SIGNATURE = Signature(r=b"\x00" * WORD_SIZE, s=b"\x00" * WORD_SIZE, v=0)


def _check_expiry(value: int) -> int:
    if not 0 <= value <= UINT256_MAX:
        raise MalformedTradeParams(f"expiry block height out of range: {value}")
    return value


def _check_size(kind: ParamsKind, blob: bytes, expected: int) -> None:
    if len(blob) != expected:
        raise MalformedTradeParams(
            f"{kind.value} params must be {expected} bytes, got {len(blob)}",
            details=[{"kind": kind.value, "length": len(blob)}],
        )


@dataclass(frozen=True)
class SaleParams:
    """Seller side of a linked trade."""

    KIND: ClassVar[ParamsKind] = ParamsKind.SALE

    seller: str
    token: str
    counterparty_token: str
    expiry: int
    authorizer: str

    def __post_init__(self) -> None:
        for name in ("seller", "token", "counterparty_token", "authorizer"):
            object.__setattr__(self, name, _normalise(name, getattr(self, name)))
        _check_expiry(self.expiry)

    def encode(self) -> bytes:
        return (
            address_to_bytes(self.seller)
            + address_to_bytes(self.token)
            + encode_address_word(self.counterparty_token)
            + encode_uint256(self.expiry)
            + address_to_bytes(self.authorizer)
        )

    @classmethod
    def decode(cls, blob: bytes) -> "SaleParams":
        _check_size(cls.KIND, blob, SALE_PARAMS_SIZE)
        reader = ByteReader(blob, MalformedTradeParams, f"{cls.KIND.value} params")
        params = cls(
            seller=reader.read_address(),
            token=reader.read_address(),
            counterparty_token=reader.read_address_word(),
            expiry=reader.read_uint(),
            authorizer=reader.read_address(),
        )
        reader.expect_end()
        return params


@dataclass(frozen=True)
class BidParams:
    """Bidder side of a linked trade, carrying the bidder's signature."""

    KIND: ClassVar[ParamsKind] = ParamsKind.BID

    bidder: str
    token: str
    expiry: int
    signature: Signature = EMPTY_SIGNATURE

    def __post_init__(self) -> None:
        for name in ("bidder", "token"):
            object.__setattr__(self, name, _normalise(name, getattr(self, name)))
        _check_expiry(self.expiry)

    def with_signature(self, signature: Signature) -> "BidParams":
        return replace(self, signature=signature)

    def encode(self) -> bytes:
        return (
            address_to_bytes(self.bidder)
            + address_to_bytes(self.token)
            + encode_uint256(self.expiry)
            + self.signature.to_bytes()
        )

    @classmethod
    def decode(cls, blob: bytes) -> "BidParams":
        _check_size(cls.KIND, blob, BID_PARAMS_SIZE)
        reader = ByteReader(blob, MalformedTradeParams, f"{cls.KIND.value} params")
        bidder = reader.read_address()
        token = reader.read_address()
        expiry = reader.read_uint()
        r = reader.read_word()
        s = reader.read_word()
        v = reader.read(1)[0]
        reader.expect_end()
        return cls(bidder=bidder, token=token, expiry=expiry, signature=Signature(r=r, s=s, v=v))


def _normalise(name: str, value: str) -> str:
    try:
        return to_checksum_address(value)
    except ValueError as exc:
        raise MalformedTradeParams(f"{name}: {exc}") from exc


def decode_sale_params(params: bytes | SaleParams) -> SaleParams:
    return params if isinstance(params, SaleParams) else SaleParams.decode(params)


def decode_bid_params(params: bytes | BidParams) -> BidParams:
    return params if isinstance(params, BidParams) else BidParams.decode(params)
