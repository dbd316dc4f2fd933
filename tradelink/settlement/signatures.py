"""Bid signature recovery and verification.

Only the bidder signs a linked trade. The seller commits by submitting the
matching proof; the bidder commits by signing the trade digest. Whoever
calls settlement must hold both.
"""

from __future__ import annotations

import logging

from coincurve import PrivateKey, PublicKey

from tradelink.core.config import Settings
from tradelink.core.crypto import ZERO_ADDRESS, public_key_to_address, to_checksum_address
from tradelink.core.errors import InvalidSignature
from tradelink.settlement.hasher import TradeHasher
from tradelink.settlement.notes import NoteExtractor
from tradelink.settlement.params import (
    BidParams,
    SaleParams,
    Signature,
    decode_bid_params,
    decode_sale_params,
)

logger = logging.getLogger(__name__)

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
SECP256K1_HALF_N = SECP256K1_N // 2

V_OFFSET = 27


def recover_signer(digest: bytes, signature: Signature) -> str:
    """Recover the checksummed address that produced ``signature`` over ``digest``.

    Raises:
        InvalidSignature: ``v`` is not 27/28, ``s`` is in the malleable upper
            half, ``r``/``s`` are out of range, or recovery fails.
    """
    if len(digest) != 32:
        raise InvalidSignature(f"digest must be 32 bytes, got {len(digest)}")
    if signature.v not in (V_OFFSET, V_OFFSET + 1):
        raise InvalidSignature(f"v must be 27 or 28, got {signature.v}")

    r = int.from_bytes(signature.r, "big")
    s = int.from_bytes(signature.s, "big")
    if not 0 < r < SECP256K1_N:
        raise InvalidSignature("r out of range")
    if not 0 < s <= SECP256K1_HALF_N:
        raise InvalidSignature("s out of range or not in canonical low-s form")

    compact = signature.r + signature.s + bytes([signature.v - V_OFFSET])
    try:
        public_key = PublicKey.from_signature_and_message(compact, digest, hasher=None)
    except ValueError as exc:
        raise InvalidSignature(f"public key recovery failed: {exc}") from exc

    signer = public_key_to_address(public_key.format(compressed=False))
    if signer == ZERO_ADDRESS:
        raise InvalidSignature("recovered the zero address")
    return signer


class SignatureVerifier:
    """Checks that a bid signature covers the exact linked-trade terms."""

    def __init__(self, hasher: TradeHasher, extractor: NoteExtractor) -> None:
        self.hasher = hasher
        self.extractor = extractor

    def signing_digest(
        self,
        sale_params: bytes | SaleParams,
        bid_params: bytes | BidParams,
        seller_proof_output: bytes,
        bidder_proof_output: bytes,
    ) -> bytes:
        """Verify both proof outputs against the registry and hash the trade."""
        sale = decode_sale_params(sale_params)
        bid = decode_bid_params(bid_params)

        seller_input, seller_output = self.extractor.extract_and_verify_note_hashes(
            seller_proof_output, sale.seller
        )
        bidder_input, bidder_output = self.extractor.extract_and_verify_note_hashes(
            bidder_proof_output, bid.bidder
        )
        return self.hasher.hash_for_signing(
            sale, bid, seller_input, bidder_output, bidder_input, seller_output
        )

    def verify_trade(
        self,
        sale_params: bytes | SaleParams,
        bid_params: bytes | BidParams,
        seller_proof_output: bytes,
        bidder_proof_output: bytes,
    ) -> bool:
        """True iff the bid's signature recovers to the declared bidder."""
        bid = decode_bid_params(bid_params)
        digest = self.signing_digest(sale_params, bid, seller_proof_output, bidder_proof_output)
        signer = recover_signer(digest, bid.signature)
        if signer != bid.bidder:
            logger.warning(
                "Bid signed by %s, expected %s",
                signer,
                bid.bidder,
                extra={"trade_digest": "0x" + digest.hex(), "bidder": bid.bidder},
            )
            return False
        return True


class TradeSigner:
    """Off-chain signer producing bid signatures."""

    def __init__(self, private_key: str | bytes) -> None:
        if isinstance(private_key, str):
            body = private_key[2:] if private_key[:2].lower() == "0x" else private_key
            private_key = bytes.fromhex(body)
        if len(private_key) != 32:
            raise ValueError("private key must be 32 bytes")
        self._key = PrivateKey(private_key)
        self.address = public_key_to_address(self._key.public_key.format(compressed=False))

    @classmethod
    def from_settings(cls, settings: Settings) -> "TradeSigner":
        if not settings.signer_private_key:
            raise ValueError("TRADELINK_SIGNER_PRIVATE_KEY is not set")
        return cls(settings.signer_private_key)

    @classmethod
    def generate(cls) -> "TradeSigner":
        return cls(PrivateKey().secret)

    def sign_digest(self, digest: bytes) -> Signature:
        compact = self._key.sign_recoverable(digest, hasher=None)
        return Signature(r=compact[:32], s=compact[32:64], v=compact[64] + V_OFFSET)

    def sign_bid(
        self,
        hasher: TradeHasher,
        sale_params: bytes | SaleParams,
        bid_params: bytes | BidParams,
        seller_input_hash: bytes,
        bidder_output_hash: bytes,
        bidder_input_hash: bytes,
        seller_output_hash: bytes,
    ) -> BidParams:
        """Return ``bid_params`` with this signer's signature over the trade embedded."""
        bid = decode_bid_params(bid_params)
        if bid.bidder != to_checksum_address(self.address):
            raise ValueError(f"signer {self.address} cannot sign a bid for {bid.bidder}")
        digest = hasher.hash_for_signing(
            sale_params,
            bid,
            seller_input_hash,
            bidder_output_hash,
            bidder_input_hash,
            seller_output_hash,
        )
        return bid.with_signature(self.sign_digest(digest))
