"""Linked-trade settlement engine.

Single pass, no retries:

  1. take the first proof output from each side's bundle
  2. verify the bid signature over the linked terms (aborts on mismatch)
  3. decode the transfer authorizer and both tokens from the sale
  4. execute the seller-side confidential transfer
  5. execute the bidder-side confidential transfer

Steps 4 and 5 run inside ``atomic_execution``: if either token refuses, both
transfers and the registry's spent records are rolled back and the token's
exception propagates unchanged.
"""

from __future__ import annotations

import logging
import time
from typing import Mapping

from tradelink.core.config import Settings
from tradelink.core.crypto import to_checksum_address
from tradelink.core.errors import InvalidTradeSignature, SettlementError, UnknownToken
from tradelink.core.logging import settlement_context
from tradelink.settlement.hasher import TradeHasher
from tradelink.settlement.ledger import BlockSource, atomic_execution
from tradelink.settlement.notes import NoteExtractor, first_proof_output
from tradelink.settlement.params import BidParams, SaleParams, decode_bid_params, decode_sale_params
from tradelink.settlement.registry import ProofRegistry
from tradelink.settlement.signatures import SignatureVerifier
from tradelink.settlement.tokens import ConfidentialToken

logger = logging.getLogger(__name__)


class TradeSettlementEngine:
    """Verifies and atomically executes linked confidential trades."""

    def __init__(
        self,
        registry: ProofRegistry,
        tokens: Mapping[str, ConfidentialToken],
        hasher: TradeHasher,
        proof_type: int,
    ) -> None:
        self.registry = registry
        self.tokens = {to_checksum_address(addr): token for addr, token in tokens.items()}
        self.hasher = hasher
        self.extractor = NoteExtractor(registry, proof_type)
        self.verifier = SignatureVerifier(hasher, self.extractor)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: ProofRegistry,
        tokens: Mapping[str, ConfidentialToken],
        chain: BlockSource,
    ) -> "TradeSettlementEngine":
        hasher = TradeHasher(
            chain_id=settings.effective_chain_id,
            contract_address=settings.validator_address,
            salt=settings.domain_salt_bytes,
            chain=chain,
            name=settings.domain_name,
            version=settings.domain_version,
        )
        chain_config = settings.chain_config
        if chain_config is None:
            logger.warning(
                "Chain id %d is not in the chain registry",
                hasher.chain_id,
                extra={"chain_id": hasher.chain_id},
            )
        else:
            logger.info(
                "Settlement engine bound to %s (chain id %d)",
                chain_config.name,
                chain_config.chain_id,
                extra={"chain_id": chain_config.chain_id},
            )
        return cls(registry, tokens, hasher, settings.join_split_proof_type)

    def verify_trade(
        self,
        sale_params: bytes | SaleParams,
        bid_params: bytes | BidParams,
        seller_proof_output: bytes,
        bidder_proof_output: bytes,
    ) -> bool:
        return self.verifier.verify_trade(
            sale_params, bid_params, seller_proof_output, bidder_proof_output
        )

    def _token(self, address: str) -> ConfidentialToken:
        token = self.tokens.get(address)
        if token is None:
            raise UnknownToken(f"no confidential token registered at {address}")
        return token

    def settle_linked_trade(
        self,
        sale_params: bytes | SaleParams,
        bid_params: bytes | BidParams,
        seller_proof_outputs: bytes,
        bidder_proof_outputs: bytes,
        seller_signature_proof: bytes,
        bidder_signature_proof: bytes,
        seller_proof_data: bytes,
        bidder_proof_data: bytes,
    ) -> None:
        """Settle both sides of a linked trade, or neither.

        Returns normally on success; any failure raises and leaves no effect.
        Every record logged while it runs, in any module, carries the same
        settlement id.
        """
        with settlement_context():
            self._settle(
                sale_params,
                bid_params,
                seller_proof_outputs,
                bidder_proof_outputs,
                seller_signature_proof,
                bidder_signature_proof,
                seller_proof_data,
                bidder_proof_data,
            )

    def _settle(
        self,
        sale_params: bytes | SaleParams,
        bid_params: bytes | BidParams,
        seller_proof_outputs: bytes,
        bidder_proof_outputs: bytes,
        seller_signature_proof: bytes,
        bidder_signature_proof: bytes,
        seller_proof_data: bytes,
        bidder_proof_data: bytes,
    ) -> None:
        started = time.monotonic()
        try:
            sale = decode_sale_params(sale_params)
            bid = decode_bid_params(bid_params)

            seller_proof_output = first_proof_output(seller_proof_outputs)
            bidder_proof_output = first_proof_output(bidder_proof_outputs)

            if not self.verify_trade(sale, bid, seller_proof_output, bidder_proof_output):
                raise InvalidTradeSignature(
                    f"bid signature does not recover to bidder {bid.bidder}",
                    details=[{"seller": sale.seller, "bidder": bid.bidder}],
                )

            authorizer = sale.authorizer
            seller_token = self._token(sale.token)
            bidder_token = self._token(sale.counterparty_token)

            with atomic_execution(self.registry, seller_token, bidder_token):
                seller_token.confidential_trade(
                    seller_proof_outputs, seller_signature_proof, seller_proof_data, authorizer
                )
                bidder_token.confidential_trade(
                    bidder_proof_outputs, bidder_signature_proof, bidder_proof_data, authorizer
                )

            logger.info(
                "Settled linked trade %s <-> %s",
                sale.seller,
                bid.bidder,
                extra={
                    "seller": sale.seller,
                    "bidder": bid.bidder,
                    "block_number": self.hasher.chain.block_number,
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                },
            )
        except SettlementError as exc:
            logger.info(
                "Settlement rejected: %s",
                exc.message,
                extra={"error_code": exc.code.value},
            )
            raise
