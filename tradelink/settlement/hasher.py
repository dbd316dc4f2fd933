"""EIP-712 style hashing of linked-trade terms.

The signing digest is ``keccak256(0x1901 || domainSeparator || structHash)``,
the same construction wallets use for ``eth_signTypedData``. The field order
of ``LINKED_TRADE_TYPE`` is a wire contract with every signer that has ever
produced a bid signature; reordering it invalidates all of them.
"""

from __future__ import annotations

import logging

from tradelink.core.crypto import (
    WORD_SIZE,
    encode_address_word,
    encode_bytes32,
    encode_uint256,
    keccak256,
    to_checksum_address,
)
from tradelink.core.errors import MalformedTradeParams, TradeExpired, TradeTermsMismatch
from tradelink.core.types import TradeTerms
from tradelink.settlement.ledger import BlockSource
from tradelink.settlement.params import BidParams, SaleParams, decode_bid_params, decode_sale_params

logger = logging.getLogger(__name__)

EIP712_DOMAIN_TYPE = (
    "EIP712Domain(string name,string version,uint256 chainId,"
    "address verifyingContract,bytes32 salt)"
)
LINKED_TRADE_TYPE = (
    "LinkedTrade(address seller,address bidder,address sellerToken,address bidderToken,"
    "bytes32 sellerInputHash,bytes32 bidderOutputHash,bytes32 bidderInputHash,"
    "bytes32 sellerOutputHash,uint256 saleExpireBlockNumber,uint256 bidExpireBlockNumber)"
)

EIP712_DOMAIN_TYPEHASH = keccak256(EIP712_DOMAIN_TYPE.encode())
LINKED_TRADE_TYPEHASH = keccak256(LINKED_TRADE_TYPE.encode())

SIGNING_PREFIX = b"\x19\x01"


def domain_separator(
    chain_id: int,
    contract_address: str,
    salt: bytes,
    name: str = "LinkedTradeValidator",
    version: str = "1",
) -> bytes:
    """Bind signatures to one protocol, version, chain and validator instance."""
    return keccak256(
        EIP712_DOMAIN_TYPEHASH
        + keccak256(name.encode())
        + keccak256(version.encode())
        + encode_uint256(chain_id)
        + encode_address_word(contract_address)
        + encode_bytes32(salt)
    )


def struct_hash(terms: TradeTerms) -> bytes:
    return keccak256(
        LINKED_TRADE_TYPEHASH
        + encode_address_word(terms.seller)
        + encode_address_word(terms.bidder)
        + encode_address_word(terms.seller_token)
        + encode_address_word(terms.bidder_token)
        + encode_bytes32(terms.seller_input_hash)
        + encode_bytes32(terms.bidder_output_hash)
        + encode_bytes32(terms.bidder_input_hash)
        + encode_bytes32(terms.seller_output_hash)
        + encode_uint256(terms.sale_expire_block_number)
        + encode_uint256(terms.bid_expire_block_number)
    )


class TradeHasher:
    """Computes trade digests for one validator deployment.

    Every public method takes the commitment hashes in the same canonical
    order: seller input, bidder output, bidder input, seller output.
    """

    def __init__(
        self,
        chain_id: int,
        contract_address: str,
        salt: bytes,
        chain: BlockSource,
        name: str = "LinkedTradeValidator",
        version: str = "1",
    ) -> None:
        self.chain_id = chain_id
        self.contract_address = to_checksum_address(contract_address)
        self.chain = chain
        self.domain_separator = domain_separator(chain_id, self.contract_address, salt, name, version)

    def trade_terms(
        self,
        sale_params: bytes | SaleParams,
        bid_params: bytes | BidParams,
        seller_input_hash: bytes,
        bidder_output_hash: bytes,
        bidder_input_hash: bytes,
        seller_output_hash: bytes,
    ) -> TradeTerms:
        """Decode and validate the terms a bid signature must cover.

        Raises:
            TradeExpired: either expiry is at or below the current block.
            TradeTermsMismatch: the sale names a different counterparty
                token than the bid offers.
            MalformedTradeParams: a commitment hash is not 32 bytes.
        """
        sale = decode_sale_params(sale_params)
        bid = decode_bid_params(bid_params)

        commitments = {
            "seller_input_hash": seller_input_hash,
            "bidder_output_hash": bidder_output_hash,
            "bidder_input_hash": bidder_input_hash,
            "seller_output_hash": seller_output_hash,
        }
        for name, value in commitments.items():
            if len(value) != WORD_SIZE:
                raise MalformedTradeParams(
                    f"{name} must be {WORD_SIZE} bytes, got {len(value)}",
                    details=[{"field": name, "length": len(value)}],
                )

        current = self.chain.block_number
        if sale.expiry <= current or bid.expiry <= current:
            raise TradeExpired(
                f"trade expired at block {current} "
                f"(sale expiry {sale.expiry}, bid expiry {bid.expiry})",
                details=[
                    {"block_number": current, "sale_expiry": sale.expiry, "bid_expiry": bid.expiry}
                ],
            )
        if sale.counterparty_token != bid.token:
            raise TradeTermsMismatch(
                f"sale expects counterparty token {sale.counterparty_token}, bid offers {bid.token}"
            )

        return TradeTerms(
            seller=sale.seller,
            bidder=bid.bidder,
            seller_token=sale.token,
            bidder_token=bid.token,
            seller_input_hash=seller_input_hash,
            bidder_output_hash=bidder_output_hash,
            bidder_input_hash=bidder_input_hash,
            seller_output_hash=seller_output_hash,
            sale_expire_block_number=sale.expiry,
            bid_expire_block_number=bid.expiry,
        )

    def hash_trade_terms(
        self,
        sale_params: bytes | SaleParams,
        bid_params: bytes | BidParams,
        seller_input_hash: bytes,
        bidder_output_hash: bytes,
        bidder_input_hash: bytes,
        seller_output_hash: bytes,
    ) -> bytes:
        """Struct hash of the trade terms."""
        return struct_hash(
            self.trade_terms(
                sale_params,
                bid_params,
                seller_input_hash,
                bidder_output_hash,
                bidder_input_hash,
                seller_output_hash,
            )
        )

    def hash_for_signing(
        self,
        sale_params: bytes | SaleParams,
        bid_params: bytes | BidParams,
        seller_input_hash: bytes,
        bidder_output_hash: bytes,
        bidder_input_hash: bytes,
        seller_output_hash: bytes,
    ) -> bytes:
        """Digest the bidder signs."""
        trade_hash = self.hash_trade_terms(
            sale_params,
            bid_params,
            seller_input_hash,
            bidder_output_hash,
            bidder_input_hash,
            seller_output_hash,
        )
        digest = keccak256(SIGNING_PREFIX + self.domain_separator + trade_hash)
        logger.debug("Computed signing digest", extra={"trade_digest": "0x" + digest.hex()})
        return digest
