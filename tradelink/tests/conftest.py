"""Shared fixtures for the tradelink test suite."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import pytest

from tradelink.core.config import Settings
from tradelink.core.crypto import keccak256
from tradelink.core.logging import SettlementLogFilter
from tradelink.settlement.engine import TradeSettlementEngine
from tradelink.settlement.hasher import TradeHasher
from tradelink.settlement.ledger import LocalChain
from tradelink.settlement.notes import encode_proof_bundle, encode_proof_output
from tradelink.settlement.params import BidParams, SaleParams
from tradelink.settlement.registry import InMemoryProofRegistry
from tradelink.settlement.signatures import TradeSigner
from tradelink.settlement.tokens import InMemoryConfidentialToken

VALIDATOR = "0x5615dEB798BB3E4dFa0139dFa1b3D433Cc23b72f"
TOKEN_A = "0x" + "a1" * 20
TOKEN_B = "0x" + "b2" * 20

# Well-known throwaway keys; never hold value on them.
BIDDER_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
SELLER_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "22" * 32

START_BLOCK = 10
EXPIRY = 1_000


def _commitment(label: str) -> bytes:
    return keccak256(label.encode())


@dataclass
class LinkedTrade:
    """Everything one linked trade needs, already registered and signed."""

    sale: SaleParams
    bid: BidParams
    seller_inputs: list[bytes]
    seller_outputs: list[bytes]
    bidder_inputs: list[bytes]
    bidder_outputs: list[bytes]
    seller_bundle: bytes
    bidder_bundle: bytes
    seller_proof_data: bytes
    bidder_proof_data: bytes
    seller_signature_proof: bytes = b"seller-note-approval"
    bidder_signature_proof: bytes = b"bidder-note-approval"

    def args(self) -> tuple:
        """Positional arguments for ``settle_linked_trade`` as raw blobs."""
        return (
            self.sale.encode(),
            self.bid.encode(),
            self.seller_bundle,
            self.bidder_bundle,
            self.seller_signature_proof,
            self.bidder_signature_proof,
            self.seller_proof_data,
            self.bidder_proof_data,
        )


# ── Settings / Chain ─────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    return Settings(chain="local", validator_address=VALIDATOR, _env_file=None)


@pytest.fixture
def proof_type(settings: Settings) -> int:
    return settings.join_split_proof_type


@pytest.fixture
def validator(settings: Settings) -> str:
    return settings.validator_address


@pytest.fixture
def chain() -> LocalChain:
    return LocalChain(START_BLOCK)


@pytest.fixture
def registry() -> InMemoryProofRegistry:
    return InMemoryProofRegistry()


@pytest.fixture
def hasher(settings: Settings, chain: LocalChain) -> TradeHasher:
    return TradeHasher(
        chain_id=settings.effective_chain_id,
        contract_address=settings.validator_address,
        salt=settings.domain_salt_bytes,
        chain=chain,
    )


# ── Parties ──────────────────────────────────────────────────────────────────


@pytest.fixture
def seller() -> TradeSigner:
    return TradeSigner(SELLER_KEY)


@pytest.fixture
def bidder() -> TradeSigner:
    return TradeSigner(BIDDER_KEY)


@pytest.fixture
def intruder() -> TradeSigner:
    return TradeSigner(OTHER_KEY)


# ── Trades ───────────────────────────────────────────────────────────────────


@pytest.fixture
def commitment() -> Callable[[str], bytes]:
    """Deterministic stand-in for a note commitment, keyed by label."""
    return _commitment


@pytest.fixture
def make_trade(registry, hasher, seller, bidder, proof_type, validator):
    """Factory building a registered, bidder-signed linked trade.

    Defaults give each side one input and two output notes, labelled
    H1 (seller input), H2 (seller output), H3 (bidder input) and
    H4 (bidder output). ``tag`` keeps several trades in one test apart.
    """

    def _make(
        *,
        seller_inputs: list[bytes] | None = None,
        seller_outputs: list[bytes] | None = None,
        bidder_inputs: list[bytes] | None = None,
        bidder_outputs: list[bytes] | None = None,
        sale_expiry: int = EXPIRY,
        bid_expiry: int = EXPIRY,
        signer: TradeSigner | None = None,
        tag: str = "",
        registry: InMemoryProofRegistry = registry,
    ) -> LinkedTrade:
        if seller_inputs is None:
            seller_inputs = [_commitment(f"H1{tag}")]
        if seller_outputs is None:
            seller_outputs = [_commitment(f"H2{tag}"), _commitment(f"H2-change{tag}")]
        if bidder_inputs is None:
            bidder_inputs = [_commitment(f"H3{tag}")]
        if bidder_outputs is None:
            bidder_outputs = [_commitment(f"H4{tag}"), _commitment(f"H4-change{tag}")]

        seller_bundle = encode_proof_bundle(
            [encode_proof_output(seller_inputs, seller_outputs, seller.address)]
        )
        bidder_bundle = encode_proof_bundle(
            [encode_proof_output(bidder_inputs, bidder_outputs, bidder.address)]
        )

        sale = SaleParams(
            seller=seller.address,
            token=TOKEN_A,
            counterparty_token=TOKEN_B,
            expiry=sale_expiry,
            authorizer=validator,
        )
        unsigned_bid = BidParams(bidder=bidder.address, token=TOKEN_B, expiry=bid_expiry)

        seller_proof_data = f"seller-join-split-proof{tag}".encode()
        bidder_proof_data = f"bidder-join-split-proof{tag}".encode()
        registry.register_proof(proof_type, seller.address, seller_proof_data, seller_bundle)
        registry.register_proof(proof_type, bidder.address, bidder_proof_data, bidder_bundle)
        registry.validate_proof(proof_type, seller.address, seller_proof_data)
        registry.validate_proof(proof_type, bidder.address, bidder_proof_data)

        zero = b"\x00" * 32
        digest = hasher.hash_for_signing(
            sale,
            unsigned_bid,
            seller_inputs[0] if seller_inputs else zero,
            bidder_outputs[0] if bidder_outputs else zero,
            bidder_inputs[0] if bidder_inputs else zero,
            seller_outputs[0] if seller_outputs else zero,
        )
        bid = unsigned_bid.with_signature((signer or bidder).sign_digest(digest))

        return LinkedTrade(
            sale=sale,
            bid=bid,
            seller_inputs=seller_inputs,
            seller_outputs=seller_outputs,
            bidder_inputs=bidder_inputs,
            bidder_outputs=bidder_outputs,
            seller_bundle=seller_bundle,
            bidder_bundle=bidder_bundle,
            seller_proof_data=seller_proof_data,
            bidder_proof_data=bidder_proof_data,
        )

    return _make


@pytest.fixture
def trade(make_trade) -> LinkedTrade:
    return make_trade()


# ── Tokens / Engine ──────────────────────────────────────────────────────────


@pytest.fixture
def token_a(registry, proof_type, validator, trade: LinkedTrade) -> InMemoryConfidentialToken:
    token = InMemoryConfidentialToken(TOKEN_A, registry, proof_type, notes=trade.seller_inputs)
    token.approve(validator)
    return token


@pytest.fixture
def token_b(registry, proof_type, validator, trade: LinkedTrade) -> InMemoryConfidentialToken:
    token = InMemoryConfidentialToken(TOKEN_B, registry, proof_type, notes=trade.bidder_inputs)
    token.approve(validator)
    return token


@pytest.fixture
def engine(registry, hasher, proof_type, token_a, token_b) -> TradeSettlementEngine:
    return TradeSettlementEngine(
        registry=registry,
        tokens={token_a.address: token_a, token_b.address: token_b},
        hasher=hasher,
        proof_type=proof_type,
    )


# ── Logging ──────────────────────────────────────────────────────────────────


class _RecordCollector(logging.Handler):
    def __init__(self) -> None:
        super().__init__(logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def settlement_logs():
    """Records from every tradelink module, passed through a handler carrying
    ``SettlementLogFilter`` the way ``setup_logging`` installs it."""
    handler = _RecordCollector()
    handler.addFilter(SettlementLogFilter())
    logger = logging.getLogger("tradelink")
    previous = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield handler.records
    logger.removeHandler(handler)
    logger.setLevel(previous)
