"""Chains a settlement validator can be deployed on.

The chain id is folded into the EIP-712 domain separator, so a signature
issued for one chain never verifies on another.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ChainConfig:
    """Configuration for a supported EVM chain."""

    chain_id: int
    name: str
    short_name: str
    native_currency: str = "ETH"
    is_testnet: bool = False


# ── Chain Registry ───────────────────────────────────────────────────────────

CHAINS: dict[str, ChainConfig] = {
    "ethereum": ChainConfig(
        chain_id=1,
        name="Ethereum Mainnet",
        short_name="eth",
    ),
    "sepolia": ChainConfig(
        chain_id=11155111,
        name="Sepolia",
        short_name="sep",
        is_testnet=True,
    ),
    "polygon": ChainConfig(
        chain_id=137,
        name="Polygon Mainnet",
        short_name="matic",
        native_currency="MATIC",
    ),
    "arbitrum": ChainConfig(
        chain_id=42161,
        name="Arbitrum One",
        short_name="arb",
    ),
    "optimism": ChainConfig(
        chain_id=10,
        name="Optimism",
        short_name="op",
    ),
    "base": ChainConfig(
        chain_id=8453,
        name="Base",
        short_name="base",
    ),
    "gnosis": ChainConfig(
        chain_id=100,
        name="Gnosis Chain",
        short_name="gno",
        native_currency="xDAI",
    ),
    # Local development node (ganache / anvil / hardhat default)
    "local": ChainConfig(
        chain_id=1337,
        name="Local Development Chain",
        short_name="dev",
        is_testnet=True,
    ),
}


def get_chain_config(chain_name: str) -> ChainConfig | None:
    """Get chain configuration by name."""
    return CHAINS.get(chain_name.lower())


def get_chain_by_id(chain_id: int) -> ChainConfig | None:
    """Get chain configuration by numeric chain id."""
    for chain in CHAINS.values():
        if chain.chain_id == chain_id:
            return chain
    return None
