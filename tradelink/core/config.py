"""Core configuration for the tradelink settlement validator."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tradelink.core.chains import ChainConfig, get_chain_by_id, get_chain_config
from tradelink.core.crypto import ZERO_ADDRESS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TRADELINK_",
        case_sensitive=False,
    )

    # ── App ──────────────────────────────────────────────────────────────
    app_name: str = "tradelink"
    app_env: Literal["development", "staging", "production"] = "development"
    log_level: str = "INFO"

    # ── Chain / deployment ───────────────────────────────────────────────
    chain: str = "local"
    chain_id: int | None = Field(default=None, ge=1)  # overrides `chain` when set
    validator_address: str = ZERO_ADDRESS

    # ── EIP-712 domain ───────────────────────────────────────────────────
    domain_name: str = "LinkedTradeValidator"
    domain_version: str = "1"
    domain_salt: str = "0xf2d857f4a3edcb9b78b4d503bfe733db1e3f6cdc2b7971ee739626c97e86a558"

    # ── Proof registry ───────────────────────────────────────────────────
    join_split_proof_type: int = 65793  # 1 * 256**2 + 1 * 256 + 1

    # ── Off-chain signer ─────────────────────────────────────────────────
    signer_private_key: str = ""  # hex, 32 bytes; only needed to sign bids

    @field_validator("validator_address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        body = value[2:] if value.lower().startswith("0x") else value
        if len(body) != 40:
            raise ValueError(f"validator_address must be 20 bytes, got {value!r}")
        bytes.fromhex(body)
        return value

    @field_validator("domain_salt")
    @classmethod
    def _check_salt(cls, value: str) -> str:
        body = value[2:] if value.lower().startswith("0x") else value
        if len(bytes.fromhex(body)) != 32:
            raise ValueError("domain_salt must be 32 bytes of hex")
        return value

    @property
    def effective_chain_id(self) -> int:
        """Chain id the domain separator is bound to."""
        if self.chain_id is not None:
            return self.chain_id
        config = get_chain_config(self.chain)
        if config is None:
            raise ValueError(f"Unknown chain {self.chain!r}; set TRADELINK_CHAIN_ID")
        return config.chain_id

    @property
    def chain_config(self) -> ChainConfig | None:
        """Registry entry for the effective chain; None for unregistered ids."""
        if self.chain_id is not None:
            return get_chain_by_id(self.chain_id)
        return get_chain_config(self.chain)

    @property
    def domain_salt_bytes(self) -> bytes:
        body = self.domain_salt[2:] if self.domain_salt.lower().startswith("0x") else self.domain_salt
        return bytes.fromhex(body)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings singleton."""
    return Settings()
