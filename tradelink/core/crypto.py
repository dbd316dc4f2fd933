"""Hashing and address primitives shared by the settlement modules.

All integers are encoded the way the EVM ABI encodes them: 32-byte
big-endian words, signed values in two's complement.
"""

from __future__ import annotations

from Crypto.Hash import keccak

WORD_SIZE = 32
ADDRESS_SIZE = 20

UINT256_MAX = 2**256 - 1
INT256_MIN = -(2**255)
INT256_MAX = 2**255 - 1

ZERO_ADDRESS = "0x" + "00" * ADDRESS_SIZE


def keccak256(data: bytes) -> bytes:
    """Return the 32-byte keccak-256 digest of ``data``."""
    return keccak.new(digest_bits=256, data=data).digest()


# ── Addresses ────────────────────────────────────────────────────────────────


def to_checksum_address(value: str | bytes) -> str:
    """Normalise a 20-byte address to its EIP-55 mixed-case form."""
    raw = address_to_bytes(value) if isinstance(value, str) else bytes(value)
    if len(raw) != ADDRESS_SIZE:
        raise ValueError(f"Address must be {ADDRESS_SIZE} bytes, got {len(raw)}")
    lowered = raw.hex()
    hashed = keccak256(lowered.encode("ascii")).hex()
    return "0x" + "".join(
        ch.upper() if int(hashed[i], 16) >= 8 else ch
        for i, ch in enumerate(lowered)
    )


def address_to_bytes(address: str) -> bytes:
    """Parse a hex address (with or without 0x, any case) into 20 bytes."""
    body = address[2:] if address[:2].lower() == "0x" else address
    if len(body) != 2 * ADDRESS_SIZE:
        raise ValueError(f"Address must be {ADDRESS_SIZE} bytes of hex: {address!r}")
    return bytes.fromhex(body)


def public_key_to_address(uncompressed_key: bytes) -> str:
    """Derive the checksummed account address from a 65-byte public key."""
    if len(uncompressed_key) != 65 or uncompressed_key[0] != 0x04:
        raise ValueError("Expected an uncompressed secp256k1 public key")
    return to_checksum_address(keccak256(uncompressed_key[1:])[-ADDRESS_SIZE:])


# ── ABI words ────────────────────────────────────────────────────────────────


def encode_uint256(value: int) -> bytes:
    if not 0 <= value <= UINT256_MAX:
        raise ValueError(f"uint256 out of range: {value}")
    return value.to_bytes(WORD_SIZE, "big")


def encode_int256(value: int) -> bytes:
    if not INT256_MIN <= value <= INT256_MAX:
        raise ValueError(f"int256 out of range: {value}")
    return value.to_bytes(WORD_SIZE, "big", signed=True)


def encode_address_word(address: str) -> bytes:
    """Left-pad a 20-byte address into a 32-byte ABI word."""
    return b"\x00" * (WORD_SIZE - ADDRESS_SIZE) + address_to_bytes(address)


def encode_bytes32(value: bytes) -> bytes:
    if len(value) != WORD_SIZE:
        raise ValueError(f"bytes32 must be {WORD_SIZE} bytes, got {len(value)}")
    return bytes(value)
