"""Bounds-checked readers for fixed-width binary payloads.

Proof outputs and trade parameter blobs are both flat byte strings with
fixed-size fields. ``ByteReader`` walks one of them front to back and raises
the caller's error type (``MalformedProofOutput`` or ``MalformedTradeParams``)
on truncation, trailing data, or bad padding instead of an ``IndexError``.
"""

from __future__ import annotations

from tradelink.core.crypto import ADDRESS_SIZE, WORD_SIZE, to_checksum_address
from tradelink.core.errors import SettlementError

_PADDING = WORD_SIZE - ADDRESS_SIZE


class ByteReader:
    """Sequential cursor over an immutable byte payload."""

    def __init__(
        self,
        data: bytes,
        error: type[SettlementError],
        label: str = "payload",
    ) -> None:
        self._data = bytes(data)
        self._offset = 0
        self._error = error
        self._label = label

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return len(self._data) - self._offset

    def fail(self, message: str) -> SettlementError:
        return self._error(
            f"{self._label}: {message}",
            details=[{"offset": self._offset, "length": len(self._data)}],
        )

    def read(self, size: int) -> bytes:
        if size < 0 or size > self.remaining:
            raise self.fail(f"truncated, needed {size} bytes but {self.remaining} remain")
        chunk = self._data[self._offset:self._offset + size]
        self._offset += size
        return chunk

    def read_word(self) -> bytes:
        return self.read(WORD_SIZE)

    def read_uint(self) -> int:
        return int.from_bytes(self.read_word(), "big")

    def read_int(self) -> int:
        return int.from_bytes(self.read_word(), "big", signed=True)

    def read_address(self) -> str:
        """Read a packed (unpadded) 20-byte address."""
        return to_checksum_address(self.read(ADDRESS_SIZE))

    def read_address_word(self) -> str:
        """Read an address left-padded to a full word; padding must be zero."""
        word = self.read_word()
        if any(word[:_PADDING]):
            raise self.fail("address word has non-zero padding")
        return to_checksum_address(word[_PADDING:])

    def read_count(self, item_size: int) -> int:
        """Read a length word and check that many items of ``item_size`` fit."""
        count = self.read_uint()
        if count * item_size > self.remaining:
            raise self.fail(f"declared {count} items but only {self.remaining} bytes remain")
        return count

    def expect_end(self) -> None:
        if self.remaining:
            raise self.fail(f"{self.remaining} unexpected trailing bytes")
