"""Confidential-asset token collaborator."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Protocol

from tradelink.core.crypto import to_checksum_address
from tradelink.core.errors import TokenTransferError
from tradelink.settlement.ledger import atomic_execution
from tradelink.settlement.notes import extract_proof_output, proof_output_hash, split_proof_bundle
from tradelink.settlement.registry import InMemoryProofRegistry

logger = logging.getLogger(__name__)


class ConfidentialToken(Protocol):
    """A token that moves confidential notes on presentation of a proof."""

    address: str

    def confidential_trade(
        self,
        proof_outputs: bytes,
        signature_proof: bytes,
        proof_data: bytes,
        authorizer: str,
    ) -> None: ...


@dataclass(frozen=True)
class NoteTransfer:
    """One applied proof output, as recorded by the in-memory token."""

    proof_hash: bytes
    spent: tuple[bytes, ...]
    created: tuple[bytes, ...]
    authorizer: str


class InMemoryConfidentialToken:
    """Reference token holding its unspent note set in memory.

    Each proof output in a bundle is consumed in the registry, its input
    notes must be unspent here, and its output notes become spendable.
    """

    def __init__(
        self,
        address: str,
        registry: InMemoryProofRegistry,
        proof_type: int,
        notes: Iterable[bytes] = (),
    ) -> None:
        self.address = to_checksum_address(address)
        self.registry = registry
        self.proof_type = proof_type
        self._lock = threading.RLock()
        self._notes: set[bytes] = set(notes)
        self._approved: set[str] = set()
        self._transfers: list[NoteTransfer] = []

    def approve(self, authorizer: str) -> None:
        with self._lock:
            self._approved.add(to_checksum_address(authorizer))

    def mint_notes(self, commitments: Iterable[bytes]) -> None:
        with self._lock:
            self._notes.update(commitments)

    def has_note(self, commitment: bytes) -> bool:
        with self._lock:
            return commitment in self._notes

    @property
    def transfers(self) -> list[NoteTransfer]:
        with self._lock:
            return list(self._transfers)

    def confidential_trade(
        self,
        proof_outputs: bytes,
        signature_proof: bytes,
        proof_data: bytes,
        authorizer: str,
    ) -> None:
        authorizer = to_checksum_address(authorizer)
        with self._lock:
            if authorizer not in self._approved:
                raise TokenTransferError(f"{authorizer} is not approved on token {self.address}")
            if not signature_proof:
                raise TokenTransferError("missing signature proof")
            if not proof_data:
                raise TokenTransferError("missing proof data")

            with atomic_execution(self, self.registry):
                for output in split_proof_bundle(proof_outputs):
                    self._apply(output, authorizer)

    def _apply(self, output: bytes, authorizer: str) -> None:
        notes = extract_proof_output(output)
        missing = [c for c in notes.input_commitments if c not in self._notes]
        if missing:
            raise TokenTransferError(
                f"{len(missing)} input note(s) not unspent on token {self.address}",
                details=[{"commitment": "0x" + c.hex()} for c in missing],
            )
        digest = proof_output_hash(output)
        self.registry.consume(self.proof_type, digest)
        self._notes.difference_update(notes.input_commitments)
        self._notes.update(notes.output_commitments)
        self._transfers.append(
            NoteTransfer(
                proof_hash=digest,
                spent=notes.input_commitments,
                created=notes.output_commitments,
                authorizer=authorizer,
            )
        )
        logger.info(
            "Applied confidential transfer",
            extra={"token": self.address, "proof_hash": "0x" + digest.hex()},
        )

    # ── Transactional ────────────────────────────────────────────────────

    def snapshot(self) -> tuple[frozenset[bytes], tuple[NoteTransfer, ...]]:
        with self._lock:
            return frozenset(self._notes), tuple(self._transfers)

    def restore(self, snapshot: tuple[frozenset[bytes], tuple[NoteTransfer, ...]]) -> None:
        notes, transfers = snapshot
        with self._lock:
            self._notes = set(notes)
            self._transfers = list(transfers)
