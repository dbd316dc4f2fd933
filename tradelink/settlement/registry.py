"""Proof registry interface and an in-memory reference implementation.

The registry is the authority on zero-knowledge proof validity. The
settlement core never inspects proofs itself; it only asks whether a given
proof-output hash was validated for a given submitter.
"""

from __future__ import annotations

import logging
import threading
from typing import Protocol

from tradelink.core.errors import ProofAlreadySpent, UnauthorizedProof
from tradelink.settlement.notes import proof_output_hash, split_proof_bundle

logger = logging.getLogger(__name__)


class ProofRegistry(Protocol):
    """What the settlement core needs from a proof registry."""

    def validate_proof(self, proof_type: int, submitter: str, proof_data: bytes) -> bytes:
        """Validate ``proof_data`` and return its proof-output bundle."""
        ...

    def validate_proof_by_hash(self, proof_type: int, proof_hash: bytes, signer: str) -> bool:
        """True if ``proof_hash`` was validated for ``signer`` and is unspent."""
        ...


class InMemoryProofRegistry:
    """Reference registry keeping validity and spent records in memory.

    Proof verification itself is out of scope: ``register_proof`` records
    the bundle an accepted proof produces, standing in for the verifier.
    Each proof-output hash can be consumed at most once.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._accepted: dict[tuple[int, str, bytes], bytes] = {}
        self._validated: dict[tuple[int, bytes], set[str]] = {}
        self._spent: set[tuple[int, bytes]] = set()

    def register_proof(
        self, proof_type: int, submitter: str, proof_data: bytes, proof_outputs: bytes
    ) -> None:
        split_proof_bundle(proof_outputs)
        with self._lock:
            self._accepted[(proof_type, submitter.lower(), bytes(proof_data))] = bytes(proof_outputs)

    def validate_proof(self, proof_type: int, submitter: str, proof_data: bytes) -> bytes:
        with self._lock:
            bundle = self._accepted.get((proof_type, submitter.lower(), bytes(proof_data)))
            if bundle is None:
                raise UnauthorizedProof(
                    f"proof of type {proof_type} from {submitter} was not accepted"
                )
            for output in split_proof_bundle(bundle):
                digest = proof_output_hash(output)
                self._validated.setdefault((proof_type, digest), set()).add(submitter.lower())
                logger.debug("Validated proof output", extra={"proof_hash": "0x" + digest.hex()})
            return bundle

    def validate_proof_by_hash(self, proof_type: int, proof_hash: bytes, signer: str) -> bool:
        key = (proof_type, bytes(proof_hash))
        with self._lock:
            if key in self._spent:
                return False
            return signer.lower() in self._validated.get(key, set())

    def is_spent(self, proof_type: int, proof_hash: bytes) -> bool:
        with self._lock:
            return (proof_type, bytes(proof_hash)) in self._spent

    def consume(self, proof_type: int, proof_hash: bytes) -> None:
        """Mark a validated proof output as spent."""
        key = (proof_type, bytes(proof_hash))
        with self._lock:
            if key in self._spent:
                raise ProofAlreadySpent(f"proof output 0x{proof_hash.hex()} already spent")
            if key not in self._validated:
                raise UnauthorizedProof(f"proof output 0x{proof_hash.hex()} was never validated")
            self._spent.add(key)

    # ── Transactional ────────────────────────────────────────────────────

    def snapshot(self) -> frozenset[tuple[int, bytes]]:
        with self._lock:
            return frozenset(self._spent)

    def restore(self, snapshot: frozenset[tuple[int, bytes]]) -> None:
        with self._lock:
            self._spent = set(snapshot)
