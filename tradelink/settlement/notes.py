"""Note extraction from asset-transfer proof outputs.

A proof output is what the proof registry hands back for one accepted
join-split proof. Layout (every word is 32 bytes, big-endian)::

    LEN(body) || body
    body := COUNT(n) || commitment * n      input notes
            COUNT(m) || commitment * m      output notes
            owner                           address, left-padded word
            public value                    int256, two's complement

A proof-output bundle is ``COUNT(k) || proof output * k``. The hash the
registry keys validity on is ``keccak256(body)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from tradelink.core.crypto import (
    WORD_SIZE,
    encode_address_word,
    encode_bytes32,
    encode_int256,
    encode_uint256,
    keccak256,
)
from tradelink.core.errors import InvalidNoteCount, MalformedProofOutput, UnauthorizedProof
from tradelink.settlement.codec import ByteReader

if TYPE_CHECKING:
    from tradelink.settlement.registry import ProofRegistry

logger = logging.getLogger(__name__)

MIN_INPUT_NOTES = 1
MIN_OUTPUT_NOTES = 2


@dataclass(frozen=True)
class ExtractedNotes:
    """Decoded contents of one proof output."""

    input_commitments: tuple[bytes, ...]
    output_commitments: tuple[bytes, ...]
    owner: str
    public_value: int


# ── Encoding ─────────────────────────────────────────────────────────────────


def encode_proof_output(
    input_commitments: Sequence[bytes],
    output_commitments: Sequence[bytes],
    owner: str,
    public_value: int = 0,
) -> bytes:
    """Build a length-prefixed proof output."""
    body = b"".join(
        [
            encode_uint256(len(input_commitments)),
            *(encode_bytes32(c) for c in input_commitments),
            encode_uint256(len(output_commitments)),
            *(encode_bytes32(c) for c in output_commitments),
            encode_address_word(owner),
            encode_int256(public_value),
        ]
    )
    return encode_uint256(len(body)) + body


def encode_proof_bundle(proof_outputs: Sequence[bytes]) -> bytes:
    return encode_uint256(len(proof_outputs)) + b"".join(proof_outputs)


# ── Decoding ─────────────────────────────────────────────────────────────────


def _strip_length_prefix(proof_output: bytes) -> bytes:
    reader = ByteReader(proof_output, MalformedProofOutput, "proof output")
    length = reader.read_uint()
    if length != reader.remaining:
        raise reader.fail(f"length word says {length} bytes but {reader.remaining} follow")
    return reader.read(length)


def proof_output_hash(proof_output: bytes) -> bytes:
    """keccak256 of the proof-output body, the registry's validity key."""
    return keccak256(_strip_length_prefix(proof_output))


def extract_proof_output(proof_output: bytes) -> ExtractedNotes:
    """Decode one length-prefixed proof output. Pure; no registry access."""
    reader = ByteReader(_strip_length_prefix(proof_output), MalformedProofOutput, "proof output")

    inputs = tuple(reader.read_word() for _ in range(reader.read_count(WORD_SIZE)))
    outputs = tuple(reader.read_word() for _ in range(reader.read_count(WORD_SIZE)))
    owner = reader.read_address_word()
    public_value = reader.read_int()
    reader.expect_end()

    return ExtractedNotes(
        input_commitments=inputs,
        output_commitments=outputs,
        owner=owner,
        public_value=public_value,
    )


def split_proof_bundle(bundle: bytes) -> list[bytes]:
    """Split a bundle into its length-prefixed proof outputs."""
    reader = ByteReader(bundle, MalformedProofOutput, "proof bundle")
    count = reader.read_count(WORD_SIZE)
    outputs = []
    for _ in range(count):
        length_word = reader.read_word()
        length = int.from_bytes(length_word, "big")
        outputs.append(length_word + reader.read(length))
    reader.expect_end()
    return outputs


def first_proof_output(bundle: bytes) -> bytes:
    outputs = split_proof_bundle(bundle)
    if not outputs:
        raise MalformedProofOutput("proof bundle is empty")
    return outputs[0]


# ── Registry-backed extraction ───────────────────────────────────────────────


class NoteExtractor:
    """Pulls the linking commitments out of registry-validated proof outputs."""

    def __init__(self, registry: "ProofRegistry", proof_type: int) -> None:
        self.registry = registry
        self.proof_type = proof_type

    def extract_and_verify_note_hashes(
        self, proof_output: bytes, expected_submitter: str
    ) -> tuple[bytes, bytes]:
        """Return ``(first input commitment, first output commitment)``.

        Raises:
            MalformedProofOutput: the payload does not decode.
            UnauthorizedProof: the registry does not attribute this proof
                output to ``expected_submitter``.
            InvalidNoteCount: fewer than one input or two output notes.
        """
        digest = proof_output_hash(proof_output)
        if not self.registry.validate_proof_by_hash(self.proof_type, digest, expected_submitter):
            logger.info(
                "Registry rejected proof output for %s",
                expected_submitter,
                extra={"proof_hash": "0x" + digest.hex()},
            )
            raise UnauthorizedProof(
                f"proof output 0x{digest.hex()} is not valid for {expected_submitter}",
                details=[{"proof_type": self.proof_type, "submitter": expected_submitter}],
            )

        notes = extract_proof_output(proof_output)
        if len(notes.input_commitments) < MIN_INPUT_NOTES or len(notes.output_commitments) < MIN_OUTPUT_NOTES:
            raise InvalidNoteCount(
                f"need >= {MIN_INPUT_NOTES} input and >= {MIN_OUTPUT_NOTES} output notes, "
                f"got {len(notes.input_commitments)} and {len(notes.output_commitments)}"
            )
        return notes.input_commitments[0], notes.output_commitments[0]
