"""Tests for note extraction from proof outputs."""

from __future__ import annotations

import pytest

from tradelink.core.crypto import keccak256
from tradelink.core.errors import InvalidNoteCount, MalformedProofOutput, UnauthorizedProof
from tradelink.settlement.notes import (
    NoteExtractor,
    encode_proof_bundle,
    encode_proof_output,
    extract_proof_output,
    first_proof_output,
    proof_output_hash,
    split_proof_bundle,
)
from tradelink.settlement.registry import InMemoryProofRegistry

OWNER = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"


class TestExtractProofOutput:
    def test_decodes_all_sections(self, commitment):
        inputs = [commitment("in-0"), commitment("in-1")]
        outputs = [commitment("out-0"), commitment("out-1"), commitment("out-2")]
        notes = extract_proof_output(encode_proof_output(inputs, outputs, OWNER, -42))

        assert notes.input_commitments == tuple(inputs)
        assert notes.output_commitments == tuple(outputs)
        assert notes.owner == OWNER
        assert notes.public_value == -42

    def test_empty_note_sets_decode(self):
        notes = extract_proof_output(encode_proof_output([], [], OWNER))
        assert notes.input_commitments == ()
        assert notes.output_commitments == ()

    def test_truncated_payload(self, commitment):
        raw = encode_proof_output([commitment("a")], [commitment("b")], OWNER)
        with pytest.raises(MalformedProofOutput):
            extract_proof_output(raw[:-5])

    def test_length_word_mismatch(self, commitment):
        raw = encode_proof_output([commitment("a")], [commitment("b")], OWNER)
        with pytest.raises(MalformedProofOutput, match="length word"):
            extract_proof_output(raw + b"\x00")

    def test_count_exceeds_payload(self, commitment):
        raw = bytearray(encode_proof_output([commitment("a")], [], OWNER))
        raw[32 + 31] = 9  # input count word claims nine notes
        with pytest.raises(MalformedProofOutput, match="declared"):
            extract_proof_output(bytes(raw))

    def test_dirty_owner_padding(self):
        raw = bytearray(encode_proof_output([], [], OWNER))
        owner_word = 32 + 32 + 32
        raw[owner_word] = 0xFF
        with pytest.raises(MalformedProofOutput, match="padding"):
            extract_proof_output(bytes(raw))

    def test_error_carries_offset_details(self):
        with pytest.raises(MalformedProofOutput) as exc_info:
            extract_proof_output(b"\x00" * 10)
        assert exc_info.value.details[0]["length"] == 10


class TestProofHash:
    def test_hash_covers_body_only(self, commitment):
        raw = encode_proof_output([commitment("a")], [commitment("b")], OWNER)
        assert proof_output_hash(raw) == keccak256(raw[32:])


class TestBundles:
    def test_split_and_first(self, commitment):
        first = encode_proof_output([commitment("a")], [commitment("b")], OWNER)
        second = encode_proof_output([commitment("c")], [commitment("d")], OWNER, 7)
        bundle = encode_proof_bundle([first, second])

        assert split_proof_bundle(bundle) == [first, second]
        assert first_proof_output(bundle) == first

    def test_empty_bundle(self):
        with pytest.raises(MalformedProofOutput, match="empty"):
            first_proof_output(encode_proof_bundle([]))

    def test_trailing_bytes(self):
        bundle = encode_proof_bundle([encode_proof_output([], [], OWNER)])
        with pytest.raises(MalformedProofOutput, match="trailing"):
            split_proof_bundle(bundle + b"\x01")


class TestNoteExtractor:
    @pytest.fixture
    def submit(self, registry: InMemoryProofRegistry, proof_type: int):
        def _submit(output: bytes, submitter: str = OWNER) -> None:
            registry.register_proof(proof_type, submitter, b"proof", encode_proof_bundle([output]))
            registry.validate_proof(proof_type, submitter, b"proof")

        return _submit

    @pytest.fixture
    def extractor(self, registry, proof_type) -> NoteExtractor:
        return NoteExtractor(registry, proof_type)

    def test_returns_linking_commitments(self, submit, extractor, commitment):
        output = encode_proof_output(
            [commitment("in-0"), commitment("in-1")],
            [commitment("out-0"), commitment("out-1")],
            OWNER,
        )
        submit(output)

        assert extractor.extract_and_verify_note_hashes(output, OWNER) == (
            commitment("in-0"),
            commitment("out-0"),
        )

    def test_unknown_proof_is_unauthorized(self, extractor, commitment):
        output = encode_proof_output([commitment("a")], [commitment("b"), commitment("c")], OWNER)
        with pytest.raises(UnauthorizedProof):
            extractor.extract_and_verify_note_hashes(output, OWNER)

    def test_wrong_submitter_is_unauthorized(self, submit, extractor, commitment):
        output = encode_proof_output([commitment("a")], [commitment("b"), commitment("c")], OWNER)
        submit(output)
        with pytest.raises(UnauthorizedProof):
            extractor.extract_and_verify_note_hashes(output, "0x" + "99" * 20)

    def test_wrong_proof_type_is_unauthorized(self, registry, proof_type, submit, commitment):
        output = encode_proof_output([commitment("a")], [commitment("b"), commitment("c")], OWNER)
        submit(output)
        with pytest.raises(UnauthorizedProof):
            NoteExtractor(registry, proof_type + 1).extract_and_verify_note_hashes(output, OWNER)

    @pytest.mark.parametrize(
        "n_inputs,n_outputs",
        [(0, 2), (1, 1), (0, 0), (1, 0)],
    )
    def test_note_count_policy(self, submit, extractor, commitment, n_inputs, n_outputs):
        output = encode_proof_output(
            [commitment(f"in-{i}") for i in range(n_inputs)],
            [commitment(f"out-{i}") for i in range(n_outputs)],
            OWNER,
        )
        submit(output)
        with pytest.raises(InvalidNoteCount):
            extractor.extract_and_verify_note_hashes(output, OWNER)
