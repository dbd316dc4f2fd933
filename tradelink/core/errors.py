"""Settlement error taxonomy.

Every failure aborts the whole settlement call and is reported through a
consistent envelope:

    {
        "error": {
            "code": "TRADE_EXPIRED",
            "message": "Human-readable description",
            "details": [...optional structured context...],
            "retriable": false
        }
    }

None of the protocol failures are retriable as-is; the off-chain side must
resubmit with corrected parameters or a fresh signature.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel


# ── Error Codes ──────────────────────────────────────────────────────────────


class ErrorCode(str, Enum):
    """Standard error codes returned in the error envelope."""

    SETTLEMENT_FAILED = "SETTLEMENT_FAILED"

    # Decoding
    MALFORMED_PROOF_OUTPUT = "MALFORMED_PROOF_OUTPUT"
    MALFORMED_TRADE_PARAMS = "MALFORMED_TRADE_PARAMS"

    # Proof validation
    UNAUTHORIZED_PROOF = "UNAUTHORIZED_PROOF"
    INVALID_NOTE_COUNT = "INVALID_NOTE_COUNT"
    PROOF_ALREADY_SPENT = "PROOF_ALREADY_SPENT"

    # Trade terms
    TRADE_EXPIRED = "TRADE_EXPIRED"
    TRADE_TERMS_MISMATCH = "TRADE_TERMS_MISMATCH"

    # Signatures
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    INVALID_TRADE_SIGNATURE = "INVALID_TRADE_SIGNATURE"

    # Execution
    UNKNOWN_TOKEN = "UNKNOWN_TOKEN"
    TOKEN_TRANSFER_FAILED = "TOKEN_TRANSFER_FAILED"


# ── Error Schemas ────────────────────────────────────────────────────────────


class ErrorEnvelope(BaseModel):
    """Standard error envelope."""

    code: str
    message: str
    details: list[dict[str, Any]] | None = None
    retriable: bool = False


class ErrorResponse(BaseModel):
    """Top-level error response."""

    error: ErrorEnvelope


# ── Exceptions ───────────────────────────────────────────────────────────────


class SettlementError(Exception):
    """Base class for every settlement failure, with structured code + message."""

    code: ErrorCode = ErrorCode.SETTLEMENT_FAILED
    retriable: bool = False

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_envelope(self) -> ErrorResponse:
        return ErrorResponse(
            error=ErrorEnvelope(
                code=self.code.value,
                message=self.message,
                details=self.details,
                retriable=self.retriable,
            )
        )


class MalformedProofOutput(SettlementError):
    code = ErrorCode.MALFORMED_PROOF_OUTPUT


class MalformedTradeParams(SettlementError):
    code = ErrorCode.MALFORMED_TRADE_PARAMS


class UnauthorizedProof(SettlementError):
    code = ErrorCode.UNAUTHORIZED_PROOF


class InvalidNoteCount(SettlementError):
    code = ErrorCode.INVALID_NOTE_COUNT


class ProofAlreadySpent(SettlementError):
    code = ErrorCode.PROOF_ALREADY_SPENT


class TradeExpired(SettlementError):
    code = ErrorCode.TRADE_EXPIRED


class TradeTermsMismatch(SettlementError):
    code = ErrorCode.TRADE_TERMS_MISMATCH


class InvalidSignature(SettlementError):
    code = ErrorCode.INVALID_SIGNATURE


class InvalidTradeSignature(InvalidSignature):
    """The recovered signer is not the bidder declared in the bid."""

    code = ErrorCode.INVALID_TRADE_SIGNATURE


class UnknownToken(SettlementError):
    code = ErrorCode.UNKNOWN_TOKEN


class TokenTransferError(SettlementError):
    """Raised by the in-memory reference token when it refuses a transfer."""

    code = ErrorCode.TOKEN_TRANSFER_FAILED
