"""Closed error taxonomy for commitment, encoding, scoring and ledger calls.

Every failure that crosses a component boundary carries exactly one
ErrorCategory. Callers branch on the category, never on message text.

Retry guidance per category:
- INVALID_COMMITMENT, PAYLOAD_TOO_LARGE, UNENCODABLE_FIELD: fix the input
- INSUFFICIENT_FUNDS: top up first
- LEDGER_UNREACHABLE, NETWORK_FAILURE: transient, retry with backoff
- REJECTED: the ledger refused the transaction, investigate
- AMBIGUOUS: reconcile ledger state before any retry
- INTERNAL: a defect, never shown to the end user as their fault
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    INVALID_COMMITMENT = "invalid_commitment"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    UNENCODABLE_FIELD = "unencodable_field"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    LEDGER_UNREACHABLE = "ledger_unreachable"
    NETWORK_FAILURE = "network_failure"
    REJECTED = "rejected"
    AMBIGUOUS = "ambiguous"
    INTERNAL = "internal"

    @property
    def retryable(self) -> bool:
        return self in _TRANSIENT

    @property
    def requires_reconciliation(self) -> bool:
        return self is ErrorCategory.AMBIGUOUS

    @property
    def user_facing(self) -> bool:
        return self is not ErrorCategory.INTERNAL


_TRANSIENT = frozenset({ErrorCategory.LEDGER_UNREACHABLE, ErrorCategory.NETWORK_FAILURE})


class CalibraError(Exception):
    """Base error. Subclasses pin a single category."""

    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidCommitment(CalibraError):
    category = ErrorCategory.INVALID_COMMITMENT


class MemoEncodingError(CalibraError):
    """Encoder precondition violated; shorten or sanitize the input."""


class UnencodableField(MemoEncodingError):
    category = ErrorCategory.UNENCODABLE_FIELD


class PayloadTooLarge(MemoEncodingError):
    category = ErrorCategory.PAYLOAD_TOO_LARGE


class LedgerError(CalibraError):
    category = ErrorCategory.NETWORK_FAILURE


class LedgerUnreachable(LedgerError):
    category = ErrorCategory.LEDGER_UNREACHABLE


class ScoringError(CalibraError):
    """Raised when a score cannot be computed or interpreted."""


__all__ = [
    "ErrorCategory",
    "CalibraError",
    "InvalidCommitment",
    "MemoEncodingError",
    "UnencodableField",
    "PayloadTooLarge",
    "LedgerError",
    "LedgerUnreachable",
    "ScoringError",
]
