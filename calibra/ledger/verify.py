"""Lifecycle verification.

Given the PREDICT memo and the RESOLVE memo read back from the ledger,
anyone can recompute the Brier score and check that the resolution record
is honest. Nothing here touches the network.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional

from calibra.protocol.codec import DecodedPrediction, DecodedResolution, MemoLimits, decode
from calibra.scoring.metrics.proper_scoring import brier_score
from calibra.shared.probability import from_basis_points, to_basis_points

from .gateway import LedgerMemo

DEFAULT_TOLERANCE = 0.0001


@dataclass
class VerificationReport:
    valid: bool
    errors: List[str] = field(default_factory=list)
    expected_brier: Optional[float] = None
    recorded_brier: Optional[float] = None


def verify_lifecycle(
    prediction_memo: str,
    resolution_memo: str,
    tolerance: float = DEFAULT_TOLERANCE,
    *,
    prediction_block: Optional[int] = None,
    resolution_block: Optional[int] = None,
    limits: MemoLimits | None = None,
) -> VerificationReport:
    """Check that a RESOLVE memo is consistent with its PREDICT memo.

    The expected score is recomputed from the committed probability and
    quantized to basis points the same way the encoder does before it is
    compared. When block numbers are given the prediction must precede the
    resolution.
    """
    errors: List[str] = []
    prediction = decode(prediction_memo, limits)
    resolution = decode(resolution_memo, limits)

    if not isinstance(prediction, DecodedPrediction):
        errors.append("prediction memo is not a valid PREDICT memo")
    if not isinstance(resolution, DecodedResolution):
        errors.append("resolution memo is not a valid RESOLVE memo")
    if errors:
        return VerificationReport(valid=False, errors=errors)

    commitment = prediction.commitment
    record = resolution.resolution
    if commitment.market_ticker != record.market_ticker:
        errors.append(
            f"ticker mismatch: prediction {commitment.market_ticker!r}, resolution {record.market_ticker!r}"
        )

    raw = brier_score(commitment.probability, record.direction_occurred)
    expected = from_basis_points(to_basis_points(Decimal(str(raw))))
    if abs(expected - record.brier_score) > tolerance:
        errors.append(f"brier mismatch: expected {expected:.4f}, recorded {record.brier_score:.4f}")

    if prediction_block is not None and resolution_block is not None and prediction_block >= resolution_block:
        errors.append(
            f"prediction in block {prediction_block} does not precede resolution in block {resolution_block}"
        )

    return VerificationReport(
        valid=not errors,
        errors=errors,
        expected_brier=expected,
        recorded_brier=record.brier_score,
    )


def verification_links(
    reference: str,
    explorer_template: str,
    resolution_reference: Optional[str] = None,
) -> dict:
    """Shareable explorer links for a commitment and, if resolved, its resolution."""
    links = {"prediction": explorer_template.format(reference=reference)}
    if resolution_reference:
        links["resolution"] = explorer_template.format(reference=resolution_reference)
    return links


def find_matching_memo(history: Iterable[LedgerMemo], memo: str) -> Optional[LedgerMemo]:
    """First ledger entry whose payload is exactly memo."""
    for entry in history:
        if entry.memo == memo:
            return entry
    return None


__all__ = [
    "DEFAULT_TOLERANCE",
    "VerificationReport",
    "verify_lifecycle",
    "verification_links",
    "find_matching_memo",
]
