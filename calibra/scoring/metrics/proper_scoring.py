"""Proper scoring for binary commitments.

The Brier score rewards honest, calibrated forecasts: the best expected
score is achieved by reporting your true belief.

    Brier = (p - y)^2

where p is the stated probability of the COMMITTED direction and y is 1
if that direction occurred, else 0. Range [0, 1]; 0 is perfect.

p is never "probability of YES" for a NO commitment. Callers holding a
market-level YES probability normalize with
calibra.shared.probability.direction_relative first.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from calibra.protocol.models.v1.commitment import PredictionCommitment, ResolutionRecord
from calibra.shared.errors import InvalidCommitment, ScoringError

from ..determinism import round_decimal, to_decimal


def brier_score(probability: float, direction_occurred: bool) -> float:
    """Compute the Brier score for a single direction-relative forecast.

    Computed in Decimal, so the textbook cases are exact:
    brier_score(0.9, True) == 0.01, brier_score(0.72, True) == 0.0784.

    Args:
        probability: Confidence in the committed direction, in (0, 1)
        direction_occurred: True if the committed direction happened

    Returns:
        Brier score in [0, 1]

    Raises:
        InvalidCommitment: If probability is not strictly inside (0, 1)
    """
    p = to_decimal(probability, "probability")
    if not (Decimal("0") < p < Decimal("1")):
        raise InvalidCommitment(f"probability {p} must be strictly between 0 and 1")
    indicator = Decimal("1") if direction_occurred else Decimal("0")
    return float(round_decimal((p - indicator) ** 2))


def brier_score_batch(
    probabilities: Sequence[float] | NDArray[np.float64],
    outcomes: Sequence[bool] | NDArray[np.bool_],
) -> NDArray[np.float64]:
    """Compute Brier scores for a batch of direction-relative forecasts.

    Args:
        probabilities: Shape (N,) probabilities of the committed directions
        outcomes: Shape (N,) booleans, True where the committed direction occurred

    Returns:
        Shape (N,) array of Brier scores
    """
    p = np.asarray(probabilities, dtype=np.float64)
    y = np.asarray(outcomes, dtype=np.float64)
    if p.ndim != 1 or p.shape != y.shape:
        raise ScoringError(f"shape mismatch: probabilities {p.shape} vs outcomes {y.shape}")
    if not np.all(np.isfinite(p)) or np.any((p <= 0.0) | (p >= 1.0)):
        raise ScoringError("probabilities must be finite and strictly between 0 and 1")
    return (p - y) ** 2


def mean_brier_score(
    probabilities: Sequence[float] | NDArray[np.float64],
    outcomes: Sequence[bool] | NDArray[np.bool_],
) -> float:
    """Average Brier score over a forecaster's resolved commitments."""
    scores = brier_score_batch(probabilities, outcomes)
    if scores.size == 0:
        raise ScoringError("no resolved commitments to score")
    return float(np.mean(scores))


def resolve_commitment(commitment: PredictionCommitment, direction_occurred: bool) -> ResolutionRecord:
    """Score a commitment against the resolved market."""
    return ResolutionRecord(
        market_ticker=commitment.market_ticker,
        direction_occurred=bool(direction_occurred),
        brier_score=brier_score(commitment.probability, direction_occurred),
    )


__all__ = [
    "brier_score",
    "brier_score_batch",
    "mean_brier_score",
    "resolve_commitment",
]
