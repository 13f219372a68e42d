"""Qualitative bands for Brier scores.

Bands are ordered best to worst. Thresholds are inclusive upper bounds
taken from QualityThresholds; anything above the last threshold is BAD.
"""

from __future__ import annotations

import math
from enum import Enum

from calibra.config.core import QualityThresholds, get_settings
from calibra.shared.errors import ScoringError


class QualityBand(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    BAD = "bad"

    @property
    def rank(self) -> int:
        """0 is best. Lower rank never maps to a higher score."""
        return _ORDER.index(self)

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    def is_worse_than(self, other: "QualityBand") -> bool:
        return self.rank > other.rank


_ORDER = (
    QualityBand.EXCELLENT,
    QualityBand.GOOD,
    QualityBand.FAIR,
    QualityBand.POOR,
    QualityBand.BAD,
)

_DESCRIPTIONS = {
    QualityBand.EXCELLENT: "Superforecaster level",
    QualityBand.GOOD: "Well-calibrated",
    QualityBand.FAIR: "Average forecaster",
    QualityBand.POOR: "Needs improvement",
    QualityBand.BAD: "Worse than random",
}


def interpret_brier_score(score: float, thresholds: QualityThresholds | None = None) -> QualityBand:
    """Map a Brier score in [0, 1] to its quality band.

    Raises:
        ScoringError: If score is not a finite number within [0, 1]
    """
    if isinstance(score, bool):
        raise ScoringError("score must be numeric, got bool")
    try:
        s = float(score)
    except (TypeError, ValueError) as e:
        raise ScoringError(f"score {score!r} is not numeric: {e}")
    if not math.isfinite(s) or s < 0.0 or s > 1.0:
        raise ScoringError(f"score {s} must be finite and within [0, 1]")

    t = thresholds or get_settings().quality
    bounds = (t.excellent, t.good, t.fair, t.poor)
    for band, upper in zip(_ORDER, bounds):
        if s <= upper:
            return band
    return QualityBand.BAD


__all__ = ["QualityBand", "interpret_brier_score"]
