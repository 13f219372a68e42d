"""Probability utilities shared by the memo codec and scoring.

Probabilities travel on the wire as basis points (1/10000) so that an
encode -> decode -> encode round trip is byte-identical on every platform.

Safe math and bounds:
- Quantization uses Decimal with ROUND_HALF_EVEN; the worst-case precision
  loss is half a basis point (0.00005).
- A committed probability must land in [1, 9999] bps. 0 and 10000 encode
  certainty and are rejected by the callers, not clamped here.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal

from .enums import Direction

BPS_SCALE = 10000
MIN_COMMIT_BPS = 1
MAX_COMMIT_BPS = BPS_SCALE - 1
BPS_RESOLUTION = 1.0 / BPS_SCALE


def to_basis_points(value: Decimal) -> int:
    """Quantize a unit-interval Decimal to integer basis points."""
    scaled = (value * BPS_SCALE).quantize(Decimal("1"), rounding=ROUND_HALF_EVEN)
    return int(scaled)


def from_basis_points(bps: int) -> float:
    """Inverse of to_basis_points. Exact for every integer bps."""
    return float(Decimal(int(bps)) / BPS_SCALE)


def is_commit_bps(bps: int) -> bool:
    return MIN_COMMIT_BPS <= bps <= MAX_COMMIT_BPS


def is_score_bps(bps: int) -> bool:
    return 0 <= bps <= BPS_SCALE


def direction_relative(prob_yes: float, direction: Direction | str) -> float:
    """Convert P(YES) into the probability of the committed direction.

    Scoring is always done against the committed direction; callers that
    hold a market-level YES probability go through here first.
    """
    if Direction(direction) is Direction.YES:
        return float(prob_yes)
    return float(Decimal("1") - Decimal(str(prob_yes)))


__all__ = [
    "BPS_SCALE",
    "MIN_COMMIT_BPS",
    "MAX_COMMIT_BPS",
    "BPS_RESOLUTION",
    "to_basis_points",
    "from_basis_points",
    "is_commit_bps",
    "is_score_bps",
    "direction_relative",
]
