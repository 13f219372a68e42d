"""Input validation for commitments.

All validation happens BEFORE anything touches the ledger. Invalid input
is rejected with InvalidCommitment; nothing is repaired or clamped.

Rejects:
- NaN, Inf, bools, non-numeric probabilities
- Probabilities outside (0, 1) or that quantize to 0 / 10000 basis points
- Unknown direction tokens
- Empty or non-string tickers and committer references
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Tuple

from calibra.shared.enums import Direction
from calibra.shared.errors import InvalidCommitment
from calibra.shared.probability import is_commit_bps, to_basis_points

from .determinism import to_decimal


class CommitmentValidator:
    """Validate raw commitment inputs.

    All validation is stateless and deterministic.
    """

    def validate_probability(self, prob: Any) -> Tuple[Decimal, int]:
        """Validate a direction-relative probability.

        Returns:
            (probability as Decimal, probability in basis points)

        Raises:
            InvalidCommitment: If probability is not strictly inside (0, 1)
                or rounds to a certainty at basis-point precision
        """
        d = to_decimal(prob, "probability")
        if not (Decimal("0") < d < Decimal("1")):
            raise InvalidCommitment(f"probability {d} must be strictly between 0 and 1")
        bps = to_basis_points(d)
        if not is_commit_bps(bps):
            raise InvalidCommitment(
                f"probability {d} rounds to {bps} bps; must be within [1, 9999]"
            )
        return d, bps

    def validate_direction(self, direction: Any) -> Direction:
        if isinstance(direction, Direction):
            return direction
        if isinstance(direction, str):
            try:
                return Direction(direction.upper())
            except ValueError:
                pass
        raise InvalidCommitment(f"direction must be YES or NO, got {direction!r}")

    def validate_text(self, value: Any, name: str) -> str:
        if not isinstance(value, str):
            raise InvalidCommitment(f"{name} must be a string, got {type(value).__name__}")
        if not value:
            raise InvalidCommitment(f"{name} is empty")
        return value

    def validate(
        self,
        market_ticker: Any,
        probability: Any,
        direction: Any,
        committer_ref: Any,
    ) -> Tuple[str, float, Direction, str]:
        """Validate all commitment fields at once."""
        ticker = self.validate_text(market_ticker, "market_ticker")
        p, _ = self.validate_probability(probability)
        d = self.validate_direction(direction)
        ref = self.validate_text(committer_ref, "committer_ref")
        return ticker, float(p), d, ref


_DEFAULT_VALIDATOR = CommitmentValidator()


def validate_probability(prob: Any) -> Tuple[Decimal, int]:
    return _DEFAULT_VALIDATOR.validate_probability(prob)


def validate_direction(direction: Any) -> Direction:
    return _DEFAULT_VALIDATOR.validate_direction(direction)


__all__ = ["CommitmentValidator", "validate_probability", "validate_direction"]
