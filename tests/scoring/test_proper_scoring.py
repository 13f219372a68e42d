"""Tests for proper scoring: Brier score for binary commitments."""

import numpy as np
import pytest

from calibra.protocol.models.v1.commitment import PredictionCommitment
from calibra.scoring.metrics.proper_scoring import (
    brier_score,
    brier_score_batch,
    mean_brier_score,
    resolve_commitment,
)
from calibra.shared.enums import Direction
from calibra.shared.errors import InvalidCommitment, ScoringError
from calibra.shared.probability import direction_relative


class TestBrierScore:
    """Tests for single Brier score calculation."""

    def test_confident_and_right(self):
        """0.9 on an outcome that happened scores exactly 0.01."""
        assert brier_score(0.9, True) == 0.01

    def test_example_commitment(self):
        """0.72 YES that resolves YES scores 0.0784."""
        assert brier_score(0.72, True) == 0.0784

    def test_confident_and_wrong(self):
        """0.72 on an outcome that did not happen scores 0.5184."""
        assert brier_score(0.72, False) == 0.5184

    def test_coin_flip(self):
        """0.5 scores 0.25 either way."""
        assert brier_score(0.5, True) == 0.25
        assert brier_score(0.5, False) == 0.25

    def test_within_unit_interval(self):
        """Scores stay within [0, 1] across the open interval."""
        for p in np.linspace(0.0001, 0.9999, 101):
            for occurred in (True, False):
                assert 0.0 <= brier_score(float(p), occurred) <= 1.0

    def test_honest_forecast_minimizes_expected_score(self):
        """Reporting the true belief minimizes the expected score."""
        belief = 0.7

        def expected(report):
            return belief * brier_score(report, True) + (1 - belief) * brier_score(report, False)

        assert expected(0.7) < expected(0.6)
        assert expected(0.7) < expected(0.8)

    @pytest.mark.parametrize("prob", [0.0, 1.0, -0.1, 1.1, float("nan"), float("inf"), None, True])
    def test_rejects_out_of_range(self, prob):
        """Probabilities outside (0, 1) are InvalidCommitment."""
        with pytest.raises(InvalidCommitment):
            brier_score(prob, True)


class TestBrierScoreBatch:
    """Tests for vectorized Brier scores."""

    def test_matches_scalar(self):
        """Batch scores agree with the scalar function."""
        probs = [0.9, 0.2, 0.72]
        outcomes = [True, False, False]
        scores = brier_score_batch(probs, outcomes)
        for p, y, s in zip(probs, outcomes, scores):
            assert s == pytest.approx(brier_score(p, y), abs=1e-12)

    def test_shape_mismatch(self):
        """Mismatched lengths raise ScoringError."""
        with pytest.raises(ScoringError):
            brier_score_batch([0.5, 0.5], [True])

    def test_rejects_certainty(self):
        """0 or 1 anywhere in the batch raises ScoringError."""
        with pytest.raises(ScoringError):
            brier_score_batch([0.5, 1.0], [True, True])

    def test_rejects_nan(self):
        """NaN anywhere in the batch raises ScoringError."""
        with pytest.raises(ScoringError):
            brier_score_batch(np.array([0.5, np.nan]), [True, True])

    def test_mean(self):
        """Mean Brier over a track record."""
        assert mean_brier_score([0.9, 0.2], [True, False]) == pytest.approx(0.025)

    def test_mean_empty(self):
        """Empty track record cannot be scored."""
        with pytest.raises(ScoringError):
            mean_brier_score([], [])


class TestResolveCommitment:
    """Tests for resolve_commitment."""

    def test_builds_record(self):
        """Record carries ticker, outcome and score."""
        c = PredictionCommitment(
            market_ticker="KXBTC-26DEC31-T100K",
            probability=0.72,
            direction=Direction.YES,
            committer_ref="ref",
        )
        record = resolve_commitment(c, True)
        assert record.market_ticker == "KXBTC-26DEC31-T100K"
        assert record.direction_occurred is True
        assert record.brier_score == 0.0784


class TestDirectionRelative:
    """Tests for direction_relative."""

    def test_yes_passthrough(self):
        """YES commitments use P(YES) directly."""
        assert direction_relative(0.3, Direction.YES) == 0.3

    def test_no_complement(self):
        """NO commitments use 1 - P(YES), exactly."""
        assert direction_relative(0.3, "NO") == 0.7
