"""Tests for scoring/quality.py - Brier score interpretation."""

import numpy as np
import pytest
from pydantic import ValidationError

from calibra.config.core import QualityThresholds
from calibra.scoring.quality import QualityBand, interpret_brier_score
from calibra.shared.errors import ScoringError


class TestInterpretBrierScore:
    """Tests for interpret_brier_score with default thresholds."""

    @pytest.mark.parametrize(
        "score,band",
        [
            (0.0, QualityBand.EXCELLENT),
            (0.01, QualityBand.EXCELLENT),
            (0.1, QualityBand.EXCELLENT),
            (0.10001, QualityBand.GOOD),
            (0.2, QualityBand.GOOD),
            (0.25, QualityBand.FAIR),
            (0.3, QualityBand.FAIR),
            (0.35, QualityBand.POOR),
            (0.4, QualityBand.POOR),
            (0.41, QualityBand.BAD),
            (1.0, QualityBand.BAD),
        ],
    )
    def test_bands(self, score, band):
        """Thresholds are inclusive upper bounds."""
        assert interpret_brier_score(score) is band

    def test_monotonic(self):
        """A lower score never maps to a worse band."""
        scores = np.linspace(0.0, 1.0, 1001)
        ranks = [interpret_brier_score(float(s)).rank for s in scores]
        assert ranks == sorted(ranks)

    @pytest.mark.parametrize("score", [-0.01, 1.01, float("nan"), float("inf"), "abc", None, True])
    def test_rejects_invalid(self, score):
        """Non-numeric or out-of-range scores raise ScoringError."""
        with pytest.raises(ScoringError):
            interpret_brier_score(score)

    def test_custom_thresholds(self):
        """Thresholds are configurable."""
        t = QualityThresholds(excellent=0.05, good=0.1, fair=0.15, poor=0.2)
        assert interpret_brier_score(0.12, t) is QualityBand.FAIR
        assert interpret_brier_score(0.25, t) is QualityBand.BAD


class TestQualityBand:
    """Tests for QualityBand helpers."""

    def test_descriptions(self):
        """Each band has a human description."""
        assert QualityBand.EXCELLENT.description == "Superforecaster level"
        assert QualityBand.BAD.description == "Worse than random"

    def test_ordering(self):
        """Bands are ordered best to worst."""
        assert QualityBand.BAD.is_worse_than(QualityBand.POOR)
        assert not QualityBand.EXCELLENT.is_worse_than(QualityBand.GOOD)
        assert QualityBand.EXCELLENT.rank == 0


class TestQualityThresholds:
    """Tests for threshold validation."""

    def test_must_ascend(self):
        """Out-of-order thresholds are rejected."""
        with pytest.raises(ValidationError):
            QualityThresholds(excellent=0.3, good=0.2, fair=0.25, poor=0.4)
