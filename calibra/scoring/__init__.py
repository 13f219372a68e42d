"""Scoring for committed forecasts.

This package contains the pure scoring logic:
- Commitment input validation (validation)
- Decimal helpers for deterministic results (determinism)
- Brier score, batch track-record scoring (metrics.proper_scoring)
- Qualitative Brier bands (quality)
"""

from __future__ import annotations

__all__: list[str] = []
