"""Tests for ledger/affordability.py - affordability math and cache."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from calibra.config.core import CostSettings
from calibra.ledger.affordability import (
    RAO_PER_TAO,
    AffordabilityCache,
    compute_affordability,
)

COSTS = CostSettings()  # fee 100_000 x 2 transactions, 500 reserved


class TestComputeAffordability:
    """Tests for compute_affordability."""

    def test_cost_per_commitment(self):
        """Cost covers the whole PREDICT + RESOLVE lifecycle."""
        assert COSTS.cost_per_commitment_rao == 200_000

    def test_estimate(self):
        """Estimate is committable balance divided by cost, floored."""
        snap = compute_affordability(1_000_500, COSTS)
        assert snap.estimated_remaining_commitments == 5
        assert snap.can_commit is True
        assert snap.cost_per_commitment == 200_000
        assert snap.reserved_minimum == 500

    def test_exact_threshold(self):
        """Reserved minimum plus one cost is exactly enough."""
        assert compute_affordability(200_500, COSTS).can_commit is True

    def test_one_rao_short(self):
        """One rao below the threshold cannot commit."""
        snap = compute_affordability(200_499, COSTS)
        assert snap.can_commit is False
        assert snap.estimated_remaining_commitments == 0
        assert snap.shortfall == 1

    def test_below_reserve(self):
        """Balance below the reserve is never negative committable."""
        snap = compute_affordability(100, COSTS)
        assert snap.estimated_remaining_commitments == 0
        assert snap.can_commit is False

    def test_negative_balance_treated_as_zero(self):
        """Nonsense negative balances clamp to zero."""
        assert compute_affordability(-5, COSTS).spendable_balance == 0

    def test_surcharge_included(self):
        """Memo surcharge is part of the per-transaction cost."""
        costs = CostSettings(fee_rao=100, memo_surcharge_rao=50, lifecycle_transactions=2, reserved_minimum_rao=0)
        assert compute_affordability(900, costs).estimated_remaining_commitments == 3

    def test_can_commit_iff_estimate_positive(self):
        """can_commit is exactly estimate >= 1."""
        for balance in range(0, 1_000_000, 12_345):
            snap = compute_affordability(balance, COSTS)
            assert snap.can_commit == (snap.estimated_remaining_commitments >= 1)

    def test_timestamp(self):
        """Snapshots are time-stamped."""
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert compute_affordability(0, COSTS, now=now).checked_at == now

    def test_spendable_tao(self):
        """Rao converts to TAO."""
        assert compute_affordability(RAO_PER_TAO, COSTS).spendable_tao == 1.0


class TestAffordabilityCache:
    """Tests for AffordabilityCache."""

    @pytest.fixture
    def clock(self):
        return {"now": 0.0}

    @pytest.fixture
    def cache(self, clock):
        return AffordabilityCache(30, time_fn=lambda: clock["now"])

    def test_hit_within_ttl(self, cache, clock):
        """Entries are served until the TTL elapses."""
        snap = compute_affordability(1_000_500, COSTS)
        cache.put("5addr", snap)
        clock["now"] = 29.9
        assert cache.get("5addr") is snap

    def test_expires_at_ttl(self, cache, clock):
        """Entries expire once the TTL has elapsed."""
        cache.put("5addr", compute_affordability(1_000_500, COSTS))
        clock["now"] = 30.0
        assert cache.get("5addr") is None
        assert len(cache) == 0

    def test_invalidate(self, cache):
        """Invalidate drops a single account."""
        cache.put("a", compute_affordability(1, COSTS))
        cache.put("b", compute_affordability(1, COSTS))
        cache.invalidate("a")
        cache.invalidate("missing")
        assert cache.get("a") is None
        assert cache.get("b") is not None

    def test_clear(self, cache):
        """Clear drops everything."""
        cache.put("a", compute_affordability(1, COSTS))
        cache.clear()
        assert len(cache) == 0

    def test_zero_ttl_disables(self):
        """A zero TTL never stores anything."""
        cache = AffordabilityCache(0)
        cache.put("a", compute_affordability(1, COSTS))
        assert len(cache) == 0
        assert cache.get("a") is None

    def test_instances_independent(self):
        """There is no shared cache between instances."""
        first = AffordabilityCache(30)
        second = AffordabilityCache(30)
        first.put("a", compute_affordability(1, COSTS))
        assert second.get("a") is None
