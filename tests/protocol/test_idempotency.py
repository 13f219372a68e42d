"""Tests for protocol/mapping/idempotency.py - Intent keys and digests."""

from __future__ import annotations

import pytest

from calibra.protocol.mapping.idempotency import (
    commitment_digest,
    commitment_intent_key,
    stable_payload_hash,
)
from calibra.protocol.models.v1.commitment import PredictionCommitment
from calibra.shared.enums import Direction
from calibra.shared.errors import InvalidCommitment


def _commitment(**overrides) -> PredictionCommitment:
    fields = {
        "market_ticker": "KXBTC-26DEC31-T100K",
        "probability": 0.72,
        "direction": Direction.YES,
        "committer_ref": "5Grwva..GKutQY",
    }
    fields.update(overrides)
    return PredictionCommitment(**fields)


class TestCommitmentIntentKey:
    """Tests for commitment_intent_key function."""

    def test_shape(self):
        """Key is (address, ticker, bps, direction)."""
        key = commitment_intent_key("5addr", "T", 0.72, Direction.YES)
        assert key == ("5addr", "T", 7200, "YES")

    def test_same_bps_same_key(self):
        """Probabilities that encode identically share a key."""
        key1 = commitment_intent_key("5addr", "T", 0.72, "YES")
        key2 = commitment_intent_key("5addr", "T", 0.72004, "YES")
        assert key1 == key2

    def test_enum_and_string_direction_equal(self):
        """Direction may be given as enum or token."""
        assert commitment_intent_key("a", "T", 0.5, Direction.NO) == commitment_intent_key("a", "T", 0.5, "NO")

    def test_different_address_different_key(self):
        """Different accounts produce different keys."""
        assert commitment_intent_key("a", "T", 0.5, "NO") != commitment_intent_key("b", "T", 0.5, "NO")

    def test_different_direction_different_key(self):
        """Different direction produces different key."""
        assert commitment_intent_key("a", "T", 0.5, "NO") != commitment_intent_key("a", "T", 0.5, "YES")

    def test_invalid_probability_raises(self):
        """Non-numeric probability is InvalidCommitment."""
        with pytest.raises(InvalidCommitment):
            commitment_intent_key("a", "T", float("nan"), "YES")


class TestStablePayloadHash:
    """Tests for stable_payload_hash function."""

    def test_produces_sha256_hex(self):
        """Produces 64-character SHA256 hex digest."""
        result = stable_payload_hash({"key": "value"})
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)

    def test_key_order_independent(self):
        """Hash is independent of key order."""
        assert stable_payload_hash({"a": 1, "b": 2}) == stable_payload_hash({"b": 2, "a": 1})

    def test_different_values_different_hash(self):
        """Different values produce different hashes."""
        assert stable_payload_hash({"key": "value1"}) != stable_payload_hash({"key": "value2"})


class TestCommitmentDigest:
    """Tests for commitment_digest function."""

    def test_deterministic(self):
        """Same commitment produces same digest."""
        assert commitment_digest(_commitment()) == commitment_digest(_commitment())

    def test_stable_across_float_noise(self):
        """Digest is keyed on basis points, not the float repr."""
        assert commitment_digest(_commitment(probability=0.72)) == commitment_digest(
            _commitment(probability=0.72000001)
        )

    def test_sensitive_to_fields(self):
        """Changing any field changes the digest."""
        base = commitment_digest(_commitment())
        assert commitment_digest(_commitment(market_ticker="OTHER")) != base
        assert commitment_digest(_commitment(direction=Direction.NO)) != base
        assert commitment_digest(_commitment(committer_ref="other")) != base
        assert commitment_digest(_commitment(probability=0.73)) != base
