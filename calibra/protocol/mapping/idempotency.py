from __future__ import annotations

from hashlib import sha256
import json
from typing import Tuple

from calibra.shared.enums import Direction
from calibra.shared.probability import to_basis_points
from calibra.scoring.determinism import to_decimal
from calibra.protocol.models.v1.commitment import PredictionCommitment


def commitment_intent_key(
    account_address: str,
    market_ticker: str,
    probability: float,
    direction: Direction | str,
) -> Tuple[str, str, int, str]:
    """Key identifying one logical commitment intent.

    Probability is keyed in basis points so that two requests which would
    encode to the same memo share a key. Used to track submission attempts
    and to reconcile after an ambiguous submit.
    """
    bps = to_basis_points(to_decimal(probability, "probability"))
    return (account_address, market_ticker, bps, Direction(direction).value)


def stable_payload_hash(payload: dict) -> str:
    """Deterministic SHA-256 over canonical JSON of payload."""
    data = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return sha256(data).hexdigest()


def commitment_digest(commitment: PredictionCommitment) -> str:
    """Audit fingerprint of a commitment, stable across float formatting."""
    return stable_payload_hash({
        "market_ticker": commitment.market_ticker,
        "probability_bps": to_basis_points(to_decimal(commitment.probability, "probability")),
        "direction": Direction(commitment.direction).value,
        "committer_ref": commitment.committer_ref,
    })


__all__ = [
    "commitment_intent_key",
    "stable_payload_hash",
    "commitment_digest",
]
