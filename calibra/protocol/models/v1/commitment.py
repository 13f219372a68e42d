"""v1 commitment and resolution records.

A PredictionCommitment is created once, encoded once and afterwards exists
only as an immutable ledger memo. Records are frozen; the codec enforces
the wire invariants, so these models only pin field types.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .common import Direction


class PredictionCommitment(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    market_ticker: str = Field(description="Opaque market identifier, e.g. KXBTC-26DEC31-T100K")
    probability: float = Field(description="Confidence that `direction` resolves true, in (0, 1)")
    direction: Direction
    committer_ref: str = Field(description="Short non-reversible reference to the committing account")


class ResolutionRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    market_ticker: str
    direction_occurred: bool = Field(description="True iff the committed direction happened")
    brier_score: float = Field(description="Brier score of the commitment, in [0, 1]")


def committer_reference(address: str, *, head: int = 6, tail: int = 6) -> str:
    """Shorten an account address for display and audit.

    Only the ends of the address are kept, so the full key cannot be read
    back from a memo.
    """
    if len(address) <= head + tail:
        return address
    return f"{address[:head]}..{address[-tail:]}"


__all__ = ["PredictionCommitment", "ResolutionRecord", "committer_reference"]
