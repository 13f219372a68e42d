from __future__ import annotations

from enum import Enum


class Direction(str, Enum):
    YES = "YES"
    NO = "NO"


class MemoKind(str, Enum):
    PREDICT = "PREDICT"
    RESOLVE = "RESOLVE"


class ResolutionOutcome(str, Enum):
    """Wire token for whether the committed direction happened."""

    OCCURRED = "OCCURRED"
    DID_NOT_OCCUR = "DID_NOT_OCCUR"

    @classmethod
    def from_bool(cls, direction_occurred: bool) -> "ResolutionOutcome":
        return cls.OCCURRED if direction_occurred else cls.DID_NOT_OCCUR

    @property
    def direction_occurred(self) -> bool:
        return self is ResolutionOutcome.OCCURRED


class CommitState(str, Enum):
    VALIDATING = "validating"
    CHECKING_AFFORDABILITY = "checking_affordability"
    ENCODING = "encoding"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (CommitState.SUCCEEDED, CommitState.FAILED)


__all__ = ["Direction", "MemoKind", "ResolutionOutcome", "CommitState"]
