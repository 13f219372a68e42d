"""v1 common models and failure envelope.

These models are public contract shapes returned to callers of the
commitment service. They import the shared enums for consistency across
codec, gateway and service.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from calibra.shared.enums import CommitState, Direction, MemoKind, ResolutionOutcome
from calibra.shared.errors import CalibraError, ErrorCategory


class CommitFailure(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    category: ErrorCategory = Field(..., description="Closed machine-readable failure category")
    message: str = Field(..., description="Human-friendly failure message")
    user_facing: bool = Field(
        default=True,
        description="False for internal invariant violations that must not be shown as the user's fault",
    )
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Optional structured failure details"
    )

    @classmethod
    def from_error(cls, error: CalibraError, *, internal: bool = False) -> "CommitFailure":
        if internal:
            return cls(
                category=ErrorCategory.INTERNAL,
                message="commitment could not be prepared; this is not caused by your input",
                user_facing=False,
                details={"cause": error.category.value, "error": error.message},
            )
        return cls(
            category=error.category,
            message=error.message,
            user_facing=error.category.user_facing,
            details=error.details,
        )

    @property
    def retryable(self) -> bool:
        return self.category.retryable


__all__ = [
    "CommitState",
    "Direction",
    "MemoKind",
    "ResolutionOutcome",
    "CommitFailure",
]
