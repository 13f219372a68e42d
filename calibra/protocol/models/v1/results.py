"""v1 commit result envelope.

Returned by both the ledger gateway (submit) and the commitment service.
Exactly one of `reference` or `failure` is meaningful, selected by `state`.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import CommitFailure, CommitState


class CommitResult(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    state: CommitState
    reference: Optional[str] = Field(default=None, description="Extrinsic hash of the submitted memo")
    explorer_url: Optional[str] = None
    memo: Optional[str] = Field(default=None, description="Exact payload submitted or found on the ledger")
    failure: Optional[CommitFailure] = None
    reconciled: bool = Field(
        default=False,
        description="True when success was established from ledger history instead of a new submission",
    )

    @property
    def succeeded(self) -> bool:
        return self.state is CommitState.SUCCEEDED

    @classmethod
    def success(
        cls,
        reference: str,
        *,
        explorer_url: Optional[str] = None,
        memo: Optional[str] = None,
        reconciled: bool = False,
    ) -> "CommitResult":
        return cls(
            state=CommitState.SUCCEEDED,
            reference=reference,
            explorer_url=explorer_url,
            memo=memo,
            reconciled=reconciled,
        )

    @classmethod
    def failed(cls, failure: CommitFailure, *, memo: Optional[str] = None) -> "CommitResult":
        return cls(state=CommitState.FAILED, failure=failure, memo=memo)


__all__ = ["CommitResult"]
