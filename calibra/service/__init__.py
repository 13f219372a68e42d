"""Commitment orchestration and caller-side retry."""

from .commitment import CommitmentService
from .retry import RetryPolicy, commit_with_retry

__all__ = ["CommitmentService", "RetryPolicy", "commit_with_retry"]
