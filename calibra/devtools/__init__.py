"""Developer and test utilities for Calibra."""

from .mock_ledger import InMemoryLedger, ScriptedFailure

__all__ = ["InMemoryLedger", "ScriptedFailure"]
