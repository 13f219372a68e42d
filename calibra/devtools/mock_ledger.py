"""In-memory ledger for local development and tests.

Behaves like SubtensorLedgerGateway without a chain:
- balances are plain rao integers keyed by address
- every accepted memo costs fee + memo surcharge and is appended to history
- failures can be scripted per call, including an AMBIGUOUS outcome where
  the memo did land on the ledger but the caller was told otherwise
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

from calibra.config.core import CostSettings, LedgerSettings
from calibra.ledger.affordability import WalletAffordability, compute_affordability
from calibra.ledger.gateway import LedgerGateway, LedgerMemo, account_address
from calibra.protocol.models.v1.common import CommitFailure
from calibra.protocol.models.v1.results import CommitResult
from calibra.shared.errors import ErrorCategory, LedgerUnreachable


@dataclass
class ScriptedFailure:
    category: ErrorCategory
    message: str = "scripted failure"
    landed: bool = False  # memo is recorded even though the submit reports failure


class InMemoryLedger(LedgerGateway):
    """Deterministic LedgerGateway; references are sequential hex hashes."""

    def __init__(
        self,
        balances: Optional[Dict[str, int]] = None,
        *,
        costs: Optional[CostSettings] = None,
        ledger: Optional[LedgerSettings] = None,
    ) -> None:
        self.costs = costs or CostSettings()
        self.explorer_url_template = (ledger or LedgerSettings()).explorer_url_template
        self.balances: Dict[str, int] = dict(balances or {})
        self.history: Dict[str, List[LedgerMemo]] = {}
        self.submit_calls = 0
        self.balance_calls = 0
        self.history_calls = 0
        self.unreachable = False
        self.history_unreachable = False
        self._failures: Deque[ScriptedFailure] = deque()
        self._next_block = 1

    # ------------------------------------------------------------------
    # Scripting
    # ------------------------------------------------------------------
    def fund(self, account: Any, rao: int) -> None:
        address = account_address(account)
        self.balances[address] = self.balances.get(address, 0) + int(rao)

    def fail_next(self, category: ErrorCategory, *, message: str = "scripted failure", landed: bool = False) -> None:
        self._failures.append(ScriptedFailure(category=category, message=message, landed=landed))

    @property
    def transaction_cost(self) -> int:
        return self.costs.fee_rao + self.costs.memo_surcharge_rao

    # ------------------------------------------------------------------
    # LedgerGateway
    # ------------------------------------------------------------------
    async def get_affordability(self, account: Any, *, timeout: Optional[float] = None) -> WalletAffordability:
        self.balance_calls += 1
        address = account_address(account)
        if self.unreachable:
            raise LedgerUnreachable("in-memory ledger marked unreachable", details={"address": address})
        return compute_affordability(self.balances.get(address, 0), self.costs)

    async def submit(self, account: Any, memo: str, *, timeout: Optional[float] = None) -> CommitResult:
        self.submit_calls += 1
        address = account_address(account)

        if self._failures:
            failure = self._failures.popleft()
            if failure.landed:
                self._record(address, memo)
            return CommitResult.failed(
                CommitFailure(category=failure.category, message=failure.message),
                memo=memo,
            )

        if self.unreachable:
            return CommitResult.failed(
                CommitFailure(category=ErrorCategory.NETWORK_FAILURE, message="in-memory ledger marked unreachable"),
                memo=memo,
            )

        if self.balances.get(address, 0) < self.transaction_cost:
            return CommitResult.failed(
                CommitFailure(category=ErrorCategory.INSUFFICIENT_FUNDS, message="balance below transaction fee"),
                memo=memo,
            )

        entry = self._record(address, memo)
        return CommitResult.success(entry.reference, explorer_url=self.explorer_url(entry.reference), memo=memo)

    async def recent_memos(
        self,
        account: Any,
        *,
        limit: int = 100,
        timeout: Optional[float] = None,
    ) -> List[LedgerMemo]:
        self.history_calls += 1
        address = account_address(account)
        if self.unreachable or self.history_unreachable:
            raise LedgerUnreachable("in-memory ledger marked unreachable", details={"address": address})
        return list(reversed(self.history.get(address, [])))[:limit]

    def _record(self, address: str, memo: str) -> LedgerMemo:
        block = self._next_block
        self._next_block += 1
        self.balances[address] = max(0, self.balances.get(address, 0) - self.transaction_cost)
        entry = LedgerMemo(reference=f"0x{block:064x}", memo=memo, block_number=block)
        self.history.setdefault(address, []).append(entry)
        return entry


__all__ = ["ScriptedFailure", "InMemoryLedger"]
