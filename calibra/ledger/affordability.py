"""Affordability: can this account pay for one more commitment?

    committable = max(0, balance - reserved_minimum)
    estimate    = committable // cost_per_commitment
    can_commit  = estimate >= 1

cost_per_commitment is the worst case (fee + memo surcharge) times the
number of transactions budgeted per commitment lifecycle. All amounts are
in rao.

Snapshots are point-in-time values. AffordabilityCache holds them for a
short TTL and must be invalidated after every successful submit.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple

from calibra.config.core import CostSettings

RAO_PER_TAO = 1_000_000_000


@dataclass(frozen=True)
class WalletAffordability:
    spendable_balance: int
    can_commit: bool
    estimated_remaining_commitments: int
    cost_per_commitment: int
    reserved_minimum: int
    checked_at: datetime

    @property
    def spendable_tao(self) -> float:
        return self.spendable_balance / RAO_PER_TAO

    @property
    def shortfall(self) -> int:
        """Rao missing before one more commitment is affordable (0 if affordable)."""
        needed = self.reserved_minimum + self.cost_per_commitment
        return max(0, needed - self.spendable_balance)


def compute_affordability(
    balance_rao: int,
    costs: CostSettings,
    *,
    now: Optional[datetime] = None,
) -> WalletAffordability:
    balance = max(0, int(balance_rao))
    cost = costs.cost_per_commitment_rao
    committable = max(0, balance - costs.reserved_minimum_rao)
    estimate = committable // cost
    return WalletAffordability(
        spendable_balance=balance,
        can_commit=estimate >= 1,
        estimated_remaining_commitments=estimate,
        cost_per_commitment=cost,
        reserved_minimum=costs.reserved_minimum_rao,
        checked_at=now or datetime.now(timezone.utc),
    )


class AffordabilityCache:
    """Per-account affordability snapshots with an explicit TTL.

    Owned by whoever constructs it (typically one CommitmentService); there
    is no process-wide instance.
    """

    def __init__(self, ttl_seconds: float, *, time_fn: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = max(0.0, float(ttl_seconds))
        self._now = time_fn
        self._entries: Dict[str, Tuple[float, WalletAffordability]] = {}

    def get(self, address: str) -> Optional[WalletAffordability]:
        entry = self._entries.get(address)
        if entry is None:
            return None
        stored_at, snapshot = entry
        if self._now() - stored_at >= self.ttl_seconds:
            del self._entries[address]
            return None
        return snapshot

    def put(self, address: str, snapshot: WalletAffordability) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[address] = (self._now(), snapshot)

    def invalidate(self, address: str) -> None:
        self._entries.pop(address, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "RAO_PER_TAO",
    "WalletAffordability",
    "compute_affordability",
    "AffordabilityCache",
]
