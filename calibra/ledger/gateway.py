"""Ledger gateway interface.

The gateway is the only component that talks to the ledger. It answers
three questions: how much can this account still afford, please submit
this memo, and which memos did this account write recently.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional

from calibra.protocol.models.v1.results import CommitResult

from .affordability import WalletAffordability


@dataclass(frozen=True)
class LedgerMemo:
    """A memo read back from the ledger."""

    reference: str
    memo: str
    block_number: Optional[int] = None


def account_address(account: Any) -> str:
    """Resolve an opaque account handle to its SS58 address.

    Accepts a bittensor wallet (coldkey address), a keypair-like object with
    `ss58_address`, or a plain address string.
    """
    if isinstance(account, str):
        return account
    coldkeypub = getattr(account, "coldkeypub", None)
    if coldkeypub is not None and getattr(coldkeypub, "ss58_address", None):
        return str(coldkeypub.ss58_address)
    address = getattr(account, "ss58_address", None)
    if address:
        return str(address)
    raise TypeError(f"cannot resolve an address from {type(account).__name__}")


class LedgerGateway(ABC):
    """Abstract ledger adapter. Implementations are async and may fail."""

    explorer_url_template: str = "{reference}"

    @abstractmethod
    async def get_affordability(self, account: Any, *, timeout: Optional[float] = None) -> WalletAffordability:
        """Spendable balance and remaining commitments for account.

        Raises:
            LedgerUnreachable: the balance could not be read (never reported
                as zero affordability)
        """

    @abstractmethod
    async def submit(self, account: Any, memo: str, *, timeout: Optional[float] = None) -> CommitResult:
        """Submit exactly one transaction carrying memo. Not idempotent.

        Never raises for ledger-side failures; they come back as a FAILED
        CommitResult with a category. A timeout is AMBIGUOUS.
        """

    @abstractmethod
    async def recent_memos(
        self,
        account: Any,
        *,
        limit: int = 100,
        timeout: Optional[float] = None,
    ) -> List[LedgerMemo]:
        """Memos recently written by account, newest first.

        Raises:
            LedgerUnreachable: history could not be read
        """

    def explorer_url(self, reference: str) -> str:
        return self.explorer_url_template.format(reference=reference)


__all__ = ["LedgerMemo", "LedgerGateway", "account_address"]
