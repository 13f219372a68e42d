"""Ledger access: affordability, the gateway interface and its bittensor adapter.

`SubtensorLedgerGateway` lives in `calibra.ledger.subtensor`.
"""

from .affordability import RAO_PER_TAO, AffordabilityCache, WalletAffordability, compute_affordability
from .gateway import LedgerGateway, LedgerMemo, account_address

__all__ = [
    "RAO_PER_TAO",
    "AffordabilityCache",
    "WalletAffordability",
    "compute_affordability",
    "LedgerGateway",
    "LedgerMemo",
    "account_address",
]
