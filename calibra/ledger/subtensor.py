"""Subtensor ledger gateway.

Memos are written as `System.remark_with_event` extrinsics signed by the
account's coldkey. The bittensor SDK is synchronous; every call runs in a
worker thread under asyncio.wait_for so callers keep their timeout.

Failure mapping:
- balance / history read fails or times out -> LedgerUnreachable
- failure before the extrinsic is broadcast -> NETWORK_FAILURE
- chain returns a structured error -> looked up in _CHAIN_ERROR_CATEGORIES
- submit times out, or the connection drops after broadcast -> AMBIGUOUS
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional, TypeVar

import bittensor as bt

from calibra.config.core import CostSettings, LedgerSettings, Settings, get_settings
from calibra.protocol.codec import is_calibra_memo
from calibra.protocol.models.v1.common import CommitFailure
from calibra.protocol.models.v1.results import CommitResult
from calibra.shared.errors import ErrorCategory, LedgerUnreachable

from .affordability import WalletAffordability, compute_affordability
from .gateway import LedgerGateway, LedgerMemo, account_address

T = TypeVar("T")

REMARK_MODULE = "System"
REMARK_FUNCTION = "remark_with_event"

# Chain error names (module errors and transaction-validity reasons) -> category.
# Anything the chain reports that is not listed here is REJECTED.
_CHAIN_ERROR_CATEGORIES: Dict[str, ErrorCategory] = {
    "InsufficientBalance": ErrorCategory.INSUFFICIENT_FUNDS,
    "LiquidityRestrictions": ErrorCategory.INSUFFICIENT_FUNDS,
    "Payment": ErrorCategory.INSUFFICIENT_FUNDS,
    "Inability to pay some fees": ErrorCategory.INSUFFICIENT_FUNDS,
    "BalanceTooLow": ErrorCategory.INSUFFICIENT_FUNDS,
    "NotEnoughBalanceToStake": ErrorCategory.INSUFFICIENT_FUNDS,
}


def classify_chain_error(error: Any) -> ErrorCategory:
    """Map a structured chain error to a category.

    Module errors arrive as {"name": ...}; RPC validity errors as
    {"code": 1010, "message": "Invalid Transaction", "data": "<reason> ..."}.
    """
    if isinstance(error, dict):
        name = error.get("name")
        if isinstance(name, str) and name in _CHAIN_ERROR_CATEGORIES:
            return _CHAIN_ERROR_CATEGORIES[name]
        data = error.get("data")
        if isinstance(data, str):
            for reason, category in _CHAIN_ERROR_CATEGORIES.items():
                if data.startswith(reason):
                    return category
    return ErrorCategory.REJECTED


def _structured_error(exc: BaseException) -> Optional[dict]:
    if exc.args and isinstance(exc.args[0], dict):
        return exc.args[0]
    return None


def _remark_text(value: Any) -> Optional[str]:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str) and value.startswith("0x"):
        try:
            raw = bytes.fromhex(value[2:])
        except ValueError:
            return value
    elif isinstance(value, str):
        return value
    else:
        return None
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _extract_remark(extrinsic: Any, address: str) -> Optional[tuple[str, str]]:
    """Return (extrinsic_hash, remark) when extrinsic is a remark signed by address."""
    value = getattr(extrinsic, "value", extrinsic)
    if not isinstance(value, dict) or value.get("address") != address:
        return None
    call = value.get("call") or {}
    if call.get("call_module") != REMARK_MODULE or call.get("call_function") not in (REMARK_FUNCTION, "remark"):
        return None
    for arg in call.get("call_args") or []:
        if arg.get("name") == "remark":
            text = _remark_text(arg.get("value"))
            if text is None:
                return None
            ext_hash = value.get("extrinsic_hash") or getattr(extrinsic, "extrinsic_hash", None) or ""
            if isinstance(ext_hash, (bytes, bytearray)):
                ext_hash = "0x" + bytes(ext_hash).hex()
            return str(ext_hash), text
    return None


class SubtensorLedgerGateway(LedgerGateway):
    """LedgerGateway over a bittensor subtensor connection."""

    def __init__(
        self,
        subtensor: Any,
        *,
        costs: CostSettings | None = None,
        ledger: LedgerSettings | None = None,
    ) -> None:
        settings = get_settings()
        self.subtensor = subtensor
        self.costs = costs or settings.costs
        self.ledger = ledger or settings.ledger
        self.explorer_url_template = self.ledger.explorer_url_template

    @classmethod
    def from_settings(cls, settings: Settings, *, config: Any = None) -> "SubtensorLedgerGateway":
        if config is not None:
            subtensor = bt.subtensor(config=config)
        else:
            subtensor = bt.subtensor(network=settings.ledger.network)
        return cls(subtensor, costs=settings.costs, ledger=settings.ledger)

    async def _call(self, fn: Callable[..., T], *args: Any, timeout: float, **kwargs: Any) -> T:
        return await asyncio.wait_for(asyncio.to_thread(fn, *args, **kwargs), timeout=timeout)

    # ------------------------------------------------------------------
    # Affordability
    # ------------------------------------------------------------------
    async def get_affordability(self, account: Any, *, timeout: Optional[float] = None) -> WalletAffordability:
        address = account_address(account)
        limit = timeout if timeout is not None else self.ledger.query_timeout_seconds
        try:
            balance = await self._call(self.subtensor.get_balance, address, timeout=limit)
        except asyncio.TimeoutError:
            bt.logging.warning({"ledger_balance": {"address": address, "error": "timeout", "timeout": limit}})
            raise LedgerUnreachable(f"balance query timed out after {limit}s", details={"address": address})
        except Exception as e:
            bt.logging.warning({"ledger_balance": {"address": address, "error": str(e)}})
            raise LedgerUnreachable(f"balance query failed: {e}", details={"address": address})

        rao = int(getattr(balance, "rao", balance))
        snapshot = compute_affordability(rao, self.costs)
        bt.logging.debug({
            "ledger_balance": {
                "address": address,
                "rao": rao,
                "remaining_commitments": snapshot.estimated_remaining_commitments,
            }
        })
        return snapshot

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def _submit_sync(self, account: Any, memo: str, stage: Dict[str, bool]) -> Any:
        substrate = self.subtensor.substrate
        call = substrate.compose_call(
            call_module=REMARK_MODULE,
            call_function=REMARK_FUNCTION,
            call_params={"remark": memo},
        )
        extrinsic = substrate.create_signed_extrinsic(call=call, keypair=account.coldkey)
        stage["broadcast"] = True
        return substrate.submit_extrinsic(
            extrinsic,
            wait_for_inclusion=True,
            wait_for_finalization=self.ledger.wait_for_finalization,
        )

    async def submit(self, account: Any, memo: str, *, timeout: Optional[float] = None) -> CommitResult:
        limit = timeout if timeout is not None else self.ledger.submit_timeout_seconds
        stage = {"broadcast": False}
        try:
            receipt = await self._call(self._submit_sync, account, memo, stage, timeout=limit)
        except asyncio.TimeoutError:
            return self._failed(
                ErrorCategory.AMBIGUOUS,
                f"submission timed out after {limit}s; broadcast status unknown, reconcile before retrying",
                memo,
                {"broadcast_started": stage["broadcast"]},
            )
        except Exception as e:
            structured = _structured_error(e)
            if structured is not None:
                category = classify_chain_error(structured)
            elif not stage["broadcast"]:
                category = ErrorCategory.NETWORK_FAILURE
            else:
                category = ErrorCategory.AMBIGUOUS
            return self._failed(category, f"submission failed: {e}", memo, {"error": structured or str(e)})

        if not getattr(receipt, "is_success", False):
            error = getattr(receipt, "error_message", None)
            return self._failed(
                classify_chain_error(error),
                f"ledger rejected the transaction: {error}",
                memo,
                {"error": error},
            )

        reference = str(receipt.extrinsic_hash)
        bt.logging.info({
            "ledger_submit": {
                "reference": reference,
                "block_hash": str(getattr(receipt, "block_hash", "")),
                "memo_bytes": len(memo.encode("utf-8")),
            }
        })
        return CommitResult.success(reference, explorer_url=self.explorer_url(reference), memo=memo)

    def _failed(self, category: ErrorCategory, message: str, memo: str, details: dict) -> CommitResult:
        bt.logging.warning({"ledger_submit": {"category": category.value, "message": message}})
        return CommitResult.failed(
            CommitFailure(category=category, message=message, details=details),
            memo=memo,
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def _scan_sync(self, address: str, limit: int) -> List[LedgerMemo]:
        substrate = self.subtensor.substrate
        head = int(self.subtensor.get_current_block())
        floor = max(0, head - self.ledger.history_scan_blocks + 1)
        found: List[LedgerMemo] = []
        for number in range(head, floor - 1, -1):
            block = substrate.get_block(block_number=number) or {}
            for extrinsic in block.get("extrinsics") or []:
                hit = _extract_remark(extrinsic, address)
                if hit is None or not is_calibra_memo(hit[1]):
                    continue
                found.append(LedgerMemo(reference=hit[0], memo=hit[1], block_number=number))
                if len(found) >= limit:
                    return found
        return found

    async def recent_memos(
        self,
        account: Any,
        *,
        limit: int = 100,
        timeout: Optional[float] = None,
    ) -> List[LedgerMemo]:
        address = account_address(account)
        budget = timeout if timeout is not None else self.ledger.query_timeout_seconds
        try:
            return await self._call(self._scan_sync, address, limit, timeout=budget)
        except asyncio.TimeoutError:
            raise LedgerUnreachable(f"history scan timed out after {budget}s", details={"address": address})
        except Exception as e:
            raise LedgerUnreachable(f"history scan failed: {e}", details={"address": address})


__all__ = [
    "REMARK_MODULE",
    "REMARK_FUNCTION",
    "classify_chain_error",
    "SubtensorLedgerGateway",
]
