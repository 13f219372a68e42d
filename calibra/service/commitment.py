"""Commitment orchestration.

    VALIDATING -> CHECKING_AFFORDABILITY -> ENCODING -> SUBMITTING -> SUCCEEDED | FAILED

Every call ends in exactly one terminal CommitResult. Nothing reaches the
ledger until validation and the affordability gate have passed.

Submission attempts are remembered per logical intent. When the previous
attempt for an intent ended AMBIGUOUS, the next call first looks for the
exact memo in the account's recent ledger history and, if found, reports
success without submitting again. Callers without that history (a fresh
process) pass reconcile_first=True. There is no automatic retry here; see
calibra.service.retry for the caller-side policy.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Hashable, Optional

import bittensor as bt

from calibra.config.core import Settings, get_settings
from calibra.ledger.affordability import AffordabilityCache, WalletAffordability
from calibra.ledger.gateway import LedgerGateway, LedgerMemo, account_address
from calibra.ledger.verify import find_matching_memo
from calibra.protocol.codec import MemoLimits, encode_prediction, encode_resolution_record, field_problem
from calibra.protocol.mapping.idempotency import commitment_digest, commitment_intent_key
from calibra.protocol.models.v1.commitment import PredictionCommitment, committer_reference
from calibra.protocol.models.v1.common import CommitFailure
from calibra.protocol.models.v1.results import CommitResult
from calibra.scoring.metrics.proper_scoring import resolve_commitment
from calibra.scoring.validation import CommitmentValidator
from calibra.shared.enums import CommitState
from calibra.shared.errors import (
    CalibraError,
    ErrorCategory,
    InvalidCommitment,
    LedgerError,
    MemoEncodingError,
    PayloadTooLarge,
)
from calibra.shared.logging import log_event


class CommitmentService:
    """Validate, gate, encode and submit commitments and resolutions."""

    def __init__(
        self,
        gateway: LedgerGateway,
        *,
        settings: Optional[Settings] = None,
        cache: Optional[AffordabilityCache] = None,
        events_logger: Any = None,
    ) -> None:
        self.gateway = gateway
        self.settings = settings or get_settings()
        self.limits = MemoLimits.from_settings(self.settings.memo)
        self.cache = cache if cache is not None else AffordabilityCache(
            self.settings.ledger.affordability_cache_ttl_seconds
        )
        self.events_logger = events_logger
        self.validator = CommitmentValidator()
        self._attempts: Dict[Hashable, int] = {}
        self._last_failure: Dict[Hashable, ErrorCategory] = {}

    # ------------------------------------------------------------------
    # Intent bookkeeping
    # ------------------------------------------------------------------
    def attempts(self, key: Hashable) -> int:
        return self._attempts.get(key, 0)

    def needs_reconciliation(self, key: Hashable) -> bool:
        category = self._last_failure.get(key)
        return category is not None and category.requires_reconciliation

    def _record_attempt(self, key: Hashable, result: CommitResult) -> None:
        if result.succeeded:
            self._settle(key)
            return
        self._attempts[key] = self._attempts.get(key, 0) + 1
        self._last_failure[key] = result.failure.category

    def _settle(self, key: Hashable) -> None:
        """Forget an intent once it is known to be on the ledger."""
        self._attempts.pop(key, None)
        self._last_failure.pop(key, None)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    async def commit(
        self,
        account: Any,
        market_ticker: str,
        probability: float,
        direction: Any,
        *,
        affordability: Optional[WalletAffordability] = None,
        timeout: Optional[float] = None,
        reconcile_first: bool = False,
    ) -> CommitResult:
        """Commit a prediction to the ledger.

        reconcile_first checks the account's recent history for the same memo
        before submitting, for callers that cannot carry attempt state between
        calls (one process per command).
        """
        self._transition("commit", CommitState.VALIDATING, market_ticker)
        try:
            address = self._address(account)
            ticker, prob, side, _ = self.validator.validate(market_ticker, probability, direction, address)
            commitment = PredictionCommitment(
                market_ticker=ticker,
                probability=prob,
                direction=side,
                committer_ref=committer_reference(address),
            )
            self._check_fits(lambda: encode_prediction(commitment, self.limits))
            self._check_ticker(ticker)
            key = commitment_intent_key(address, ticker, prob, side)
        except (InvalidCommitment, PayloadTooLarge) as e:
            return self._finish("commit", market_ticker, CommitResult.failed(CommitFailure.from_error(e)))

        return await self._run(
            "commit",
            account,
            address,
            key,
            ticker,
            lambda: encode_prediction(commitment, self.limits),
            affordability=affordability,
            timeout=timeout,
            digest=commitment_digest(commitment),
            reconcile_first=reconcile_first,
        )

    async def resolve(
        self,
        account: Any,
        commitment: PredictionCommitment,
        direction_occurred: bool,
        *,
        affordability: Optional[WalletAffordability] = None,
        timeout: Optional[float] = None,
        reconcile_first: bool = False,
    ) -> CommitResult:
        """Score a commitment against its outcome and record the resolution."""
        ticker = getattr(commitment, "market_ticker", None)
        self._transition("resolve", CommitState.VALIDATING, ticker)
        try:
            address = self._address(account)
            if not isinstance(commitment, PredictionCommitment):
                raise InvalidCommitment(f"expected PredictionCommitment, got {type(commitment).__name__}")
            if not isinstance(direction_occurred, bool):
                raise InvalidCommitment(f"direction_occurred must be bool, got {direction_occurred!r}")
            record = resolve_commitment(commitment, direction_occurred)
            self._check_fits(lambda: encode_resolution_record(record, self.limits))
            self._check_ticker(commitment.market_ticker)
        except (InvalidCommitment, PayloadTooLarge) as e:
            return self._finish("resolve", ticker, CommitResult.failed(CommitFailure.from_error(e)))

        def encode() -> str:
            return encode_resolution_record(record, self.limits)

        try:
            key = (address, encode())
        except CalibraError as e:
            return self._finish("resolve", ticker, self._internal(e))

        return await self._run(
            "resolve",
            account,
            address,
            key,
            record.market_ticker,
            encode,
            affordability=affordability,
            timeout=timeout,
            digest=commitment_digest(commitment),
            reconcile_first=reconcile_first,
        )

    async def reconcile(
        self,
        account: Any,
        memo: str,
        *,
        limit: int = 100,
        timeout: Optional[float] = None,
    ) -> Optional[LedgerMemo]:
        """Find memo in the account's recent ledger history.

        Raises:
            LedgerUnreachable: history could not be read
        """
        history = await self.gateway.recent_memos(account, limit=limit, timeout=timeout)
        return find_matching_memo(history, memo)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    async def _run(
        self,
        operation: str,
        account: Any,
        address: str,
        key: Hashable,
        ticker: str,
        encode: Callable[[], str],
        *,
        affordability: Optional[WalletAffordability],
        timeout: Optional[float],
        digest: str,
        reconcile_first: bool = False,
    ) -> CommitResult:
        if reconcile_first or self.needs_reconciliation(key):
            try:
                memo = encode()
            except CalibraError as e:
                return self._finish(operation, ticker, self._internal(e), digest=digest)
            try:
                found = await self.reconcile(account, memo, timeout=timeout)
            except LedgerError as e:
                return self._finish(operation, ticker, CommitResult.failed(CommitFailure.from_error(e), memo=memo), digest=digest)
            if found is not None:
                self._settle(key)
                self.cache.invalidate(address)
                result = CommitResult.success(
                    found.reference,
                    explorer_url=self.gateway.explorer_url(found.reference),
                    memo=found.memo,
                    reconciled=True,
                )
                return self._finish(operation, ticker, result, digest=digest)

        self._transition(operation, CommitState.CHECKING_AFFORDABILITY, ticker)
        gate = await self._check_affordability(account, address, affordability, timeout)
        if isinstance(gate, CommitResult):
            return self._finish(operation, ticker, gate, digest=digest)

        self._transition(operation, CommitState.ENCODING, ticker)
        try:
            memo = encode()
        except CalibraError as e:
            return self._finish(operation, ticker, self._internal(e), digest=digest)

        self._transition(operation, CommitState.SUBMITTING, ticker)
        result = await self.gateway.submit(account, memo, timeout=timeout)
        self._record_attempt(key, result)
        if result.succeeded or result.failure.category in (
            ErrorCategory.INSUFFICIENT_FUNDS,
            ErrorCategory.AMBIGUOUS,
        ):
            self.cache.invalidate(address)
        return self._finish(operation, ticker, result, digest=digest)

    async def _check_affordability(
        self,
        account: Any,
        address: str,
        snapshot: Optional[WalletAffordability],
        timeout: Optional[float],
    ) -> WalletAffordability | CommitResult:
        if snapshot is None:
            snapshot = self.cache.get(address)
        if snapshot is None:
            try:
                snapshot = await self.gateway.get_affordability(account, timeout=timeout)
            except LedgerError as e:
                return CommitResult.failed(CommitFailure.from_error(e))
            self.cache.put(address, snapshot)

        if not snapshot.can_commit:
            return CommitResult.failed(
                CommitFailure(
                    category=ErrorCategory.INSUFFICIENT_FUNDS,
                    message=(
                        f"balance of {snapshot.spendable_tao:.9f} TAO cannot cover one more commitment; "
                        f"top up at least {snapshot.shortfall} rao"
                    ),
                    details={
                        "spendable_balance": snapshot.spendable_balance,
                        "cost_per_commitment": snapshot.cost_per_commitment,
                        "reserved_minimum": snapshot.reserved_minimum,
                        "shortfall": snapshot.shortfall,
                    },
                )
            )
        return snapshot

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _address(self, account: Any) -> str:
        try:
            return account_address(account)
        except TypeError as e:
            raise InvalidCommitment(str(e))

    def _check_ticker(self, ticker: str) -> None:
        problem = field_problem(ticker, self.limits.max_ticker_bytes)
        if problem is not None:
            raise InvalidCommitment(f"market_ticker {problem}", details={"field": "market_ticker"})

    def _check_fits(self, encode: Callable[[], str]) -> None:
        """Raise PayloadTooLarge when the assembled memo is over the ceiling.

        Other encoder errors are left to the ticker check, or failing that to
        ENCODING, where they are INTERNAL.
        """
        try:
            encode()
        except PayloadTooLarge:
            raise
        except MemoEncodingError:
            return

    def _internal(self, error: CalibraError) -> CommitResult:
        bt.logging.error({"commit_internal": {"category": error.category.value, "error": error.message}})
        return CommitResult.failed(CommitFailure.from_error(error, internal=True))

    def _transition(self, operation: str, state: CommitState, ticker: Any) -> None:
        bt.logging.debug({operation: {"state": state.value, "ticker": ticker}})

    def _finish(self, operation: str, ticker: Any, result: CommitResult, *, digest: Optional[str] = None) -> CommitResult:
        payload = {
            "state": result.state.value,
            "ticker": ticker,
            "reference": result.reference,
            "reconciled": result.reconciled,
            "category": result.failure.category.value if result.failure else None,
            "digest": digest,
        }
        if result.succeeded:
            bt.logging.info({operation: payload})
        else:
            bt.logging.warning({operation: {**payload, "message": result.failure.message}})
        log_event(self.events_logger, operation, payload)
        return result


__all__ = ["CommitmentService"]
