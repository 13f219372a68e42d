"""Tests for ledger/subtensor.py - bittensor-backed gateway with a mocked subtensor."""

from __future__ import annotations

import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from calibra.config.core import CostSettings, LedgerSettings
from calibra.ledger.gateway import account_address
from calibra.ledger.subtensor import SubtensorLedgerGateway, classify_chain_error
from calibra.shared.enums import CommitState
from calibra.shared.errors import ErrorCategory, LedgerUnreachable

ADDRESS = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
MEMO = "CALIBRA|1|PREDICT|KXBTC-26DEC31-T100K|7200|YES|5Grwva..GKutQY"


def _wallet():
    return SimpleNamespace(coldkey="coldkey-pair", coldkeypub=SimpleNamespace(ss58_address=ADDRESS))


def _gateway(subtensor, **ledger_overrides) -> SubtensorLedgerGateway:
    return SubtensorLedgerGateway(
        subtensor,
        costs=CostSettings(),
        ledger=LedgerSettings(**ledger_overrides),
    )


def _receipt(success=True, error=None):
    return SimpleNamespace(
        is_success=success,
        extrinsic_hash="0xabc123",
        block_hash="0xblock",
        error_message=error,
    )


def _remark(address, memo, ext_hash, *, encoded=True):
    value = "0x" + memo.encode("utf-8").hex() if encoded else memo
    return {
        "address": address,
        "extrinsic_hash": ext_hash,
        "call": {
            "call_module": "System",
            "call_function": "remark_with_event",
            "call_args": [{"name": "remark", "type": "Bytes", "value": value}],
        },
    }


class TestAccountAddress:
    """Tests for account_address."""

    def test_string(self):
        """Plain addresses pass through."""
        assert account_address(ADDRESS) == ADDRESS

    def test_wallet(self):
        """Wallets resolve to their coldkey address."""
        assert account_address(_wallet()) == ADDRESS

    def test_keypair(self):
        """Keypair-like objects resolve to ss58_address."""
        assert account_address(SimpleNamespace(ss58_address=ADDRESS)) == ADDRESS

    def test_unknown(self):
        """Anything else is a TypeError."""
        with pytest.raises(TypeError):
            account_address(object())


class TestGetAffordability:
    """Tests for SubtensorLedgerGateway.get_affordability."""

    @pytest.mark.asyncio
    async def test_reads_balance(self):
        """Balance in rao drives the estimate."""
        subtensor = MagicMock()
        subtensor.get_balance.return_value = SimpleNamespace(rao=1_000_500)
        snap = await _gateway(subtensor).get_affordability(_wallet())
        subtensor.get_balance.assert_called_once_with(ADDRESS)
        assert snap.estimated_remaining_commitments == 5
        assert snap.can_commit is True

    @pytest.mark.asyncio
    async def test_rpc_failure_is_unreachable(self):
        """RPC errors surface as LedgerUnreachable, not zero balance."""
        subtensor = MagicMock()
        subtensor.get_balance.side_effect = ConnectionError("refused")
        with pytest.raises(LedgerUnreachable) as exc:
            await _gateway(subtensor).get_affordability(ADDRESS)
        assert exc.value.category is ErrorCategory.LEDGER_UNREACHABLE

    @pytest.mark.asyncio
    async def test_timeout_is_unreachable(self):
        """A slow balance query times out as LedgerUnreachable."""
        subtensor = MagicMock()
        subtensor.get_balance.side_effect = lambda address: time.sleep(0.3)
        with pytest.raises(LedgerUnreachable):
            await _gateway(subtensor).get_affordability(ADDRESS, timeout=0.05)

    @pytest.mark.asyncio
    async def test_zero_timeout_is_honoured(self):
        """timeout=0 is a real deadline, not "use the default"."""
        subtensor = MagicMock()
        subtensor.get_balance.side_effect = lambda address: time.sleep(0.3)
        with pytest.raises(LedgerUnreachable) as exc:
            await _gateway(subtensor).get_affordability(ADDRESS, timeout=0)
        assert "after 0s" in exc.value.message


class TestSubmit:
    """Tests for SubtensorLedgerGateway.submit."""

    @pytest.mark.asyncio
    async def test_success(self):
        """A successful remark returns reference and explorer URL."""
        subtensor = MagicMock()
        subtensor.substrate.submit_extrinsic.return_value = _receipt()
        result = await _gateway(subtensor).submit(_wallet(), MEMO)

        assert result.state is CommitState.SUCCEEDED
        assert result.reference == "0xabc123"
        assert result.explorer_url == "https://taostats.io/hash/0xabc123"
        assert result.memo == MEMO
        subtensor.substrate.compose_call.assert_called_once_with(
            call_module="System",
            call_function="remark_with_event",
            call_params={"remark": MEMO},
        )
        _, kwargs = subtensor.substrate.create_signed_extrinsic.call_args
        assert kwargs["keypair"] == "coldkey-pair"
        _, kwargs = subtensor.substrate.submit_extrinsic.call_args
        assert kwargs["wait_for_inclusion"] is True

    @pytest.mark.asyncio
    async def test_module_error_insufficient_balance(self):
        """A failed receipt with InsufficientBalance is INSUFFICIENT_FUNDS."""
        subtensor = MagicMock()
        subtensor.substrate.submit_extrinsic.return_value = _receipt(
            success=False, error={"type": "Module", "name": "InsufficientBalance", "docs": []}
        )
        result = await _gateway(subtensor).submit(_wallet(), MEMO)
        assert result.failure.category is ErrorCategory.INSUFFICIENT_FUNDS

    @pytest.mark.asyncio
    async def test_module_error_other_is_rejected(self):
        """Unlisted chain errors are REJECTED."""
        subtensor = MagicMock()
        subtensor.substrate.submit_extrinsic.return_value = _receipt(
            success=False, error={"type": "Module", "name": "BadOrigin"}
        )
        result = await _gateway(subtensor).submit(_wallet(), MEMO)
        assert result.failure.category is ErrorCategory.REJECTED
        assert result.failure.user_facing is True

    @pytest.mark.asyncio
    async def test_fee_payment_validity_error(self):
        """RPC 1010 'Inability to pay some fees' is INSUFFICIENT_FUNDS."""
        subtensor = MagicMock()
        subtensor.substrate.submit_extrinsic.side_effect = Exception({
            "code": 1010,
            "message": "Invalid Transaction",
            "data": "Inability to pay some fees (e.g. account balance too low)",
        })
        result = await _gateway(subtensor).submit(_wallet(), MEMO)
        assert result.failure.category is ErrorCategory.INSUFFICIENT_FUNDS

    @pytest.mark.asyncio
    async def test_failure_before_broadcast(self):
        """Errors before the extrinsic is sent are NETWORK_FAILURE."""
        subtensor = MagicMock()
        subtensor.substrate.compose_call.side_effect = ConnectionError("refused")
        result = await _gateway(subtensor).submit(_wallet(), MEMO)
        assert result.failure.category is ErrorCategory.NETWORK_FAILURE
        subtensor.substrate.submit_extrinsic.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_after_broadcast_is_ambiguous(self):
        """A dropped connection during submission is AMBIGUOUS."""
        subtensor = MagicMock()
        subtensor.substrate.submit_extrinsic.side_effect = ConnectionError("socket closed")
        result = await _gateway(subtensor).submit(_wallet(), MEMO)
        assert result.failure.category is ErrorCategory.AMBIGUOUS
        assert result.failure.category.requires_reconciliation

    @pytest.mark.asyncio
    async def test_timeout_is_ambiguous(self):
        """A submit that outlives its timeout is AMBIGUOUS."""
        subtensor = MagicMock()
        subtensor.substrate.submit_extrinsic.side_effect = lambda *a, **kw: time.sleep(0.3)
        result = await _gateway(subtensor).submit(_wallet(), MEMO, timeout=0.05)
        assert result.failure.category is ErrorCategory.AMBIGUOUS
        assert result.memo == MEMO

    @pytest.mark.asyncio
    async def test_zero_timeout_is_honoured(self):
        """timeout=0 is not replaced by the configured submit timeout."""
        subtensor = MagicMock()
        subtensor.substrate.submit_extrinsic.side_effect = lambda *a, **kw: time.sleep(0.3) or _receipt()
        result = await _gateway(subtensor).submit(_wallet(), MEMO, timeout=0)
        assert result.failure.category is ErrorCategory.AMBIGUOUS
        assert "after 0s" in result.failure.message


class TestClassifyChainError:
    """Tests for classify_chain_error."""

    def test_known_names(self):
        """Listed module errors map to INSUFFICIENT_FUNDS."""
        assert classify_chain_error({"name": "LiquidityRestrictions"}) is ErrorCategory.INSUFFICIENT_FUNDS

    def test_unstructured(self):
        """Unstructured errors are REJECTED."""
        assert classify_chain_error("boom") is ErrorCategory.REJECTED
        assert classify_chain_error(None) is ErrorCategory.REJECTED


class TestRecentMemos:
    """Tests for SubtensorLedgerGateway.recent_memos."""

    @pytest.mark.asyncio
    async def test_scans_newest_first(self):
        """Only this account's CALIBRA remarks are returned, newest first."""
        other = "5FHneW46xGXgs5mUiveU4sbTyGBzmstUspZC92UhjJM694ty"
        blocks = {
            100: {"extrinsics": [
                _remark(ADDRESS, MEMO, "0x100a"),
                _remark(other, MEMO, "0x100b"),
            ]},
            99: {"extrinsics": [
                _remark(ADDRESS, "just a note", "0x99a"),
                SimpleNamespace(value=_remark(ADDRESS, MEMO.replace("7200", "7300"), "0x99b", encoded=False)),
            ]},
            98: {"extrinsics": []},
        }
        subtensor = MagicMock()
        subtensor.get_current_block.return_value = 100
        subtensor.substrate.get_block.side_effect = lambda block_number: blocks.get(block_number)

        memos = await _gateway(subtensor, history_scan_blocks=3).recent_memos(_wallet())

        assert [m.reference for m in memos] == ["0x100a", "0x99b"]
        assert memos[0].memo == MEMO
        assert memos[0].block_number == 100
        assert subtensor.substrate.get_block.call_count == 3

    @pytest.mark.asyncio
    async def test_limit(self):
        """Scanning stops once limit memos are found."""
        subtensor = MagicMock()
        subtensor.get_current_block.return_value = 10
        subtensor.substrate.get_block.return_value = {"extrinsics": [_remark(ADDRESS, MEMO, "0x1")]}
        memos = await _gateway(subtensor).recent_memos(ADDRESS, limit=2)
        assert len(memos) == 2
        assert subtensor.substrate.get_block.call_count == 2

    @pytest.mark.asyncio
    async def test_failure_is_unreachable(self):
        """History read errors are LedgerUnreachable."""
        subtensor = MagicMock()
        subtensor.get_current_block.side_effect = RuntimeError("rpc down")
        with pytest.raises(LedgerUnreachable):
            await _gateway(subtensor).recent_memos(ADDRESS)
