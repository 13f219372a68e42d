"""Command line entrypoint.

    calibra balance
    calibra commit KXBTC-26DEC31-T100K 0.72 YES
    calibra resolve KXBTC-26DEC31-T100K 0.72 YES --occurred
    calibra decode 'CALIBRA|1|PREDICT|...'
    calibra verify '<predict memo>' '<resolve memo>'
    calibra cost

Wallet and network come from the standard bittensor flags
(--wallet.name, --subtensor.network, ...). --mock runs every command
against an in-memory ledger instead.
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any, List, Optional

import bittensor as bt
from dotenv import load_dotenv

from calibra.config.core import Settings, load_settings
from calibra.devtools.mock_ledger import InMemoryLedger
from calibra.ledger.gateway import LedgerGateway, account_address
from calibra.ledger.verify import verification_links, verify_lifecycle
from calibra.protocol.codec import DecodedPrediction, MemoLimits, decode
from calibra.protocol.models.v1.commitment import PredictionCommitment, committer_reference
from calibra.protocol.models.v1.results import CommitResult
from calibra.providers.pricing import TaoPriceClient, estimate_commitment_cost
from calibra.scoring.quality import interpret_brier_score
from calibra.service.commitment import CommitmentService
from calibra.service.retry import RetryPolicy, commit_with_retry
from calibra.shared.errors import LedgerError
from calibra.shared.logging import setup_events_logger, suppress_substrate_noise

MOCK_ADDRESS = "5CalibraMockAccount1111111111111111111111111111"
DEFAULT_MOCK_BALANCE_RAO = 1_000_000_000


def _chain_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(add_help=False)
    bt.wallet.add_args(parser)
    bt.subtensor.add_args(parser)
    return parser


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calibra",
        description="Commit calibrated predictions to the ledger and score them",
        parents=[_chain_parser()],
    )
    parser.add_argument("--mock", action="store_true", help="Use an in-memory ledger")
    parser.add_argument("--mock-balance", type=int, default=DEFAULT_MOCK_BALANCE_RAO, help="Mock balance in rao")
    parser.add_argument("--timeout", type=float, default=None, help="Per-call ledger timeout in seconds")
    sub = parser.add_subparsers(dest="command", required=True)

    balance = sub.add_parser("balance", help="Show spendable balance and remaining commitments")
    balance.add_argument("--address", type=str, default=None, help="Query an address instead of the wallet")

    commit = sub.add_parser("commit", help="Commit a prediction")
    commit.add_argument("ticker")
    commit.add_argument("probability", type=float)
    commit.add_argument("direction", choices=["YES", "NO", "yes", "no"])
    commit.add_argument("--retry", action="store_true", help="Retry transient failures with backoff")
    commit.add_argument(
        "--no-reconcile",
        dest="reconcile",
        action="store_false",
        help="Skip the ledger history check for an identical memo before submitting",
    )

    resolve = sub.add_parser("resolve", help="Score a commitment and record its resolution")
    resolve.add_argument("ticker")
    resolve.add_argument("probability", type=float)
    resolve.add_argument("direction", choices=["YES", "NO", "yes", "no"])
    outcome = resolve.add_mutually_exclusive_group(required=True)
    outcome.add_argument("--occurred", dest="occurred", action="store_true")
    outcome.add_argument("--did-not-occur", dest="occurred", action="store_false")
    resolve.add_argument(
        "--no-reconcile",
        dest="reconcile",
        action="store_false",
        help="Skip the ledger history check for an identical memo before submitting",
    )

    dec = sub.add_parser("decode", help="Decode a memo")
    dec.add_argument("memo")

    verify = sub.add_parser("verify", help="Check a RESOLVE memo against its PREDICT memo")
    verify.add_argument("prediction_memo")
    verify.add_argument("resolution_memo")
    verify.add_argument("--tolerance", type=float, default=0.0001)
    verify.add_argument("--reference", type=str, default=None, help="Prediction extrinsic hash for links")
    verify.add_argument("--resolution-reference", type=str, default=None)

    sub.add_parser("cost", help="Estimate the cost of one commitment lifecycle")
    return parser


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def _result_payload(result: CommitResult) -> dict:
    return result.model_dump(mode="json", exclude_none=True)


def _connect(args: argparse.Namespace, argv: Optional[List[str]], settings: Settings) -> tuple[LedgerGateway, Any]:
    if args.mock:
        ledger = InMemoryLedger(costs=settings.costs, ledger=settings.ledger)
        ledger.fund(MOCK_ADDRESS, args.mock_balance)
        return ledger, MOCK_ADDRESS

    from calibra.ledger.subtensor import SubtensorLedgerGateway

    config = bt.config(_chain_parser(), args=argv)
    wallet = bt.wallet(config=config)
    gateway = SubtensorLedgerGateway.from_settings(settings, config=config)
    bt.logging.info({"cli": {"network": config.subtensor.network, "coldkey": wallet.coldkeypub.ss58_address}})
    return gateway, wallet


async def _run(args: argparse.Namespace, argv: Optional[List[str]], settings: Settings) -> int:
    limits = MemoLimits.from_settings(settings.memo)

    if args.command == "decode":
        decoded = decode(args.memo, limits)
        if decoded is None:
            _emit({"kind": None, "error": "not a valid memo"})
            return 1
        if isinstance(decoded, DecodedPrediction):
            _emit({"kind": decoded.kind.value, "version": decoded.version, **decoded.commitment.model_dump(mode="json")})
        else:
            record = decoded.resolution
            band = interpret_brier_score(record.brier_score, settings.quality)
            _emit({
                "kind": decoded.kind.value,
                "version": decoded.version,
                **record.model_dump(mode="json"),
                "quality": band.value,
                "quality_description": band.description,
            })
        return 0

    if args.command == "verify":
        report = verify_lifecycle(args.prediction_memo, args.resolution_memo, args.tolerance, limits=limits)
        payload = {
            "valid": report.valid,
            "errors": report.errors,
            "expected_brier": report.expected_brier,
            "recorded_brier": report.recorded_brier,
        }
        if args.reference:
            payload["links"] = verification_links(
                args.reference, settings.ledger.explorer_url_template, args.resolution_reference
            )
        _emit(payload)
        return 0 if report.valid else 1

    if args.command == "cost":
        if args.mock:
            estimate = estimate_commitment_cost(settings.costs, settings.pricing.fallback_usd)
        else:
            async with TaoPriceClient(settings=settings.pricing) as client:
                estimate = await client.estimate(settings.costs)
        _emit({"rao": estimate.rao, "tao": estimate.tao, "usd": estimate.usd})
        return 0

    gateway, account = _connect(args, argv, settings)
    events_logger = None
    if settings.events_log_dir:
        events_logger = setup_events_logger(settings.events_log_dir, settings.events_retention_bytes)
    service = CommitmentService(gateway, settings=settings, events_logger=events_logger)

    if args.command == "balance":
        target = args.address or account
        try:
            snapshot = await gateway.get_affordability(target, timeout=args.timeout)
        except LedgerError as e:
            _emit({"address": account_address(target), "category": e.category.value, "error": e.message})
            return 1
        _emit({
            "address": account_address(target),
            "spendable_rao": snapshot.spendable_balance,
            "spendable_tao": snapshot.spendable_tao,
            "can_commit": snapshot.can_commit,
            "estimated_remaining_commitments": snapshot.estimated_remaining_commitments,
            "cost_per_commitment_rao": snapshot.cost_per_commitment,
        })
        return 0

    if args.command == "commit":
        direction = args.direction.upper()
        if args.retry:
            result = await commit_with_retry(
                service,
                account,
                args.ticker,
                args.probability,
                direction,
                RetryPolicy.from_settings(settings.retry),
                timeout=args.timeout,
                reconcile_first=args.reconcile,
            )
        else:
            result = await service.commit(
                account,
                args.ticker,
                args.probability,
                direction,
                timeout=args.timeout,
                reconcile_first=args.reconcile,
            )
        _emit(_result_payload(result))
        return 0 if result.succeeded else 1

    if args.command == "resolve":
        commitment = PredictionCommitment(
            market_ticker=args.ticker,
            probability=args.probability,
            direction=args.direction.upper(),
            committer_ref=committer_reference(account_address(account)),
        )
        result = await service.resolve(
            account, commitment, args.occurred, timeout=args.timeout, reconcile_first=args.reconcile
        )
        _emit(_result_payload(result))
        return 0 if result.succeeded else 1

    raise ValueError(f"unknown command {args.command!r}")


def main(argv: Optional[List[str]] = None) -> int:
    if os.environ.get("CALIBRA_TEST_MODE") != "true":
        load_dotenv()
    suppress_substrate_noise()

    parser = build_parser()
    args = parser.parse_args(argv)
    settings = load_settings()
    return asyncio.run(_run(args, argv, settings))


if __name__ == "__main__":
    sys.exit(main())
