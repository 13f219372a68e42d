"""Memo codec: commitment / resolution records <-> compact ledger memo strings.

Wire format (version 1, `|`-delimited, UTF-8):

    CALIBRA|1|PREDICT|<market_ticker>|<probability_bps>|<YES|NO>|<committer_ref>
    CALIBRA|1|RESOLVE|<market_ticker>|<OCCURRED|DID_NOT_OCCUR>|<brier_bps>

- probability_bps is an integer in [1, 9999], brier_bps in [0, 10000]
- integers are canonical decimal (no sign, no leading zeros)
- no field may contain the delimiter or a non-printable character
- the whole memo must fit MemoLimits.max_memo_bytes

Encoding is deterministic and strict: it raises rather than repairing,
escaping or truncating. Decoding is total: any input that is not a
well-formed memo of a supported version yields None.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, ClassVar, Optional, Union

from calibra import __memo_version__
from calibra.config.core import MemoSettings
from calibra.scoring.determinism import to_decimal
from calibra.scoring.validation import validate_direction, validate_probability
from calibra.shared.enums import Direction, MemoKind, ResolutionOutcome
from calibra.shared.errors import InvalidCommitment, PayloadTooLarge, UnencodableField
from calibra.shared.probability import (
    from_basis_points,
    is_commit_bps,
    is_score_bps,
    to_basis_points,
)

from .models.v1.commitment import PredictionCommitment, ResolutionRecord

MEMO_TAG = "CALIBRA"
MEMO_DELIMITER = "|"
MEMO_VERSION = __memo_version__
SUPPORTED_MEMO_VERSIONS = frozenset({MEMO_VERSION})

PREDICT_FIELD_COUNT = 7
RESOLVE_FIELD_COUNT = 6

_CANONICAL_INT = re.compile(r"0|[1-9][0-9]*")
_HEADER = f"{MEMO_TAG}{MEMO_DELIMITER}"


@dataclass(frozen=True)
class MemoLimits:
    """Byte budgets enforced on encode and re-checked on decode."""

    max_memo_bytes: int = 256
    max_ticker_bytes: int = 200
    max_committer_ref_bytes: int = 64

    @classmethod
    def from_settings(cls, settings: MemoSettings) -> "MemoLimits":
        return cls(
            max_memo_bytes=settings.max_memo_bytes,
            max_ticker_bytes=settings.max_ticker_bytes,
            max_committer_ref_bytes=settings.max_committer_ref_bytes,
        )


DEFAULT_LIMITS = MemoLimits()


@dataclass(frozen=True)
class DecodedPrediction:
    kind: ClassVar[MemoKind] = MemoKind.PREDICT

    commitment: PredictionCommitment
    raw: str
    version: int = MEMO_VERSION


@dataclass(frozen=True)
class DecodedResolution:
    kind: ClassVar[MemoKind] = MemoKind.RESOLVE

    resolution: ResolutionRecord
    raw: str
    version: int = MEMO_VERSION


DecodedMemo = Union[DecodedPrediction, DecodedResolution]


# ─────────────────────────────────────────────────────────────────────────────
# Field rules (shared by encode and decode)
# ─────────────────────────────────────────────────────────────────────────────


def field_problem(value: Any, max_bytes: Optional[int] = None) -> Optional[str]:
    """Why value cannot be a memo field, or None if it can.

    The byte budget is only checked when max_bytes is given.
    """
    if not isinstance(value, str):
        return f"must be a string, got {type(value).__name__}"
    if not value:
        return "is empty"
    if MEMO_DELIMITER in value:
        return f"contains reserved delimiter {MEMO_DELIMITER!r}"
    if not value.isprintable():
        return "contains non-printable characters"
    if max_bytes is None:
        return None
    size = len(value.encode("utf-8"))
    if size > max_bytes:
        return f"is {size} bytes; budget is {max_bytes}"
    return None


def _require_field(value: Any, name: str, max_bytes: Optional[int] = None) -> str:
    problem = field_problem(value, max_bytes)
    if problem is not None:
        raise UnencodableField(f"{name} {problem}", details={"field": name})
    return value


def _require_size(memo: str, limits: MemoLimits) -> str:
    size = memo_size(memo)
    if size > limits.max_memo_bytes:
        raise PayloadTooLarge(
            f"memo is {size} bytes; ceiling is {limits.max_memo_bytes}",
            details={"size": size, "ceiling": limits.max_memo_bytes},
        )
    return memo


def _join(kind: MemoKind, *fields: str) -> str:
    return MEMO_DELIMITER.join((MEMO_TAG, str(MEMO_VERSION), kind.value) + fields)


def memo_size(memo: str) -> int:
    """UTF-8 byte length, the unit ledger note limits are expressed in."""
    return len(memo.encode("utf-8"))


def is_calibra_memo(memo: Any) -> bool:
    """Cheap prefix check for scanning arbitrary ledger notes."""
    return isinstance(memo, str) and memo.startswith(_HEADER)


# ─────────────────────────────────────────────────────────────────────────────
# Encoding
# ─────────────────────────────────────────────────────────────────────────────


def encode_prediction(commitment: PredictionCommitment, limits: MemoLimits | None = None) -> str:
    """Encode a commitment as a PREDICT memo.

    Raises:
        InvalidCommitment: probability outside (0, 1) / not representable in
            [1, 9999] bps, or unknown direction
        PayloadTooLarge: the assembled memo exceeds max_memo_bytes
        UnencodableField: ticker or committer_ref empty, non-printable,
            containing the delimiter, or (once the memo fits) over its own
            byte budget
    """
    limits = limits or DEFAULT_LIMITS
    if not isinstance(commitment, PredictionCommitment):
        raise InvalidCommitment(f"expected PredictionCommitment, got {type(commitment).__name__}")

    _, bps = validate_probability(commitment.probability)
    direction = validate_direction(commitment.direction)
    ticker = _require_field(commitment.market_ticker, "market_ticker")
    ref = _require_field(commitment.committer_ref, "committer_ref")

    memo = _require_size(_join(MemoKind.PREDICT, ticker, str(bps), direction.value, ref), limits)
    _require_field(ticker, "market_ticker", limits.max_ticker_bytes)
    _require_field(ref, "committer_ref", limits.max_committer_ref_bytes)
    return memo


def encode_resolution(
    market_ticker: str,
    direction_occurred: bool,
    brier_score: float,
    limits: MemoLimits | None = None,
) -> str:
    """Encode a resolution as a RESOLVE memo.

    The memo carries the outcome and the score so it can be read without
    looking up the original commitment.
    """
    limits = limits or DEFAULT_LIMITS
    if not isinstance(direction_occurred, bool):
        raise InvalidCommitment(f"direction_occurred must be bool, got {direction_occurred!r}")

    score = to_decimal(brier_score, "brier_score")
    if not (0 <= score <= 1):
        raise InvalidCommitment(f"brier_score {score} must be within [0, 1]")
    bps = to_basis_points(score)
    ticker = _require_field(market_ticker, "market_ticker")
    outcome = ResolutionOutcome.from_bool(direction_occurred)

    memo = _require_size(_join(MemoKind.RESOLVE, ticker, outcome.value, str(bps)), limits)
    _require_field(ticker, "market_ticker", limits.max_ticker_bytes)
    return memo


def encode_resolution_record(record: ResolutionRecord, limits: MemoLimits | None = None) -> str:
    return encode_resolution(
        record.market_ticker, record.direction_occurred, record.brier_score, limits
    )


# ─────────────────────────────────────────────────────────────────────────────
# Decoding
# ─────────────────────────────────────────────────────────────────────────────


def _parse_int(token: str) -> Optional[int]:
    if _CANONICAL_INT.fullmatch(token) is None:
        return None
    return int(token)


def _decode_prediction(parts: list[str], raw: str, version: int, limits: MemoLimits) -> Optional[DecodedPrediction]:
    if len(parts) != PREDICT_FIELD_COUNT:
        return None
    _, _, _, ticker, bps_token, direction_token, ref = parts
    if field_problem(ticker, limits.max_ticker_bytes) or field_problem(ref, limits.max_committer_ref_bytes):
        return None
    bps = _parse_int(bps_token)
    if bps is None or not is_commit_bps(bps):
        return None
    if direction_token not in (Direction.YES.value, Direction.NO.value):
        return None
    commitment = PredictionCommitment(
        market_ticker=ticker,
        probability=from_basis_points(bps),
        direction=Direction(direction_token),
        committer_ref=ref,
    )
    return DecodedPrediction(commitment=commitment, raw=raw, version=version)


def _decode_resolution(parts: list[str], raw: str, version: int, limits: MemoLimits) -> Optional[DecodedResolution]:
    if len(parts) != RESOLVE_FIELD_COUNT:
        return None
    _, _, _, ticker, outcome_token, bps_token = parts
    if field_problem(ticker, limits.max_ticker_bytes):
        return None
    if outcome_token not in (ResolutionOutcome.OCCURRED.value, ResolutionOutcome.DID_NOT_OCCUR.value):
        return None
    bps = _parse_int(bps_token)
    if bps is None or not is_score_bps(bps):
        return None
    resolution = ResolutionRecord(
        market_ticker=ticker,
        direction_occurred=ResolutionOutcome(outcome_token).direction_occurred,
        brier_score=from_basis_points(bps),
    )
    return DecodedResolution(resolution=resolution, raw=raw, version=version)


def decode(memo: Any, limits: MemoLimits | None = None) -> Optional[DecodedMemo]:
    """Parse a memo. Never raises; returns None for anything that is not ours.

    Accepts str or UTF-8 bytes. Callers dispatch on `result.kind` before
    touching `commitment` / `resolution`.
    """
    limits = limits or DEFAULT_LIMITS
    if isinstance(memo, (bytes, bytearray)):
        try:
            memo = bytes(memo).decode("utf-8")
        except UnicodeDecodeError:
            return None
    if not is_calibra_memo(memo):
        return None
    try:
        if memo_size(memo) > limits.max_memo_bytes:
            return None
    except UnicodeEncodeError:
        # lone surrogates, e.g. from surrogateescape
        return None

    parts = memo.split(MEMO_DELIMITER)
    if len(parts) < 3:
        return None
    version = _parse_int(parts[1])
    if version is None or version not in SUPPORTED_MEMO_VERSIONS:
        return None

    try:
        if parts[2] == MemoKind.PREDICT.value:
            return _decode_prediction(parts, memo, version, limits)
        if parts[2] == MemoKind.RESOLVE.value:
            return _decode_resolution(parts, memo, version, limits)
    except ValueError:
        # pydantic.ValidationError subclasses ValueError
        return None
    return None


__all__ = [
    "MEMO_TAG",
    "MEMO_DELIMITER",
    "MEMO_VERSION",
    "SUPPORTED_MEMO_VERSIONS",
    "MemoLimits",
    "DEFAULT_LIMITS",
    "DecodedPrediction",
    "DecodedResolution",
    "DecodedMemo",
    "field_problem",
    "memo_size",
    "is_calibra_memo",
    "encode_prediction",
    "encode_resolution",
    "encode_resolution_record",
    "decode",
]
