"""Runtime configuration.

All tunables live here so that the wire ceiling, cost constants and quality
thresholds have a single source of truth:
1. Memo byte budgets (what the codec accepts)
2. Ledger cost constants (what affordability divides by)
3. Quality band thresholds (what interpret_brier_score maps to)

Environment overrides use CALIBRA_<SECTION>__<FIELD> (pydantic-settings
nested delimiter), e.g. CALIBRA_COSTS__FEE_RAO=200000.

IMPORTANT: MemoSettings changes alter which payloads are encodable. Memos
already on the ledger are immutable; shrinking a budget can make old memos
fail decode-time field checks.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_PREFIX = "CALIBRA_"


class MemoSettings(BaseModel):
    """Byte budgets for the memo wire format."""

    max_memo_bytes: int = Field(
        default=256,
        ge=64,
        le=4096,
        description="Hard ceiling on the UTF-8 length of a whole memo. Oversized memos are rejected, never truncated.",
    )
    max_ticker_bytes: int = Field(
        default=200,
        ge=1,
        le=4096,
        description="Per-field budget for the market ticker.",
    )
    max_committer_ref_bytes: int = Field(
        default=64,
        ge=1,
        le=512,
        description="Per-field budget for the committer reference.",
    )


class CostSettings(BaseModel):
    """Ledger cost constants, all in rao (1 TAO = 1e9 rao)."""

    reserved_minimum_rao: int = Field(
        default=500,
        ge=0,
        description="Balance floor the account must keep (existential deposit).",
    )
    fee_rao: int = Field(
        default=100_000,
        ge=1,
        description="Worst-case transaction fee for one remark extrinsic.",
    )
    memo_surcharge_rao: int = Field(
        default=0,
        ge=0,
        description="Fixed per-memo surcharge on top of the fee.",
    )
    lifecycle_transactions: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Transactions budgeted per commitment (PREDICT plus the later RESOLVE).",
    )

    @property
    def cost_per_commitment_rao(self) -> int:
        return (self.fee_rao + self.memo_surcharge_rao) * self.lifecycle_transactions


class LedgerSettings(BaseModel):
    network: str = Field(default="finney", description="Subtensor network name or ws endpoint.")
    explorer_url_template: str = Field(
        default="https://taostats.io/hash/{reference}",
        description="Explorer link for a submitted extrinsic; {reference} is the extrinsic hash.",
    )
    query_timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    submit_timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    wait_for_finalization: bool = Field(default=False)
    history_scan_blocks: int = Field(
        default=300,
        ge=1,
        le=10_000,
        description="Blocks scanned backwards when reconciling an ambiguous submission.",
    )
    affordability_cache_ttl_seconds: float = Field(default=30.0, ge=0, le=3600)


class QualityThresholds(BaseModel):
    """Upper bounds (inclusive) for each Brier quality band.

    Scores above `poor` fall into the last band.
    """

    excellent: float = Field(default=0.10, gt=0, lt=1)
    good: float = Field(default=0.20, gt=0, lt=1)
    fair: float = Field(default=0.30, gt=0, lt=1)
    poor: float = Field(default=0.40, gt=0, lt=1)

    @model_validator(mode="after")
    def _ascending(self) -> "QualityThresholds":
        if not (self.excellent < self.good < self.fair < self.poor):
            raise ValueError("quality thresholds must be strictly ascending")
        return self


class RetrySettings(BaseModel):
    max_attempts: int = Field(default=3, ge=1, le=10)
    initial_delay_seconds: float = Field(default=1.0, ge=0, le=60)
    max_delay_seconds: float = Field(default=10.0, ge=0, le=600)
    backoff_multiplier: float = Field(default=2.0, ge=1, le=10)


class PricingSettings(BaseModel):
    price_url: str = Field(
        default="https://api.coingecko.com/api/v3/simple/price?ids=bittensor&vs_currencies=usd",
    )
    cache_seconds: float = Field(default=300.0, ge=0, le=86_400)
    fallback_usd: float = Field(default=300.0, gt=0)
    timeout_seconds: float = Field(default=10.0, gt=0, le=120)


class Settings(BaseSettings):
    """Master configuration. Reads CALIBRA_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix=_ENV_PREFIX,
        env_nested_delimiter="__",
        extra="ignore",
    )

    memo: MemoSettings = Field(default_factory=MemoSettings)
    costs: CostSettings = Field(default_factory=CostSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    quality: QualityThresholds = Field(default_factory=QualityThresholds)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    events_log_dir: Optional[str] = Field(default=None)
    events_retention_bytes: int = Field(default=5 * 1024 * 1024, ge=1024)


# Pure defaults; only load_settings() reads the environment.
DEFAULT_SETTINGS = Settings.model_construct()

_SECRET_MARKERS = ("secret", "password", "mnemonic", "seed", "private", "token")


def get_settings() -> Settings:
    """Get default settings. Use load_settings() to honour the environment."""
    return DEFAULT_SETTINGS


def load_settings(**overrides: Any) -> Settings:
    """Build Settings from defaults, CALIBRA_* environment and explicit overrides.

    Section overrides are merged into the environment values field by field.
    Values are validated by pydantic; an out-of-bounds value raises
    pydantic.ValidationError rather than being silently clamped.
    """
    return Settings(**overrides)


def sanitize_dict(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of data with secret-looking values masked, for logging."""
    clean: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            clean[key] = sanitize_dict(value)
        elif any(marker in str(key).lower() for marker in _SECRET_MARKERS):
            clean[key] = "***"
        else:
            clean[key] = value
    return clean


__all__ = [
    "MemoSettings",
    "CostSettings",
    "LedgerSettings",
    "QualityThresholds",
    "RetrySettings",
    "PricingSettings",
    "Settings",
    "DEFAULT_SETTINGS",
    "get_settings",
    "load_settings",
    "sanitize_dict",
]
