
from .core import (
    MemoSettings,
    CostSettings,
    LedgerSettings,
    QualityThresholds,
    RetrySettings,
    PricingSettings,
    Settings,
    DEFAULT_SETTINGS,
    get_settings,
    load_settings,
    sanitize_dict,
)

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
