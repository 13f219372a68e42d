from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Any, Callable, Optional

import bittensor as bt
import httpx

from calibra.config.core import CostSettings, PricingSettings
from calibra.ledger.affordability import RAO_PER_TAO


@dataclass(frozen=True)
class CostEstimate:
    """Worst-case cost of one commitment lifecycle."""

    rao: int
    tao: float
    usd: float


def estimate_commitment_cost(costs: CostSettings, usd_price: float) -> CostEstimate:
    rao = costs.cost_per_commitment_rao
    tao = Decimal(rao) / RAO_PER_TAO
    usd = (tao * Decimal(str(usd_price))).quantize(Decimal("0.000001"), rounding=ROUND_HALF_EVEN)
    return CostEstimate(rao=rao, tao=float(tao), usd=float(usd))


class TaoPriceClient:
    """
    Async TAO/USD price lookup.

    - Caches the last good price on the instance for `cache_seconds`
    - Any HTTP, transport or payload problem falls back to the configured price
    """

    def __init__(
        self,
        *,
        settings: Optional[PricingSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        time_fn: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or PricingSettings()
        self._now = time_fn
        self._cached: Optional[tuple[float, float]] = None
        self._client = httpx.AsyncClient(timeout=self.settings.timeout_seconds, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "TaoPriceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def cached_price(self) -> Optional[float]:
        if self._cached is None:
            return None
        fetched_at, price = self._cached
        if self._now() - fetched_at >= self.settings.cache_seconds:
            return None
        return price

    async def get_usd_price(self) -> float:
        cached = self.cached_price
        if cached is not None:
            return cached
        try:
            resp = await self._client.get(self.settings.price_url)
            resp.raise_for_status()
            price = self._parse_price(resp.json())
        except (httpx.HTTPStatusError, httpx.RequestError, ValueError) as exc:
            bt.logging.warning({"tao_price": {"error": str(exc), "fallback_usd": self.settings.fallback_usd}})
            return self.settings.fallback_usd
        self._cached = (self._now(), price)
        bt.logging.debug({"tao_price": {"usd": price}})
        return price

    async def estimate(self, costs: CostSettings) -> CostEstimate:
        return estimate_commitment_cost(costs, await self.get_usd_price())

    def _parse_price(self, payload: Any) -> float:
        try:
            price = float(payload["bittensor"]["usd"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"unexpected price payload: {payload!r}") from exc
        if not price > 0:
            raise ValueError(f"non-positive price {price}")
        return price


__all__ = ["CostEstimate", "estimate_commitment_cost", "TaoPriceClient"]
