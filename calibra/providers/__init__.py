"""Provider integrations.

Off-chain data sources used for display and cost estimation only. Nothing
here gates a commitment.
"""

from .pricing import CostEstimate, TaoPriceClient, estimate_commitment_cost

__all__ = ["CostEstimate", "TaoPriceClient", "estimate_commitment_cost"]
