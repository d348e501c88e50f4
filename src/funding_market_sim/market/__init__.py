"""Market core: binary LMSR pricing, trading and base pairs.

Every project carries two independent binary markets, one per funding
scenario. Each market's UP price is read as the normalized expected value
of the project's impact metric in that scenario.
"""

from .base_pairs import merge, mergeable, mint
from .enums import Phase, Scenario, Side, TradeKind
from .lmsr import (
    MarketState,
    TradeQuote,
    implied_value,
    lmsr_cost,
    normalized_value,
    price_up,
    size_by_budget,
    trade_cost,
)
from .models import Account, Project, Resolution, TradeReceipt
from .trading import BudgetQuote, TradingEngine

__all__ = [
    # Pricing
    "MarketState",
    "TradeQuote",
    "lmsr_cost",
    "price_up",
    "implied_value",
    "normalized_value",
    "trade_cost",
    "size_by_budget",
    # Models
    "Project",
    "Account",
    "Resolution",
    "TradeReceipt",
    "Scenario",
    "Side",
    "Phase",
    "TradeKind",
    # Trading
    "TradingEngine",
    "BudgetQuote",
    "mint",
    "merge",
    "mergeable",
]
