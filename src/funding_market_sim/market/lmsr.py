"""LMSR market maker for binary UP/DOWN markets.

Cost function: C(q) = b * log(exp(q_up/b) + exp(q_down/b))
UP price:      p_up = exp(q_up/b) / (exp(q_up/b) + exp(q_down/b))

All functions here are pure. State lives in the immutable ``MarketState``;
trades produce a new state instead of mutating the old one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

from .enums import Side

PROBABILITY_EPSILON = 1e-6
MIN_LIQUIDITY = 1e-9
BUDGET_SEARCH_CAP = 1e6
BUDGET_SEARCH_ITERATIONS = 60


@dataclass(frozen=True)
class MarketState:
    """Cumulative share issuance of one binary market."""

    q_up: float = 0.0
    q_down: float = 0.0
    b: float = 180.0

    def __post_init__(self):
        if not self.b >= MIN_LIQUIDITY:
            raise ValueError(f"Liquidity parameter must be >= {MIN_LIQUIDITY}, got {self.b}")

    def price_up(self) -> float:
        return price_up(self.q_up, self.q_down, self.b)

    def price(self, side: Side) -> float:
        p = self.price_up()
        return p if side is Side.UP else 1.0 - p

    def cost(self) -> float:
        return lmsr_cost(self.q_up, self.q_down, self.b)

    def with_quantities(self, q_up: float, q_down: float) -> "MarketState":
        return replace(self, q_up=q_up, q_down=q_down)

    def to_dict(self):
        return {"q_up": self.q_up, "q_down": self.q_down, "b": self.b}

    @classmethod
    def from_dict(cls, data) -> "MarketState":
        return cls(q_up=float(data["q_up"]), q_down=float(data["q_down"]), b=float(data["b"]))


@dataclass(frozen=True)
class TradeQuote:
    """Result of pricing a quantity change on one side of a market."""

    cost: float
    q_up: float
    q_down: float
    pre_cost: float
    post_cost: float

    @property
    def refund(self) -> float:
        return self.pre_cost - self.post_cost


def lmsr_cost(q_up: float, q_down: float, b: float) -> float:
    """Calculate the cost function, using log-sum-exp to avoid overflow."""
    a = q_up / b
    c = q_down / b
    max_val = max(a, c)
    return b * (max_val + math.log1p(math.exp(-abs(a - c))))


def price_up(q_up: float, q_down: float, b: float) -> float:
    """Marginal price (= implied probability) of the UP side."""
    x = (q_up - q_down) / b
    if x >= 0:
        z = math.exp(-x)
        return 1.0 / (1.0 + z)
    z = math.exp(x)
    return z / (1.0 + z)


def clamp_probability(p: float, eps: float = PROBABILITY_EPSILON) -> float:
    return max(eps, min(1.0 - eps, p))


def implied_value(p: float, range_min: float, range_max: float) -> float:
    """Map a probability onto a project's absolute value range."""
    return range_min + p * (range_max - range_min)


def normalized_value(value: float, range_min: float, range_max: float,
                     eps: float = PROBABILITY_EPSILON) -> float:
    """Inverse of ``implied_value``, clamped to [eps, 1 - eps]."""
    return clamp_probability((value - range_min) / (range_max - range_min), eps)


def q_up_for_target_price(q_down: float, b: float, p: float,
                          eps: float = PROBABILITY_EPSILON) -> float:
    """q_up that puts the UP price at ``p`` with q_down held fixed."""
    p = clamp_probability(p, eps)
    return q_down - b * math.log(1.0 / p - 1.0)


def q_down_for_target_price(q_up: float, b: float, p: float,
                            eps: float = PROBABILITY_EPSILON) -> float:
    """q_down that puts the UP price at ``p`` with q_up held fixed."""
    p = clamp_probability(p, eps)
    return q_up - b * math.log(p / (1.0 - p))


def trade_cost(market: MarketState, side: Side, delta: float) -> TradeQuote:
    """Price a change of ``delta`` shares on one side (positive=buy, negative=sell).

    The cost is always the pre/post difference of the cost function, so a buy
    followed by an equal sell is free.
    """
    pre = lmsr_cost(market.q_up, market.q_down, market.b)
    q_up = market.q_up + (delta if side is Side.UP else 0.0)
    q_down = market.q_down + (delta if side is Side.DOWN else 0.0)
    post = lmsr_cost(q_up, q_down, market.b)
    return TradeQuote(cost=post - pre, q_up=q_up, q_down=q_down, pre_cost=pre, post_cost=post)


def size_by_budget(market: MarketState, side: Side, budget: float) -> float:
    """Largest share count whose cost does not exceed ``budget``.

    Cost is strictly increasing in the share count, so bracket by doubling and
    then bisect. Returns 0.0 for a non-positive budget.
    """
    if budget <= 0:
        return 0.0

    low, high = 0.0, 1.0
    while trade_cost(market, side, high).cost <= budget and high < BUDGET_SEARCH_CAP:
        low = high
        high *= 2.0

    for _ in range(BUDGET_SEARCH_ITERATIONS):
        mid = (low + high) / 2.0
        if trade_cost(market, side, mid).cost <= budget:
            low = mid
        else:
            high = mid

    return low
