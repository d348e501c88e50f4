"""Randomized trade generation for stress and consistency testing.

Trades are generated on a working copy of the market states and trader
accounts, priced with the same ``trade_cost`` as real trading, and committed
back in one step when the run finishes.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional

from tqdm import tqdm

from ..market.enums import Scenario, Side, TradeKind
from ..market.lmsr import trade_cost
from ..market.models import Account, Project, TradeReceipt

if TYPE_CHECKING:
    from .engine import MarketEngine

logger = logging.getLogger(__name__)

PROGRESS_MIN_TRADES = 500


@dataclass
class SimulatedTrade:
    account_id: str
    project_id: str
    scenario: Scenario
    side: Side
    kind: TradeKind
    shares: float
    cost: float
    price_before: float
    price_after: float


@dataclass
class SimulationResult:
    """Structured output of one simulator run."""

    requested: int
    trades: List[TradeReceipt] = field(default_factory=list)
    skipped: int = 0

    @property
    def executed(self) -> int:
        return len(self.trades)


class TradeSimulator:
    """Generates random budget-respecting trades from non-admin accounts."""

    def __init__(
        self,
        engine: "MarketEngine",
        *,
        seed: Optional[int] = None,
        buy_probability: float = 0.7,
        max_shares: int = 50,
        show_progress: bool = True,
    ):
        self.engine = engine
        self.rng = random.Random(seed)
        self.buy_probability = buy_probability
        self.max_shares = max_shares
        self.show_progress = show_progress

    def run(self, count: int) -> SimulationResult:
        """Execute ``count`` random trade attempts and commit the outcome."""
        with self.engine.lock:
            self.engine.gate.ensure_not_resolved()
            projects = [p.copy() for p in self.engine.projects]
            traders = [a for a in self.engine.accounts if not a.is_admin]

            fills: List[SimulatedTrade] = []
            skipped = 0
            disable = not self.show_progress or count < PROGRESS_MIN_TRADES
            for _ in tqdm(range(count), desc="Simulating", unit="trade", leave=False, disable=disable):
                if not traders:
                    break
                fill = self._step(projects, traders)
                if fill is None:
                    skipped += 1
                else:
                    fills.append(fill)

            receipts = self.engine.commit_simulation(projects, traders, fills)

        logger.info("Simulated %d/%d trades (%d skipped)", len(receipts), count, skipped)
        return SimulationResult(requested=count, trades=receipts, skipped=skipped)

    def _step(self, projects: List[Project], traders: List[Account]) -> Optional[SimulatedTrade]:
        rng = self.rng
        trader = rng.choice(traders)
        idx = rng.randrange(len(projects))
        project = projects[idx]
        scenario = Scenario.FUNDED if rng.random() < 0.5 else Scenario.NOT_FUNDED
        side = Side.UP if rng.random() < 0.5 else Side.DOWN
        is_buy = rng.random() < self.buy_probability
        shares = float(rng.randint(1, self.max_shares))

        if self.engine.gate.is_frozen(idx, scenario):
            return None

        m = project.market(scenario)
        if is_buy:
            cost = trade_cost(m, side, shares).cost
            if trader.balance < cost:
                # Scale down once; no iterative refinement.
                scale = trader.balance / max(cost, 1e-9)
                shares = float(max(1, math.floor(shares * scale)))
            quote = trade_cost(m, side, shares)
            if trader.balance < quote.cost:
                return None
            delta, kind = shares, TradeKind.SIMULATED_BUY
        else:
            held = trader.holding(idx, scenario, side)
            if held <= 0:
                return None
            shares = min(shares, held)
            quote = trade_cost(m, side, -shares)
            delta, kind = -shares, TradeKind.SIMULATED_SELL

        price_before = m.price(side)
        new_market = m.with_quantities(quote.q_up, quote.q_down)
        project.markets[scenario] = new_market
        trader.balance -= quote.cost
        trader.holdings[idx, scenario.index, side.index] += delta

        return SimulatedTrade(
            account_id=trader.id,
            project_id=project.id,
            scenario=scenario,
            side=side,
            kind=kind,
            shares=delta,
            cost=quote.cost,
            price_before=price_before,
            price_after=new_market.price(side),
        )


def simulation_summary(result: SimulationResult) -> Dict[str, float]:
    buys = [t for t in result.trades if t.kind is TradeKind.SIMULATED_BUY]
    sells = [t for t in result.trades if t.kind is TradeKind.SIMULATED_SELL]
    return {
        "requested": result.requested,
        "executed": result.executed,
        "skipped": result.skipped,
        "buys": len(buys),
        "sells": len(sells),
        "spent": sum(t.cost for t in buys),
        "refunded": -sum(t.cost for t in sells),
    }
