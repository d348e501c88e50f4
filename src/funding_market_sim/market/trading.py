"""Trading engine: buy, sell and target-price moves against LMSR markets.

The engine does no locking of its own. ``MarketEngine`` holds the market lock
around every call, so each method validates first and then commits market
state, balance and holdings in one uninterrupted step.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple

from ..errors import (
    InsufficientBalanceError,
    InsufficientSharesError,
    InvalidAmountError,
    InvalidRequestError,
    UnknownProjectError,
)
from .enums import Scenario, Side, TradeKind, parse_scenario, parse_side
from .lmsr import (
    PROBABILITY_EPSILON,
    TradeQuote,
    clamp_probability,
    normalized_value,
    q_down_for_target_price,
    q_up_for_target_price,
    size_by_budget,
    trade_cost,
)
from .models import Account, Project, TradeReceipt

if TYPE_CHECKING:
    from ..lifecycle.phase import PhaseStateMachine

logger = logging.getLogger(__name__)

TARGET_TOLERANCE = 1e-6


@dataclass(frozen=True)
class BudgetQuote:
    """Preview of spending a budget on one side of a market."""

    shares: float
    cost: float
    payout: float
    profit: float
    return_pct: float


class TradingEngine:
    """Executes trades for accounts against a fixed list of projects."""

    def __init__(
        self,
        projects: Sequence[Project],
        gate: "PhaseStateMachine",
        *,
        clock: Callable[[], float] = time.time,
        epsilon: float = PROBABILITY_EPSILON,
    ):
        self.projects: List[Project] = list(projects)
        self.gate = gate
        self.clock = clock
        self.epsilon = epsilon
        self._index: Dict[str, int] = {p.id: i for i, p in enumerate(self.projects)}
        self._trades: List[TradeReceipt] = []
        self._trade_counter = 0

    def project(self, project_id: str) -> Tuple[int, Project]:
        try:
            idx = self._index[project_id]
        except KeyError:
            raise UnknownProjectError(project_id) from None
        return idx, self.projects[idx]

    def get_trades(self) -> List[TradeReceipt]:
        return self._trades.copy()

    def load_trades(self, trades: Sequence[TradeReceipt]) -> None:
        self._trades = list(trades)
        self._trade_counter = len(self._trades)

    def buy(
        self,
        account: Account,
        project_id: str,
        scenario: Scenario,
        side: Side,
        shares: float,
    ) -> TradeReceipt:
        """Buy ``shares`` on one side, paying the LMSR cost difference."""
        scenario, side = parse_scenario(scenario), parse_side(side)
        if not (shares > 0 and math.isfinite(shares)):
            raise InvalidAmountError("shares", shares)
        idx, project = self.project(project_id)
        self.gate.ensure_tradeable(idx, project_id, scenario)

        quote = trade_cost(project.market(scenario), side, shares)
        if account.balance < quote.cost:
            logger.debug("Rejected buy by %s: cost %.6f > balance %.6f", account.id, quote.cost, account.balance)
            raise InsufficientBalanceError(account.id, quote.cost, account.balance)

        return self._fill(account, idx, project, scenario, side, quote, shares, TradeKind.BUY)

    def sell(
        self,
        account: Account,
        project_id: str,
        scenario: Scenario,
        side: Side,
        shares: float,
    ) -> TradeReceipt:
        """Sell ``shares`` back to the market maker for the cost-function refund."""
        scenario, side = parse_scenario(scenario), parse_side(side)
        if not (shares > 0 and math.isfinite(shares)):
            raise InvalidAmountError("shares", shares)
        idx, project = self.project(project_id)
        self.gate.ensure_tradeable(idx, project_id, scenario)

        held = account.holding(idx, scenario, side)
        if held < shares:
            logger.debug("Rejected sell by %s: %s held < %s requested", account.id, held, shares)
            raise InsufficientSharesError(account.id, project_id, scenario.value, side.value, shares, held)

        quote = trade_cost(project.market(scenario), side, -shares)
        return self._fill(account, idx, project, scenario, side, quote, -shares, TradeKind.SELL)

    def move_to_target_value(
        self,
        account: Account,
        project_id: str,
        scenario: Scenario,
        target_value: float,
    ) -> Optional[TradeReceipt]:
        """Buy exactly enough of one side to move the implied value to ``target_value``.

        Returns None when the market already sits at (or past) the target.
        """
        scenario = parse_scenario(scenario)
        if not math.isfinite(target_value):
            raise InvalidRequestError("target_value", target_value)
        idx, project = self.project(project_id)
        self.gate.ensure_tradeable(idx, project_id, scenario)

        m = project.market(scenario)
        p_target = normalized_value(target_value, project.range_min, project.range_max, self.epsilon)
        p_current = clamp_probability(m.price_up(), self.epsilon)
        if abs(p_target - p_current) < TARGET_TOLERANCE:
            return None

        if p_target > p_current:
            side = Side.UP
            delta = q_up_for_target_price(m.q_down, m.b, p_target, self.epsilon) - m.q_up
        else:
            side = Side.DOWN
            delta = q_down_for_target_price(m.q_up, m.b, p_target, self.epsilon) - m.q_down
        if delta <= 0:
            return None

        quote = trade_cost(m, side, delta)
        if account.balance < quote.cost:
            raise InsufficientBalanceError(account.id, quote.cost, account.balance)

        return self._fill(account, idx, project, scenario, side, quote, delta, TradeKind.TARGET)

    def buy_with_budget(
        self,
        account: Account,
        project_id: str,
        scenario: Scenario,
        side: Side,
        amount: float,
    ) -> TradeReceipt:
        """Spend at most ``amount`` (capped by the balance) on one side."""
        scenario, side = parse_scenario(scenario), parse_side(side)
        if not (amount > 0 and math.isfinite(amount)):
            raise InvalidAmountError("amount", amount)
        _, project = self.project(project_id)
        shares = size_by_budget(project.market(scenario), side, min(amount, account.balance))
        if shares <= 0:
            raise InvalidAmountError("shares", shares)
        return self.buy(account, project_id, scenario, side, shares)

    def quote_budget(
        self,
        project_id: str,
        scenario: Scenario,
        side: Side,
        amount: float,
        projected_value: Optional[float] = None,
    ) -> BudgetQuote:
        """Preview ``buy_with_budget`` and its payout if the outcome is ``projected_value``.

        Without a projected value the range midpoint is assumed.
        """
        scenario, side = parse_scenario(scenario), parse_side(side)
        if not math.isfinite(amount):
            raise InvalidAmountError("amount", amount)
        _, project = self.project(project_id)
        m = project.market(scenario)
        shares = size_by_budget(m, side, amount)
        cost = trade_cost(m, side, shares).cost if shares > 0 else 0.0

        if projected_value is None:
            projected_value = project.midpoint
        elif not math.isfinite(projected_value):
            raise InvalidRequestError("projected_value", projected_value)
        v = normalized_value(projected_value, project.range_min, project.range_max, self.epsilon)
        payout = (v if side is Side.UP else 1.0 - v) * shares
        profit = payout - cost
        return_pct = (profit / cost) * 100.0 if cost > 0 else 0.0
        return BudgetQuote(shares=shares, cost=cost, payout=payout, profit=profit, return_pct=return_pct)

    def _fill(
        self,
        account: Account,
        idx: int,
        project: Project,
        scenario: Scenario,
        side: Side,
        quote: TradeQuote,
        delta: float,
        kind: TradeKind,
    ) -> TradeReceipt:
        market = project.market(scenario)
        price_before = market.price(side)
        new_market = market.with_quantities(quote.q_up, quote.q_down)

        project.markets[scenario] = new_market
        account.balance -= quote.cost
        account.holdings[idx, scenario.index, side.index] += delta

        receipt = self.record(
            account_id=account.id,
            project_id=project.id,
            scenario=scenario,
            side=side,
            kind=kind,
            shares=delta,
            cost=quote.cost,
            price_before=price_before,
            price_after=new_market.price(side),
        )
        logger.debug(
            "%s %s %.4f %s %s/%s cost=%.6f price %.4f -> %.4f",
            receipt.trade_id, account.id, delta, side.value, project.id, scenario.value,
            quote.cost, price_before, receipt.price_after,
        )
        return receipt

    def record(self, **fields) -> TradeReceipt:
        """Append a receipt to the trade log."""
        receipt = TradeReceipt(trade_id=f"T{self._trade_counter}", timestamp=self.clock(), **fields)
        self._trades.append(receipt)
        self._trade_counter += 1
        return receipt
