"""Command/query façade over one conditional funding market.

Every public method runs under a single re-entrant lock, so each command
(trade, mint, merge, decision, resolution, redemption, simulation) is one
atomic step over the market states and the accounts it touches. Separate
engines share nothing and can be driven in parallel.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..data.store import KeyValueStore, market_key
from ..errors import AccountNotFoundError, UnauthorizedError
from ..lifecycle.phase import (
    MARKER_DECISION,
    MARKER_OPEN,
    MARKER_RESOLUTION,
    PhaseStateMachine,
)
from ..lifecycle.redemption import redeem_all
from ..market import base_pairs
from ..market.enums import Phase, Scenario, Side, parse_scenario, parse_side
from ..market.lmsr import PROBABILITY_EPSILON, MarketState
from ..market.models import Account, Project, Resolution, TradeReceipt
from ..market.trading import BudgetQuote, TradingEngine
from .history import HistoryRecorder, ImpactSnapshot, PhaseMarker, ProjectPricePoint, impact_snapshot
from .simulator import SimulatedTrade, SimulationResult, TradeSimulator

logger = logging.getLogger(__name__)

RECORD_VERSION = 1


class MarketEngine:
    """Coordinates projects, accounts, trading, lifecycle and history."""

    def __init__(
        self,
        *,
        projects: Sequence[Project],
        accounts: Sequence[Account],
        market_id: str = "default",
        clock: Callable[[], float] = time.time,
        epsilon: float = PROBABILITY_EPSILON,
        snapshot_interval: float = 5.0,
        log_dir: Path = Path("simulation_logs"),
        sim_buy_probability: float = 0.7,
        sim_max_shares: int = 50,
        _restoring: bool = False,
    ) -> None:
        if not projects:
            raise ValueError("A market needs at least one project")
        ids = [p.id for p in projects]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate project ids: {ids}")
        for account in accounts:
            if account.holdings.shape[0] != len(projects):
                raise ValueError(
                    f"Account {account.id} tracks {account.holdings.shape[0]} projects, market has {len(projects)}"
                )

        self.market_id = market_id
        self.clock = clock
        self.epsilon = epsilon
        self.sim_buy_probability = sim_buy_probability
        self.sim_max_shares = sim_max_shares
        self.lock = threading.RLock()

        self.projects: List[Project] = list(projects)
        self._accounts: Dict[str, Account] = {a.id: a for a in accounts}
        self._initial_balances: Dict[str, float] = {a.id: a.balance for a in accounts}
        self.gate = PhaseStateMachine(len(self.projects), epsilon=epsilon)
        self.trading = TradingEngine(self.projects, self.gate, clock=clock, epsilon=epsilon)
        self.history_recorder = HistoryRecorder(log_dir=Path(log_dir), run_id=market_id, interval=snapshot_interval)

        if not _restoring:
            now = clock()
            self.history_recorder.mark(MARKER_OPEN, now)
            self.history_recorder.record(self.projects, now)
            logger.info("Created market %s with %d projects and %d accounts",
                        market_id, len(self.projects), len(self._accounts))

    # ---------------------------------------------------------------- queries

    @property
    def accounts(self) -> List[Account]:
        """Copies of every account ledger, in registration order."""
        with self.lock:
            return [a.copy() for a in self._accounts.values()]

    @property
    def phase(self) -> Phase:
        return self.gate.phase

    @property
    def resolution(self) -> Optional[Resolution]:
        return self.gate.resolution

    def list_projects(self) -> List[Project]:
        with self.lock:
            return [p.copy() for p in self.projects]

    def get_account(self, account_id: str) -> Account:
        with self.lock:
            return self._account(account_id).copy()

    def current_price(self, project_id: str, scenario: Scenario, side: Side = Side.UP) -> float:
        with self.lock:
            _, project = self.trading.project(project_id)
            return project.market(parse_scenario(scenario)).price(parse_side(side))

    def current_value(self, project_id: str, scenario: Scenario) -> float:
        with self.lock:
            _, project = self.trading.project(project_id)
            return project.implied_value(parse_scenario(scenario))

    def current_impact(self, project_id: str) -> float:
        with self.lock:
            _, project = self.trading.project(project_id)
            return project.impact()

    def is_frozen(self, project_id: str, scenario: Scenario) -> bool:
        with self.lock:
            idx, _ = self.trading.project(project_id)
            return self.gate.is_frozen(idx, parse_scenario(scenario))

    def history(self) -> List[ImpactSnapshot]:
        with self.lock:
            return list(self.history_recorder.snapshots)

    def price_history(self) -> List[ProjectPricePoint]:
        with self.lock:
            return list(self.history_recorder.price_points)

    def phase_markers(self) -> List[PhaseMarker]:
        with self.lock:
            return list(self.history_recorder.markers)

    def trades(self) -> List[TradeReceipt]:
        with self.lock:
            return self.trading.get_trades()

    def quote_budget(self, project_id: str, scenario: Scenario, side: Side, amount: float,
                     projected_value: Optional[float] = None) -> BudgetQuote:
        with self.lock:
            return self.trading.quote_budget(project_id, scenario, side, amount, projected_value)

    # --------------------------------------------------------------- trading

    def buy(self, account_id: str, project_id: str, scenario: Scenario, side: Side, shares: float) -> TradeReceipt:
        with self.lock:
            receipt = self.trading.buy(self._account(account_id), project_id, scenario, side, shares)
            self._changed()
            return receipt

    def sell(self, account_id: str, project_id: str, scenario: Scenario, side: Side, shares: float) -> TradeReceipt:
        with self.lock:
            receipt = self.trading.sell(self._account(account_id), project_id, scenario, side, shares)
            self._changed()
            return receipt

    def buy_with_budget(self, account_id: str, project_id: str, scenario: Scenario, side: Side,
                        amount: float) -> TradeReceipt:
        with self.lock:
            receipt = self.trading.buy_with_budget(self._account(account_id), project_id, scenario, side, amount)
            self._changed()
            return receipt

    def move_to_target_value(self, account_id: str, project_id: str, scenario: Scenario,
                             target_value: float) -> Optional[TradeReceipt]:
        with self.lock:
            receipt = self.trading.move_to_target_value(self._account(account_id), project_id, scenario, target_value)
            if receipt is not None:
                self._changed()
            return receipt

    def mint(self, account_id: str, project_id: str, amount: float) -> float:
        with self.lock:
            account = self._account(account_id)
            idx, _ = self.trading.project(project_id)
            self.gate.ensure_not_resolved()
            return base_pairs.mint(account, idx, amount)

    def merge(self, account_id: str, project_id: str, amount: Optional[float] = None) -> float:
        with self.lock:
            account = self._account(account_id)
            idx, _ = self.trading.project(project_id)
            self.gate.ensure_not_resolved()
            return base_pairs.merge(account, idx, amount)

    # -------------------------------------------------------------- lifecycle

    def decide(self, account_id: str, snapshot_index: Optional[int] = None) -> str:
        """Pick the funding winner from a recorded snapshot, or from current prices."""
        with self.lock:
            account = self._account(account_id)
            self.gate.require(account, "decide", Phase.OPEN)
            if snapshot_index is None:
                impacts = impact_snapshot(self.projects, self.clock()).impacts
            else:
                impacts = self.history_recorder.snapshot(snapshot_index).impacts

            winner = self.gate.decide(account, self.projects, impacts)
            now = self.clock()
            self.history_recorder.mark(MARKER_DECISION, now)
            self.history_recorder.record(self.projects, now)
            return winner

    def resolve(self, account_id: str, final_values: Optional[Mapping[str, Mapping[Any, float]]] = None) -> Resolution:
        with self.lock:
            resolution = self.gate.resolve(self._account(account_id), self.projects, final_values)
            self.history_recorder.mark(MARKER_RESOLUTION, self.clock())
            return resolution

    def redeem_all(self) -> Dict[str, float]:
        with self.lock:
            resolution = self.gate.require_resolved("redeem")
            return redeem_all(list(self._accounts.values()), self.projects, resolution, self.epsilon)

    # ------------------------------------------------------------- simulation

    def simulate(self, count: int, *, seed: Optional[int] = None, show_progress: bool = True) -> SimulationResult:
        simulator = TradeSimulator(
            self,
            seed=seed,
            buy_probability=self.sim_buy_probability,
            max_shares=self.sim_max_shares,
            show_progress=show_progress,
        )
        return simulator.run(count)

    def commit_simulation(self, projects: Sequence[Project], traders: Sequence[Account],
                          fills: Sequence[SimulatedTrade]) -> List[TradeReceipt]:
        """Apply a simulator working copy. Caller must hold ``lock``."""
        for live, worked in zip(self.projects, projects):
            live.markets.update(worked.markets)
        for trader in traders:
            self._accounts[trader.id].restore_from(trader)
        receipts = [self.trading.record(**vars(fill)) for fill in fills]
        if receipts:
            self._changed()
        return receipts

    # ---------------------------------------------------------------- history

    def record_if_due(self) -> Optional[ImpactSnapshot]:
        """Periodic snapshot hook for an external scheduler."""
        with self.lock:
            return self.history_recorder.record_if_due(self.projects, self.clock())

    def save_history(self) -> Dict[str, Path]:
        with self.lock:
            files = self.history_recorder.save_to_csv()
            files.update({f"{k}_json": v for k, v in self.history_recorder.save_to_json().items()})
            return files

    def reset(self, account_id: str) -> None:
        """Return every market, account and the lifecycle to their initial state."""
        with self.lock:
            account = self._account(account_id)
            if not account.is_admin:
                raise UnauthorizedError(account.id, "reset")
            for project in self.projects:
                for scenario, m in list(project.markets.items()):
                    project.markets[scenario] = MarketState(b=m.b)
            for a in self._accounts.values():
                a.balance = self._initial_balances[a.id]
                a.holdings[...] = 0.0
                a.base_pairs[...] = 0.0
            self.gate = PhaseStateMachine(len(self.projects), epsilon=self.epsilon)
            self.trading = TradingEngine(self.projects, self.gate, clock=self.clock, epsilon=self.epsilon)
            self.history_recorder.clear()
            now = self.clock()
            self.history_recorder.mark(MARKER_OPEN, now)
            self.history_recorder.record(self.projects, now)
            logger.info("Market %s reset by %s", self.market_id, account.id)

    # ------------------------------------------------------------ persistence

    def to_record(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "version": RECORD_VERSION,
                "market_id": self.market_id,
                "projects": [p.to_dict() for p in self.projects],
                "accounts": [a.to_dict() for a in self._accounts.values()],
                "initial_balances": dict(self._initial_balances),
                "lifecycle": self.gate.to_dict(),
                "history": self.history_recorder.to_dict(),
                "trades": [t.to_dict() for t in self.trading.get_trades()],
            }

    @classmethod
    def from_record(cls, record: Mapping[str, Any], **kwargs) -> "MarketEngine":
        if record.get("version") != RECORD_VERSION:
            raise ValueError(f"Unsupported market record version: {record.get('version')}")
        engine = cls(
            projects=[Project.from_dict(p) for p in record["projects"]],
            accounts=[Account.from_dict(a) for a in record["accounts"]],
            market_id=record["market_id"],
            _restoring=True,
            **kwargs,
        )
        engine._initial_balances.update(record.get("initial_balances", {}))
        engine.gate = PhaseStateMachine.from_dict(record["lifecycle"], epsilon=engine.epsilon)
        engine.trading = TradingEngine(engine.projects, engine.gate, clock=engine.clock, epsilon=engine.epsilon)
        engine.trading.load_trades([TradeReceipt.from_dict(t) for t in record.get("trades", [])])
        engine.history_recorder.load_dict(record.get("history", {}))
        return engine

    def save(self, store: KeyValueStore) -> str:
        key = market_key(self.market_id)
        store.write(key, self.to_record())
        logger.debug("Saved market %s under %s", self.market_id, key)
        return key

    @classmethod
    def load(cls, store: KeyValueStore, market_id: str = "default", **kwargs) -> Optional["MarketEngine"]:
        record = store.read(market_key(market_id))
        if record is None:
            return None
        return cls.from_record(record, **kwargs)

    # --------------------------------------------------------------- helpers

    def _account(self, account_id: str) -> Account:
        try:
            return self._accounts[account_id]
        except KeyError:
            raise AccountNotFoundError(account_id) from None

    def _changed(self) -> None:
        self.history_recorder.record(self.projects, self.clock())
