"""Projects, accounts and trade records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import numpy as np

from .enums import Scenario, Side, TradeKind
from .lmsr import MarketState, implied_value, price_up


@dataclass
class Project:
    """A fundable project owning one market per scenario."""

    id: str
    name: str
    range_min: float = 0.0
    range_max: float = 10000.0
    markets: Dict[Scenario, MarketState] = field(default_factory=dict)

    def __post_init__(self):
        if not self.range_min < self.range_max:
            raise ValueError(
                f"Project {self.id}: range_min ({self.range_min}) must be below range_max ({self.range_max})"
            )
        for scenario in Scenario:
            self.markets.setdefault(scenario, MarketState())

    @property
    def midpoint(self) -> float:
        return (self.range_min + self.range_max) / 2.0

    @property
    def span(self) -> float:
        return self.range_max - self.range_min

    def market(self, scenario: Scenario) -> MarketState:
        return self.markets[scenario]

    def price_up(self, scenario: Scenario) -> float:
        m = self.markets[scenario]
        return price_up(m.q_up, m.q_down, m.b)

    def implied_value(self, scenario: Scenario) -> float:
        return implied_value(self.price_up(scenario), self.range_min, self.range_max)

    def impact(self) -> float:
        """Funded-minus-not-funded probability spread in absolute units."""
        return (self.price_up(Scenario.FUNDED) - self.price_up(Scenario.NOT_FUNDED)) * self.span

    def copy(self) -> "Project":
        return Project(
            id=self.id,
            name=self.name,
            range_min=self.range_min,
            range_max=self.range_max,
            markets=dict(self.markets),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "range_min": self.range_min,
            "range_max": self.range_max,
            "markets": {s.value: m.to_dict() for s, m in self.markets.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Project":
        return cls(
            id=data["id"],
            name=data["name"],
            range_min=float(data["range_min"]),
            range_max=float(data["range_max"]),
            markets={Scenario(s): MarketState.from_dict(m) for s, m in data["markets"].items()},
        )


@dataclass
class Account:
    """Cash balance plus per-project share and base-pair ledgers.

    ``holdings`` is indexed ``[project, scenario, side]`` and ``base_pairs``
    ``[project, scenario]``; project indices follow the market's project order.
    """

    id: str
    name: str
    num_projects: int
    balance: float = 0.0
    is_admin: bool = False
    holdings: Optional[np.ndarray] = None
    base_pairs: Optional[np.ndarray] = None

    def __post_init__(self):
        if self.holdings is None:
            self.holdings = np.zeros((self.num_projects, 2, 2), dtype=np.float64)
        if self.base_pairs is None:
            self.base_pairs = np.zeros((self.num_projects, 2), dtype=np.float64)

    def holding(self, project_index: int, scenario: Scenario, side: Side) -> float:
        return float(self.holdings[project_index, scenario.index, side.index])

    def base_pair(self, project_index: int, scenario: Scenario) -> float:
        return float(self.base_pairs[project_index, scenario.index])

    def copy(self) -> "Account":
        return Account(
            id=self.id,
            name=self.name,
            num_projects=self.num_projects,
            balance=self.balance,
            is_admin=self.is_admin,
            holdings=self.holdings.copy(),
            base_pairs=self.base_pairs.copy(),
        )

    def restore_from(self, other: "Account") -> None:
        self.balance = other.balance
        self.holdings = other.holdings.copy()
        self.base_pairs = other.base_pairs.copy()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "balance": self.balance,
            "is_admin": self.is_admin,
            "holdings": self.holdings.tolist(),
            "base_pairs": self.base_pairs.tolist(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Account":
        holdings = np.asarray(data["holdings"], dtype=np.float64).reshape(-1, 2, 2)
        base_pairs = np.asarray(data["base_pairs"], dtype=np.float64).reshape(-1, 2)
        return cls(
            id=data["id"],
            name=data["name"],
            num_projects=holdings.shape[0],
            balance=float(data["balance"]),
            is_admin=bool(data["is_admin"]),
            holdings=holdings,
            base_pairs=base_pairs,
        )


@dataclass
class Resolution:
    """Winner chosen at decision time and the final outcome values."""

    winner: str
    values: Dict[str, Dict[Scenario, float]] = field(default_factory=dict)

    def value(self, project_id: str, scenario: Scenario) -> Optional[float]:
        return self.values.get(project_id, {}).get(scenario)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "winner": self.winner,
            "values": {
                pid: {s.value: v for s, v in vals.items()} for pid, vals in self.values.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Resolution":
        return cls(
            winner=data["winner"],
            values={
                pid: {Scenario(s): float(v) for s, v in vals.items()}
                for pid, vals in data["values"].items()
            },
        )


@dataclass(frozen=True)
class TradeReceipt:
    trade_id: str
    timestamp: float
    account_id: str
    project_id: str
    scenario: Scenario
    side: Side
    kind: TradeKind
    shares: float
    cost: float
    price_before: float
    price_after: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "timestamp": self.timestamp,
            "account_id": self.account_id,
            "project_id": self.project_id,
            "scenario": self.scenario.value,
            "side": self.side.value,
            "kind": self.kind.value,
            "shares": self.shares,
            "cost": self.cost,
            "price_before": self.price_before,
            "price_after": self.price_after,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TradeReceipt":
        return cls(
            trade_id=data["trade_id"],
            timestamp=float(data["timestamp"]),
            account_id=data["account_id"],
            project_id=data["project_id"],
            scenario=Scenario(data["scenario"]),
            side=Side(data["side"]),
            kind=TradeKind(data["kind"]),
            shares=float(data["shares"]),
            cost=float(data["cost"]),
            price_before=float(data["price_before"]),
            price_after=float(data["price_after"]),
        )
