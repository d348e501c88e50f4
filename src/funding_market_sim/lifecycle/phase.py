"""Market lifecycle: open -> decided -> resolved.

The decision picks the project with the highest forecast impact, pins the
winner's not-funded market and every other project's funded market to the
price of absolute value 0, and freezes those scenarios for good.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from ..errors import (
    InvalidPhaseTransitionError,
    InvalidRequestError,
    MarketClosedError,
    MarketFrozenError,
    UnauthorizedError,
    UnknownProjectError,
)
from ..market.enums import Phase, Scenario, parse_scenario
from ..market.lmsr import PROBABILITY_EPSILON, normalized_value, q_up_for_target_price
from ..market.models import Account, Project, Resolution

logger = logging.getLogger(__name__)

FROZEN_VALUE = 0.0

MARKER_OPEN = "Open"
MARKER_DECISION = "Decision"
MARKER_RESOLUTION = "Resolution"


def _final_value(value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise InvalidRequestError("final_value", value) from None
    if not math.isfinite(result):
        raise InvalidRequestError("final_value", value)
    return result


def select_winner(impacts: Mapping[str, float], order: Sequence[str]) -> str:
    """Project with the largest impact; ties go to the earliest in ``order``."""
    winner: Optional[str] = None
    best = -np.inf
    for project_id in order:
        impact = impacts[project_id]
        if impact > best:
            winner, best = project_id, impact
    if winner is None:
        raise ValueError("Cannot select a winner without projects")
    return winner


class PhaseStateMachine:
    """Tracks the phase, per-project freeze flags and the resolution record."""

    def __init__(self, num_projects: int, *, epsilon: float = PROBABILITY_EPSILON):
        self.epsilon = epsilon
        self.phase = Phase.OPEN
        self.frozen_not_funded = np.zeros(num_projects, dtype=bool)
        self.frozen_funded_zero = np.zeros(num_projects, dtype=bool)
        self.resolution: Optional[Resolution] = None

    # ------------------------------------------------------------------ gates

    def is_frozen(self, project_index: int, scenario: Scenario) -> bool:
        if scenario is Scenario.FUNDED:
            return bool(self.frozen_funded_zero[project_index])
        return bool(self.frozen_not_funded[project_index])

    def ensure_tradeable(self, project_index: int, project_id: str, scenario: Scenario) -> None:
        if self.is_frozen(project_index, scenario):
            raise MarketFrozenError(project_id, scenario.value)
        self.ensure_not_resolved()

    def ensure_not_resolved(self) -> None:
        if self.phase is Phase.RESOLVED:
            raise MarketClosedError(self.phase.value)

    def require(self, account: Account, operation: str, phase: Phase) -> None:
        if not account.is_admin:
            raise UnauthorizedError(account.id, operation)
        if self.phase is not phase:
            raise InvalidPhaseTransitionError(operation, self.phase.value)

    # ------------------------------------------------------------ transitions

    def decide(self, account: Account, projects: Sequence[Project], impacts: Mapping[str, float]) -> str:
        """Pick the winner from ``impacts`` and freeze the losing scenarios."""
        self.require(account, "decide", Phase.OPEN)
        order = [p.id for p in projects]
        winner = select_winner(impacts, order)

        # Compute every pinned market first so the commit below cannot fail halfway.
        pinned = []
        for idx, project in enumerate(projects):
            scenario = Scenario.NOT_FUNDED if project.id == winner else Scenario.FUNDED
            m = project.market(scenario)
            p_zero = normalized_value(FROZEN_VALUE, project.range_min, project.range_max, self.epsilon)
            q_up = q_up_for_target_price(m.q_down, m.b, p_zero, self.epsilon)
            pinned.append((idx, project, scenario, m.with_quantities(q_up, m.q_down)))

        for idx, project, scenario, market in pinned:
            project.markets[scenario] = market
            if scenario is Scenario.NOT_FUNDED:
                self.frozen_not_funded[idx] = True
            else:
                self.frozen_funded_zero[idx] = True

        self.phase = Phase.DECIDED
        self.resolution = Resolution(winner=winner, values={pid: {} for pid in order})
        logger.info("Decision by %s: winner=%s (impact=%.4f)", account.id, winner, impacts[winner])
        return winner

    def resolve(
        self,
        account: Account,
        projects: Sequence[Project],
        final_values: Optional[Mapping[str, Mapping[Any, float]]] = None,
    ) -> Resolution:
        """Fix the outcome values used by redemption.

        The winner needs a funded value and every other project a not-funded
        value; missing ones default to the middle of the project's range.
        """
        self.require(account, "resolve", Phase.DECIDED)
        final_values = final_values or {}
        known = {p.id for p in projects}
        for project_id in final_values:
            if project_id not in known:
                raise UnknownProjectError(project_id)

        winner = self.resolution.winner
        values: Dict[str, Dict[Scenario, float]] = {}
        for project in projects:
            given = {parse_scenario(s): _final_value(v) for s, v in final_values.get(project.id, {}).items()}
            required = Scenario.FUNDED if project.id == winner else Scenario.NOT_FUNDED
            given.setdefault(required, project.midpoint)
            values[project.id] = given

        self.resolution = Resolution(winner=winner, values=values)
        self.phase = Phase.RESOLVED
        logger.info("Market resolved by %s: winner=%s", account.id, winner)
        return self.resolution

    def require_resolved(self, operation: str) -> Resolution:
        if self.phase is not Phase.RESOLVED:
            raise InvalidPhaseTransitionError(operation, self.phase.value)
        return self.resolution

    # ----------------------------------------------------------- persistence

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "frozen_not_funded": self.frozen_not_funded.tolist(),
            "frozen_funded_zero": self.frozen_funded_zero.tolist(),
            "resolution": self.resolution.to_dict() if self.resolution else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, epsilon: float = PROBABILITY_EPSILON) -> "PhaseStateMachine":
        machine = cls(len(data["frozen_not_funded"]), epsilon=epsilon)
        machine.phase = Phase(data["phase"])
        machine.frozen_not_funded = np.asarray(data["frozen_not_funded"], dtype=bool)
        machine.frozen_funded_zero = np.asarray(data["frozen_funded_zero"], dtype=bool)
        if data.get("resolution"):
            machine.resolution = Resolution.from_dict(data["resolution"])
        return machine
