"""Final settlement of share holdings and base pairs after resolution."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

from ..market.enums import Scenario, Side
from ..market.lmsr import PROBABILITY_EPSILON, normalized_value
from ..market.models import Account, Project, Resolution

logger = logging.getLogger(__name__)


def settlement_value(project: Project, resolution: Resolution, scenario: Scenario,
                     epsilon: float = PROBABILITY_EPSILON) -> Optional[float]:
    """Normalized outcome in [0, 1] for a settled scenario, None if it does not settle.

    Only the winner's funded market and the other projects' not-funded
    markets settle.
    """
    is_winner = project.id == resolution.winner
    if (scenario is Scenario.FUNDED) != is_winner:
        return None
    value = resolution.value(project.id, scenario)
    if value is None:
        value = project.midpoint
    return normalized_value(value, project.range_min, project.range_max, epsilon)


def redeem_account(account: Account, projects: Sequence[Project], resolution: Resolution,
                   epsilon: float = PROBABILITY_EPSILON) -> float:
    """Pay out and clear every holding and base pair of one account."""
    payout = 0.0
    for idx, project in enumerate(projects):
        for scenario in Scenario:
            v = settlement_value(project, resolution, scenario, epsilon)
            if v is None:
                continue
            for side in Side:
                shares = account.holding(idx, scenario, side)
                if shares > 0:
                    payout += (v if side is Side.UP else 1.0 - v) * shares
                    account.holdings[idx, scenario.index, side.index] = 0.0

        paying = Scenario.FUNDED if project.id == resolution.winner else Scenario.NOT_FUNDED
        base = account.base_pair(idx, paying)
        if base > 0:
            payout += base
        account.base_pairs[idx, :] = 0.0

    account.balance += payout
    return payout


def redeem_all(accounts: Sequence[Account], projects: Sequence[Project], resolution: Resolution,
               epsilon: float = PROBABILITY_EPSILON) -> Dict[str, float]:
    """Settle every account. A second call pays nothing since holdings are zeroed."""
    payouts = {a.id: redeem_account(a, projects, resolution, epsilon) for a in accounts}
    logger.info("Redeemed %d accounts, total payout %.4f", len(payouts), sum(payouts.values()))
    return payouts
