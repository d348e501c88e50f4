"""Base-pair issuer: mint and merge "if funded" / "if not funded" token pairs.

Both sides of a pair move together, so ``funded + not_funded`` changes only by
twice the minted or merged amount and the two sides stay equal in every
mint/merge. Market state is never touched.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from ..errors import InsufficientBalanceError, InvalidAmountError
from .enums import Scenario
from .models import Account

logger = logging.getLogger(__name__)


def mint(account: Account, project_index: int, amount: float) -> float:
    """Convert ``amount`` of cash into one funded and one not-funded token each."""
    if not (amount > 0 and math.isfinite(amount)):
        raise InvalidAmountError("amount", amount)
    if account.balance < amount:
        raise InsufficientBalanceError(account.id, amount, account.balance)

    account.balance -= amount
    account.base_pairs[project_index, :] += amount
    logger.debug("Minted %.4f base pairs for %s in project #%d", amount, account.id, project_index)
    return amount


def mergeable(account: Account, project_index: int) -> float:
    return min(
        account.base_pair(project_index, Scenario.FUNDED),
        account.base_pair(project_index, Scenario.NOT_FUNDED),
    )


def merge(account: Account, project_index: int, amount: Optional[float] = None) -> float:
    """Burn matched pairs back into cash. Merges everything possible when ``amount`` is None."""
    if amount is not None and not (amount > 0 and math.isfinite(amount)):
        raise InvalidAmountError("amount", amount)
    available = mergeable(account, project_index)
    merged = available if amount is None else min(amount, available)
    if not merged > 0:
        raise InvalidAmountError("amount", merged)

    account.base_pairs[project_index, :] -= merged
    account.balance += merged
    logger.debug("Merged %.4f base pairs for %s in project #%d", merged, account.id, project_index)
    return merged
