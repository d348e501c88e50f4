"""Decision, resolution and redemption."""

from .phase import PhaseStateMachine, select_winner
from .redemption import redeem_account, redeem_all, settlement_value

__all__ = [
    "PhaseStateMachine",
    "select_winner",
    "redeem_account",
    "redeem_all",
    "settlement_value",
]
