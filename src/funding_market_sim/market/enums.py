"""Closed enumerations of the conditional funding market.

Scenario and Side double as array axes: ``index`` is the position used in
account holdings and base-pair arrays.
"""

from enum import Enum

from ..errors import InvalidRequestError


class Scenario(str, Enum):
    FUNDED = "funded"
    NOT_FUNDED = "not_funded"

    @property
    def index(self) -> int:
        return 0 if self is Scenario.FUNDED else 1


class Side(str, Enum):
    UP = "UP"
    DOWN = "DOWN"

    @property
    def index(self) -> int:
        return 0 if self is Side.UP else 1


class Phase(str, Enum):
    OPEN = "open"
    DECIDED = "decided"
    RESOLVED = "resolved"


class TradeKind(str, Enum):
    BUY = "buy"
    SELL = "sell"
    TARGET = "target"
    SIMULATED_BUY = "simulated_buy"
    SIMULATED_SELL = "simulated_sell"


def parse_scenario(value) -> Scenario:
    try:
        return Scenario(value)
    except ValueError:
        raise InvalidRequestError("scenario", value) from None


def parse_side(value) -> Side:
    try:
        return Side(value)
    except ValueError:
        raise InvalidRequestError("side", value) from None
