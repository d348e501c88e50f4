"""Conditional funding markets: LMSR pricing, lifecycle and simulation."""

import logging

from .errors import MarketError
from .market import Account, Phase, Project, Scenario, Side, TradeKind, TradeReceipt
from .simulation import HistoryRecorder, MarketEngine, TradeSimulator
from .utils import MarketConfig, create_market_from_config

logger = logging.getLogger("funding_market_sim")
logger.setLevel(logging.INFO)

if not logger.hasHandlers():
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

__all__ = [
    "MarketEngine",
    "MarketConfig",
    "create_market_from_config",
    "HistoryRecorder",
    "TradeSimulator",
    "MarketError",
    "Project",
    "Account",
    "TradeReceipt",
    "Scenario",
    "Side",
    "Phase",
    "TradeKind",
]
