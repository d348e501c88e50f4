"""Exports for the simulation subpackage."""

from .engine import MarketEngine
from .history import HistoryRecorder, ImpactSnapshot, PhaseMarker, ProjectPricePoint
from .simulator import SimulationResult, TradeSimulator, simulation_summary

__all__ = [
    "MarketEngine",
    "HistoryRecorder",
    "ImpactSnapshot",
    "PhaseMarker",
    "ProjectPricePoint",
    "TradeSimulator",
    "SimulationResult",
    "simulation_summary",
]
