"""Shared test fixtures."""

import pytest

from funding_market_sim.simulation.engine import MarketEngine
from funding_market_sim.utils.config import default_accounts, default_projects


class FakeClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_engine(tmp_path):
    """Factory for the default four-project market: b=180, range [0, 10000], admin + user1..user4."""

    def _make(clock=None, balance: float = 1000.0, **kwargs) -> MarketEngine:
        projects = default_projects(180.0)
        accounts = default_accounts(len(projects), balance, 4)
        kwargs.setdefault("log_dir", tmp_path / "logs")
        return MarketEngine(projects=projects, accounts=accounts, clock=clock or FakeClock(), **kwargs)

    return _make


@pytest.fixture
def engine(make_engine, clock: FakeClock) -> MarketEngine:
    return make_engine(clock)
