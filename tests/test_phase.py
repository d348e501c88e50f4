"""Tests for the decide / resolve lifecycle and freeze enforcement."""

import pytest

from funding_market_sim.errors import (
    InvalidPhaseTransitionError,
    InvalidRequestError,
    MarketClosedError,
    MarketFrozenError,
    SnapshotNotFoundError,
    UnauthorizedError,
    UnknownProjectError,
)
from funding_market_sim.lifecycle.phase import select_winner
from funding_market_sim.market.enums import Phase, Scenario, Side
from funding_market_sim.market.lmsr import PROBABILITY_EPSILON

PROJECT_IDS = ["ascoe", "civichat", "handbook", "yadokari"]

FUNDED = Scenario.FUNDED
NOT_FUNDED = Scenario.NOT_FUNDED


def test_select_winner_ties_go_to_first():
    assert select_winner({"a": 1.0, "b": 3.0, "c": 3.0}, ["a", "b", "c"]) == "b"
    assert select_winner({"a": 0.0, "b": 0.0}, ["b", "a"]) == "b"


def test_decide_pins_and_freezes(engine):
    engine.buy("user1", "civichat", FUNDED, Side.UP, 100.0)
    balances = {a.id: a.balance for a in engine.accounts}

    winner = engine.decide("admin")

    assert winner == "civichat"
    assert engine.phase is Phase.DECIDED
    assert engine.resolution.winner == "civichat"
    assert engine.current_price("civichat", NOT_FUNDED) == pytest.approx(PROBABILITY_EPSILON, rel=1e-6)
    for pid in PROJECT_IDS:
        if pid != winner:
            assert engine.current_price(pid, FUNDED) == pytest.approx(PROBABILITY_EPSILON, rel=1e-6)
            assert engine.is_frozen(pid, FUNDED)
            assert not engine.is_frozen(pid, NOT_FUNDED)
    assert engine.is_frozen("civichat", NOT_FUNDED)
    assert not engine.is_frozen("civichat", FUNDED)
    assert list(engine.gate.frozen_not_funded) == [False, True, False, False]
    assert list(engine.gate.frozen_funded_zero) == [True, False, True, True]
    # Pinning is not charged to anyone.
    assert {a.id: a.balance for a in engine.accounts} == balances


def test_decide_requires_admin(engine):
    with pytest.raises(UnauthorizedError) as exc:
        engine.decide("user1")
    assert exc.value.code == 1001
    assert engine.phase is Phase.OPEN
    assert not engine.gate.frozen_funded_zero.any()


def test_transitions_cannot_skip_or_repeat(engine):
    with pytest.raises(InvalidPhaseTransitionError):
        engine.resolve("admin")
    engine.decide("admin")
    with pytest.raises(InvalidPhaseTransitionError):
        engine.decide("admin")
    engine.resolve("admin")
    with pytest.raises(InvalidPhaseTransitionError):
        engine.resolve("admin")
    assert engine.phase is Phase.RESOLVED


def test_decide_from_recorded_snapshot(engine):
    # Snapshot 0 is the opening state where every impact is zero.
    engine.buy("user1", "yadokari", FUNDED, Side.UP, 50.0)
    assert engine.decide("admin", snapshot_index=0) == "ascoe"


def test_decide_from_missing_snapshot(engine):
    with pytest.raises(SnapshotNotFoundError):
        engine.decide("admin", snapshot_index=42)
    assert engine.phase is Phase.OPEN


def test_frozen_scenarios_reject_trades_in_every_later_phase(engine):
    engine.buy("user1", "handbook", FUNDED, Side.UP, 10.0)
    engine.buy("user2", "ascoe", FUNDED, Side.UP, 20.0)
    engine.decide("admin")

    with pytest.raises(MarketFrozenError):
        engine.buy("user1", "handbook", FUNDED, Side.UP, 1.0)
    with pytest.raises(MarketFrozenError):
        engine.sell("user1", "handbook", FUNDED, Side.UP, 1.0)
    with pytest.raises(MarketFrozenError):
        engine.move_to_target_value("user1", "ascoe", NOT_FUNDED, 4000.0)

    engine.resolve("admin")
    with pytest.raises(MarketFrozenError):
        engine.sell("user1", "handbook", FUNDED, Side.UP, 1.0)


def test_unfrozen_scenarios_trade_until_resolved(engine):
    engine.buy("user2", "ascoe", FUNDED, Side.UP, 20.0)
    engine.decide("admin")

    engine.buy("user1", "ascoe", FUNDED, Side.DOWN, 5.0)
    engine.buy("user1", "civichat", NOT_FUNDED, Side.UP, 5.0)

    engine.resolve("admin")
    with pytest.raises(MarketClosedError):
        engine.buy("user1", "ascoe", FUNDED, Side.DOWN, 1.0)


def test_resolve_fills_defaults_and_rejects_unknown_projects(engine):
    engine.decide("admin")
    with pytest.raises(UnknownProjectError):
        engine.resolve("admin", {"nope": {"funded": 1.0}})
    assert engine.phase is Phase.DECIDED

    resolution = engine.resolve("admin", {"ascoe": {"funded": 8000}})
    assert resolution.value("ascoe", FUNDED) == 8000.0
    assert resolution.value("civichat", NOT_FUNDED) == 5000.0
    assert resolution.value("civichat", FUNDED) is None


@pytest.mark.parametrize(
    "final_values",
    [
        {"ascoe": {"funded": float("nan")}},
        {"ascoe": {"funded": float("inf")}},
        {"civichat": {"not_funded": float("-inf")}},
        {"ascoe": {"funded": "lots"}},
        {"ascoe": {"Funded": 8000.0}},
    ],
)
def test_resolve_rejects_bad_final_values(engine, final_values):
    winner = engine.decide("admin")

    with pytest.raises(InvalidRequestError) as exc:
        engine.resolve("admin", final_values)
    assert exc.value.code == 4002
    assert engine.phase is Phase.DECIDED
    assert engine.resolution.winner == winner
    assert [m.label for m in engine.phase_markers()] == ["Open", "Decision"]

    resolution = engine.resolve("admin", {"ascoe": {"funded": 8000.0}})
    assert resolution.value("ascoe", FUNDED) == 8000.0


def test_phase_markers_are_recorded(engine, clock):
    clock.advance(10)
    engine.decide("admin")
    clock.advance(10)
    engine.resolve("admin")
    labels = [m.label for m in engine.phase_markers()]
    assert labels == ["Open", "Decision", "Resolution"]
    timestamps = [m.timestamp for m in engine.phase_markers()]
    assert timestamps == sorted(timestamps)
