"""Tests for settlement after resolution."""

import pytest

from funding_market_sim.errors import InvalidPhaseTransitionError
from funding_market_sim.market.enums import Scenario, Side

FUNDED = Scenario.FUNDED
NOT_FUNDED = Scenario.NOT_FUNDED

OUTCOME = {
    "ascoe": {"funded": 8000},
    "civichat": {"not_funded": 1000},
    "handbook": {"not_funded": 1000},
    "yadokari": {"not_funded": 1000},
}


def _decide_and_resolve(engine, values=OUTCOME):
    engine.decide("admin")
    engine.resolve("admin", values)


def test_winner_up_shares_pay_normalized_value(engine):
    receipt = engine.buy("user1", "ascoe", FUNDED, Side.UP, 10.0)
    _decide_and_resolve(engine)

    payouts = engine.redeem_all()

    account = engine.get_account("user1")
    assert payouts["user1"] == pytest.approx(8.0)
    assert account.balance == pytest.approx(1000.0 - receipt.cost + 8.0)
    assert account.holding(0, FUNDED, Side.UP) == 0.0


def test_down_shares_pay_complement(engine):
    engine.buy("user1", "ascoe", FUNDED, Side.UP, 100.0)
    engine.buy("user2", "civichat", NOT_FUNDED, Side.DOWN, 20.0)
    engine.buy("user3", "ascoe", FUNDED, Side.DOWN, 5.0)
    _decide_and_resolve(engine)

    payouts = engine.redeem_all()

    assert payouts["user2"] == pytest.approx(0.9 * 20.0)
    assert payouts["user3"] == pytest.approx(0.2 * 5.0)


def test_base_pairs_pay_the_realized_scenario(engine):
    engine.buy("user1", "ascoe", FUNDED, Side.UP, 10.0)
    engine.mint("user4", "ascoe", 5.0)
    engine.mint("user4", "handbook", 3.0)
    _decide_and_resolve(engine)

    payouts = engine.redeem_all()

    assert payouts["user4"] == pytest.approx(8.0)
    account = engine.get_account("user4")
    assert account.balance == pytest.approx(1000.0)
    assert account.base_pairs.sum() == 0.0


def test_redeem_twice_pays_nothing(engine):
    engine.buy("user1", "ascoe", FUNDED, Side.UP, 10.0)
    _decide_and_resolve(engine)
    engine.redeem_all()
    balances = {a.id: a.balance for a in engine.accounts}

    assert all(v == 0.0 for v in engine.redeem_all().values())
    assert {a.id: a.balance for a in engine.accounts} == balances


def test_redeem_requires_resolution(engine):
    with pytest.raises(InvalidPhaseTransitionError):
        engine.redeem_all()
    engine.decide("admin")
    with pytest.raises(InvalidPhaseTransitionError):
        engine.redeem_all()


def test_redeem_leaves_markets_alone(engine):
    engine.buy("user1", "ascoe", FUNDED, Side.UP, 10.0)
    _decide_and_resolve(engine)
    before = [p.markets for p in engine.list_projects()]
    engine.redeem_all()
    assert [p.markets for p in engine.list_projects()] == before


def test_unsettled_scenarios_pay_nothing(engine):
    engine.buy("user1", "ascoe", FUNDED, Side.UP, 10.0)
    engine.buy("user2", "ascoe", NOT_FUNDED, Side.UP, 10.0)
    _decide_and_resolve(engine)

    assert engine.redeem_all()["user2"] == 0.0
