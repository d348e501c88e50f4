"""End-to-end demo of a conditional funding market.

Run with:

    PYTHONPATH=src python examples/demo_market.py

Builds the default four-project market from config.env, lets a few traders
express views, runs the random simulator, decides the funding winner,
resolves, redeems and saves both the market record and its history.
"""

from __future__ import annotations

from funding_market_sim import MarketConfig, Scenario, Side, create_market_from_config
from funding_market_sim.data import JsonFileStore
from funding_market_sim.errors import MarketError
from funding_market_sim.simulation import MarketEngine, simulation_summary


def print_board(engine: MarketEngine) -> None:
    print(f"{'project':<10} {'funded':>10} {'not funded':>12} {'impact':>10}")
    for project in engine.list_projects():
        print(
            f"{project.id:<10} "
            f"{project.implied_value(Scenario.FUNDED):>10.1f} "
            f"{project.implied_value(Scenario.NOT_FUNDED):>12.1f} "
            f"{project.impact():>10.1f}"
        )


def main() -> None:
    config = MarketConfig()
    engine = create_market_from_config(config)

    print("=" * 60)
    print("1. Traders express views")
    print("=" * 60)
    engine.move_to_target_value("user1", "civichat", Scenario.FUNDED, 6500.0)
    engine.buy_with_budget("user2", "ascoe", Scenario.FUNDED, Side.UP, 80.0)
    engine.buy("user3", "handbook", Scenario.NOT_FUNDED, Side.UP, 40.0)
    engine.mint("user4", "yadokari", 25.0)
    quote = engine.quote_budget("yadokari", Scenario.FUNDED, Side.UP, 50.0, projected_value=7000.0)
    print(f"Quote: {quote.shares:.2f} shares for {quote.cost:.2f}, return {quote.return_pct:.1f}%")

    try:
        engine.buy("user1", "ascoe", Scenario.FUNDED, Side.UP, 10_000)
    except MarketError as e:
        print(f"Rejected [{e.code}]: {e.message}")

    print_board(engine)

    print("\n" + "=" * 60)
    print("2. Random trading")
    print("=" * 60)
    result = engine.simulate(1000, seed=42)
    for key, value in simulation_summary(result).items():
        print(f"  {key}: {value}")
    print_board(engine)

    print("\n" + "=" * 60)
    print("3. Decision, resolution, redemption")
    print("=" * 60)
    winner = engine.decide("admin")
    print(f"Funding winner: {winner}")
    engine.resolve("admin", {winner: {"funded": 7200.0}})
    for account_id, payout in engine.redeem_all().items():
        print(f"  {account_id}: +{payout:.2f} -> {engine.get_account(account_id).balance:.2f}")

    store = JsonFileStore(config.store_dir)
    key = engine.save(store)
    print(f"\nSaved market record under {key} in {config.store_dir}")
    if config.save_history_csv:
        for name, path in engine.save_history().items():
            print(f"  {name}: {path}")

    stats = engine.history_recorder.get_summary_stats()
    print(f"Snapshots: {stats['num_snapshots']}, leader at close: {stats.get('leader')}")


if __name__ == "__main__":
    main()
