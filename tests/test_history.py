"""Tests for history snapshots, markers and export."""

import json

import pandas as pd
import pytest

from funding_market_sim.errors import SnapshotNotFoundError
from funding_market_sim.market.enums import Scenario, Side
from funding_market_sim.simulation.history import HistoryRecorder


def test_opening_snapshot_and_event_recording(engine):
    assert len(engine.history()) == 1
    assert set(engine.history()[0].impacts.values()) == {0.0}

    engine.buy("user1", "ascoe", Scenario.FUNDED, Side.UP, 40.0)
    engine.buy("user1", "ascoe", Scenario.NOT_FUNDED, Side.UP, 10.0)

    history = engine.history()
    assert len(history) == 3
    assert history[-1].impacts["ascoe"] == pytest.approx(engine.current_impact("ascoe"))
    assert len(engine.price_history()) == 3


def test_history_readers_get_copies(engine):
    engine.history().clear()
    assert len(engine.history()) == 1


def test_record_if_due_honors_interval(engine, clock):
    assert engine.record_if_due() is None
    clock.advance(4.9)
    assert engine.record_if_due() is None
    clock.advance(0.2)
    assert engine.record_if_due() is not None
    assert len(engine.history()) == 2


def test_snapshot_lookup(engine):
    recorder = engine.history_recorder
    assert recorder.snapshot(0) is engine.history()[0]
    with pytest.raises(SnapshotNotFoundError) as exc:
        recorder.snapshot(1)
    assert exc.value.available == 1
    with pytest.raises(SnapshotNotFoundError):
        recorder.snapshot(-1)


def test_dataframe_is_long_form(engine):
    engine.buy("user2", "civichat", Scenario.FUNDED, Side.UP, 25.0)
    df = engine.history_recorder.to_dataframe()
    assert isinstance(df, pd.DataFrame)
    assert len(df) == 2 * 4
    row = df[(df["snapshot"] == 1) & (df["project_id"] == "civichat")].iloc[0]
    assert row["funded_value"] == pytest.approx(engine.current_value("civichat", Scenario.FUNDED))


def test_save_history_files(engine):
    engine.buy("user2", "civichat", Scenario.FUNDED, Side.UP, 25.0)
    engine.decide("admin")

    files = engine.save_history()

    assert files["history"].exists()
    assert files["markers"].exists()
    assert len(pd.read_csv(files["history"])) == len(engine.history()) * 4
    with open(files["history_json"]) as f:
        data = json.load(f)
    assert [m["label"] for m in data["markers"]] == ["Open", "Decision"]


def test_summary_stats(engine):
    engine.buy("user3", "handbook", Scenario.FUNDED, Side.UP, 60.0)
    stats = engine.history_recorder.get_summary_stats()
    assert stats["num_snapshots"] == 2
    assert stats["leader"] == "handbook"
    assert stats["projects"]["handbook"]["initial_impact"] == 0.0
    assert stats["projects"]["handbook"]["max_impact"] > 0.0


def test_empty_recorder(tmp_path):
    recorder = HistoryRecorder(log_dir=tmp_path)
    assert recorder.last_timestamp is None
    assert recorder.get_summary_stats()["num_snapshots"] == 0
    assert recorder.save_to_csv() == {}
    assert recorder.to_dataframe().empty
