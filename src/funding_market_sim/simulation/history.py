"""History recording for market runs.

Tracks:
- impact snapshots: funded-minus-not-funded spread per project (decision audit trail)
- price points: implied funded / not-funded values per project
- phase markers: Open / Decision / Resolution timestamps

Snapshots are append-only; ``decide`` can pick a winner from any earlier one.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..errors import SnapshotNotFoundError
from ..market.enums import Scenario
from ..market.models import Project


@dataclass(frozen=True)
class ImpactSnapshot:
    timestamp: float
    impacts: Mapping[str, float]

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "impacts": dict(self.impacts)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ImpactSnapshot":
        return cls(timestamp=float(data["timestamp"]),
                   impacts={k: float(v) for k, v in data["impacts"].items()})


@dataclass(frozen=True)
class ProjectPricePoint:
    timestamp: float
    funded: Mapping[str, float]
    not_funded: Mapping[str, float]

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "funded": dict(self.funded), "not_funded": dict(self.not_funded)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProjectPricePoint":
        return cls(
            timestamp=float(data["timestamp"]),
            funded={k: float(v) for k, v in data["funded"].items()},
            not_funded={k: float(v) for k, v in data["not_funded"].items()},
        )


@dataclass(frozen=True)
class PhaseMarker:
    timestamp: float
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "label": self.label}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PhaseMarker":
        return cls(timestamp=float(data["timestamp"]), label=data["label"])


def impact_snapshot(projects: Sequence[Project], timestamp: float) -> ImpactSnapshot:
    return ImpactSnapshot(timestamp=timestamp, impacts={p.id: p.impact() for p in projects})


@dataclass
class HistoryRecorder:
    """Append-only record of derived prices and phase markers.

    ``interval`` is the spacing, in seconds, used by ``record_if_due`` for
    periodic snapshots driven by an external scheduler.
    """

    log_dir: Path = Path("simulation_logs")
    run_id: str = "default"
    interval: float = 5.0

    def __post_init__(self):
        self.snapshots: List[ImpactSnapshot] = []
        self.price_points: List[ProjectPricePoint] = []
        self.markers: List[PhaseMarker] = []

    @property
    def last_timestamp(self) -> Optional[float]:
        return self.snapshots[-1].timestamp if self.snapshots else None

    def record(self, projects: Sequence[Project], timestamp: float) -> ImpactSnapshot:
        """Append an impact snapshot and a price point for the current prices."""
        snapshot = impact_snapshot(projects, timestamp)
        self.snapshots.append(snapshot)
        self.price_points.append(ProjectPricePoint(
            timestamp=timestamp,
            funded={p.id: p.implied_value(Scenario.FUNDED) for p in projects},
            not_funded={p.id: p.implied_value(Scenario.NOT_FUNDED) for p in projects},
        ))
        return snapshot

    def record_if_due(self, projects: Sequence[Project], timestamp: float) -> Optional[ImpactSnapshot]:
        last = self.last_timestamp
        if last is not None and timestamp - last < self.interval:
            return None
        return self.record(projects, timestamp)

    def mark(self, label: str, timestamp: float) -> PhaseMarker:
        marker = PhaseMarker(timestamp=timestamp, label=label)
        self.markers.append(marker)
        return marker

    def snapshot(self, index: int) -> ImpactSnapshot:
        if not 0 <= index < len(self.snapshots):
            raise SnapshotNotFoundError(index, len(self.snapshots))
        return self.snapshots[index]

    def clear(self) -> None:
        self.snapshots.clear()
        self.price_points.clear()
        self.markers.clear()

    def to_dataframe(self) -> pd.DataFrame:
        """Long-form table: one row per (snapshot, project)."""
        rows = []
        for i, (snap, point) in enumerate(zip(self.snapshots, self.price_points)):
            for project_id, impact in snap.impacts.items():
                rows.append({
                    "snapshot": i,
                    "timestamp": snap.timestamp,
                    "project_id": project_id,
                    "impact": impact,
                    "funded_value": point.funded.get(project_id),
                    "not_funded_value": point.not_funded.get(project_id),
                })
        columns = ["snapshot", "timestamp", "project_id", "impact", "funded_value", "not_funded_value"]
        return pd.DataFrame(rows, columns=columns)

    def markers_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame([m.to_dict() for m in self.markers], columns=["timestamp", "label"])

    def save_to_csv(self) -> Dict[str, Path]:
        """Save history and markers as CSV files.

        Returns:
            Dictionary mapping data type to file path
        """
        self.log_dir.mkdir(parents=True, exist_ok=True)
        saved_files = {}

        if self.snapshots:
            history_path = self.log_dir / f"{self.run_id}_history.csv"
            self.to_dataframe().to_csv(history_path, index=False)
            saved_files["history"] = history_path

        if self.markers:
            markers_path = self.log_dir / f"{self.run_id}_markers.csv"
            self.markers_dataframe().to_csv(markers_path, index=False)
            saved_files["markers"] = markers_path

        return saved_files

    def save_to_json(self) -> Dict[str, Path]:
        """Save the full history record as one JSON file."""
        self.log_dir.mkdir(parents=True, exist_ok=True)
        path = self.log_dir / f"{self.run_id}_history.json"
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
        return {"history": path}

    def get_summary_stats(self) -> Dict[str, Any]:
        """Per-project impact statistics across all snapshots."""
        stats: Dict[str, Any] = {
            "run_id": self.run_id,
            "num_snapshots": len(self.snapshots),
            "num_markers": len(self.markers),
        }
        if not self.snapshots:
            return stats

        project_ids = list(self.snapshots[-1].impacts)
        series = np.array([[s.impacts.get(pid, np.nan) for pid in project_ids] for s in self.snapshots])
        stats["projects"] = {
            pid: {
                "initial_impact": float(series[0, j]),
                "final_impact": float(series[-1, j]),
                "mean_impact": float(np.nanmean(series[:, j])),
                "min_impact": float(np.nanmin(series[:, j])),
                "max_impact": float(np.nanmax(series[:, j])),
            }
            for j, pid in enumerate(project_ids)
        }
        stats["leader"] = project_ids[int(np.nanargmax(series[-1]))]
        return stats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshots": [s.to_dict() for s in self.snapshots],
            "price_points": [p.to_dict() for p in self.price_points],
            "markers": [m.to_dict() for m in self.markers],
        }

    def load_dict(self, data: Mapping[str, Any]) -> None:
        self.snapshots = [ImpactSnapshot.from_dict(s) for s in data.get("snapshots", [])]
        self.price_points = [ProjectPricePoint.from_dict(p) for p in data.get("price_points", [])]
        self.markers = [PhaseMarker.from_dict(m) for m in data.get("markers", [])]
