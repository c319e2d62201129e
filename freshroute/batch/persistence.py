"""Parquet output for the scoring job."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict

from pyspark.sql import DataFrame

from freshroute.common.models import GridConfig

logger = logging.getLogger(__name__)

SCORE_TABLES = ("aggregate_cells", "route_scores", "route_cells")

# route_scores is split by status so unscored/excluded rows can be read alone.
PARTITION_COLUMNS = {"route_scores": ["status"]}


def grid_folder(config: GridConfig) -> str:
    """Folder name that pins a run's tables to the grid they were built on."""

    ref_lat, ref_lon = config.reference_point
    return f"grid_{config.cell_size_km:g}km_{ref_lat:.4f}_{ref_lon:.4f}"


class ScoreTableWriter:
    """Writes the ``SparkOverlapScorer.run`` tables under one grid folder."""

    def __init__(self, base_path: str, config: GridConfig) -> None:
        self.base_path = Path(base_path)
        self.config = config

    @property
    def target_root(self) -> Path:
        return self.base_path / grid_folder(self.config)

    def write(self, tables: Dict[str, DataFrame]) -> Dict[str, Path]:
        unknown = sorted(set(tables) - set(SCORE_TABLES))
        if unknown:
            raise ValueError(f"Unknown score tables: {', '.join(unknown)}")

        self.target_root.mkdir(parents=True, exist_ok=True)
        written: Dict[str, Path] = {}
        for name in SCORE_TABLES:
            frame = tables.get(name)
            if frame is None:
                continue
            target = self.target_root / name
            writer = frame.write.mode("overwrite")
            if name in PARTITION_COLUMNS:
                writer = writer.partitionBy(*PARTITION_COLUMNS[name])
            writer.parquet(str(target))
            written[name] = target
        logger.info("Wrote %s to %s", ", ".join(written), self.target_root)
        return written
