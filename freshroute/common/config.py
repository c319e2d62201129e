"""Configuration helpers for the route freshness scorer."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Tuple

import yaml

from .models import DEFAULT_CELL_SIZE_KM, DEFAULT_REFERENCE_POINT, GridConfig

MIN_CELL_SIZE_KM = 0.5
MAX_CELL_SIZE_KM = 50.0
ZERO_COVERAGE_MODES = ("unscored", "max_overlap")


@dataclass(frozen=True)
class GridSettings:
    """Grid resolution and origin shared by every index in a batch."""

    cell_size_km: float = DEFAULT_CELL_SIZE_KM
    reference_point: Tuple[float, float] = DEFAULT_REFERENCE_POINT


@dataclass(frozen=True)
class DatasetSettings:
    """Paths to newline-delimited route JSON dumps."""

    recent_path: str = "./data/recent.jsonl"
    saved_path: str = "./data/saved.jsonl"
    limit: Optional[int] = None


@dataclass(frozen=True)
class OutputSettings:
    """Where the batch job should persist derived tables."""

    base_path: str = "./data/output"


@dataclass(frozen=True)
class BatchSettings:
    """Per-request size guards and local scoring parallelism."""

    max_routes: Optional[int] = None
    max_points: Optional[int] = None
    max_workers: int = 1


@dataclass(frozen=True)
class CacheSettings:
    """Aggregate cache lifetime; None keeps snapshots until invalidated."""

    ttl_seconds: Optional[float] = None
    max_snapshots: int = 8


@dataclass(frozen=True)
class ScoringSettings:
    zero_coverage: str = "unscored"  # unscored | max_overlap


@dataclass(frozen=True)
class SparkSettings:
    master: str = "local[*]"
    app_name: str = "FreshRouteScoring"
    shuffle_partitions: int = 8


@dataclass(frozen=True)
class AppConfig:
    """Aggregated configuration model."""

    grid: GridSettings
    dataset: DatasetSettings
    output: OutputSettings
    batch: BatchSettings
    cache: CacheSettings
    scoring: ScoringSettings
    spark: SparkSettings

    def grid_config(self) -> GridConfig:
        return GridConfig(self.grid.cell_size_km, self.grid.reference_point)


def load_config(path: str | Path) -> AppConfig:
    """Parse a YAML config file into an AppConfig dataclass."""

    return config_from_mapping(_load_yaml(path))


def config_from_mapping(raw: dict[str, Any]) -> AppConfig:
    grid_cfg = raw.get("grid", {}) or {}
    dataset_cfg = raw.get("dataset", {}) or {}
    output_cfg = raw.get("output", {}) or {}
    batch_cfg = raw.get("batch", {}) or {}
    cache_cfg = raw.get("cache", {}) or {}
    scoring_cfg = raw.get("scoring", {}) or {}
    spark_cfg = raw.get("spark", {}) or {}

    grid = GridSettings(
        cell_size_km=float(grid_cfg.get("cell_size_km", DEFAULT_CELL_SIZE_KM)),
        reference_point=_reference_point(grid_cfg.get("reference_point", DEFAULT_REFERENCE_POINT)),
    )
    if not MIN_CELL_SIZE_KM <= grid.cell_size_km <= MAX_CELL_SIZE_KM:
        raise ValueError(
            f"grid.cell_size_km must be between {MIN_CELL_SIZE_KM} and {MAX_CELL_SIZE_KM} km "
            f"(got {grid.cell_size_km})."
        )
    dataset = DatasetSettings(
        recent_path=str(dataset_cfg.get("recent_path", "./data/recent.jsonl")),
        saved_path=str(dataset_cfg.get("saved_path", "./data/saved.jsonl")),
        limit=_optional_int(dataset_cfg.get("limit")),
    )
    output = OutputSettings(base_path=str(output_cfg.get("base_path", "./data/output")))
    batch = BatchSettings(
        max_routes=_optional_int(batch_cfg.get("max_routes")),
        max_points=_optional_int(batch_cfg.get("max_points")),
        max_workers=max(int(batch_cfg.get("max_workers", 1)), 1),
    )
    ttl = cache_cfg.get("ttl_seconds")
    cache = CacheSettings(
        ttl_seconds=float(ttl) if ttl is not None else None,
        max_snapshots=int(cache_cfg.get("max_snapshots", 8)),
    )
    if cache.max_snapshots < 1:
        raise ValueError(f"cache.max_snapshots must be at least 1 (got {cache.max_snapshots}).")
    scoring = ScoringSettings(zero_coverage=str(scoring_cfg.get("zero_coverage", "unscored")))
    if scoring.zero_coverage not in ZERO_COVERAGE_MODES:
        raise ValueError(f"Unknown scoring.zero_coverage: {scoring.zero_coverage}")
    spark = SparkSettings(
        master=str(spark_cfg.get("master", "local[*]")),
        app_name=str(spark_cfg.get("app_name", "FreshRouteScoring")),
        shuffle_partitions=int(spark_cfg.get("shuffle_partitions", 8)),
    )

    config = AppConfig(
        grid=grid,
        dataset=dataset,
        output=output,
        batch=batch,
        cache=cache,
        scoring=scoring,
        spark=spark,
    )
    # Validates the reference point.
    config.grid_config()
    return config


def _reference_point(value: Any) -> Tuple[float, float]:
    if isinstance(value, dict):
        value = (value.get("lat"), value.get("lon"))
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValueError(f"grid.reference_point must be [lat, lon] (got {value!r}).")
    try:
        return float(value[0]), float(value[1])
    except (TypeError, ValueError) as exc:
        raise ValueError(f"grid.reference_point must be numeric (got {value!r}).") from exc


def _optional_int(value: Any) -> Optional[int]:
    return int(value) if value is not None else None


def _load_yaml(path: str | Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a top-level mapping.")
    return data
