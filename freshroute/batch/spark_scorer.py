"""Spark batch scoring: shared aggregate, per-route scores in parallel."""

from __future__ import annotations

import logging
from operator import add
from typing import Dict, Iterable, Iterator, Optional, Tuple

from pyspark import RDD
from pyspark.sql import DataFrame, Row, SparkSession

from freshroute.common.geo import GridProjector
from freshroute.common.models import EXCLUDED, GridConfig, Route, RouteScore
from freshroute.grid.index import GridIndex
from freshroute.grid.processor import iter_segments
from freshroute.ingest.route_filter import BatchLimitError
from freshroute.scoring.overlap import ZERO_COVERAGE_UNSCORED, OverlapScorer

logger = logging.getLogger(__name__)

AGGREGATE_SCHEMA = "cell_x long, cell_y long, distance double"
SCORE_SCHEMA = (
    "route_id string, name string, status string, score double, total_cells long, "
    "total_distance double, average_distance double, max_distance double, error string"
)
ROUTE_CELL_SCHEMA = (
    "route_id string, cell_x long, cell_y long, route_distance double, share double, "
    "aggregate_distance double, contribution double"
)


class SparkOverlapScorer:
    """Builds the recent-activity aggregate and scores saved routes with Spark.

    The aggregate is reduced by cell across the cluster, collected once,
    frozen and broadcast; each saved route is then scored independently.
    """

    def __init__(
        self,
        spark: SparkSession,
        config: GridConfig,
        zero_coverage: str = ZERO_COVERAGE_UNSCORED,
    ) -> None:
        self.spark = spark
        self.config = config
        self.zero_coverage = zero_coverage

    def run(self, recent_rdd: RDD, saved_rdd: RDD) -> Dict[str, DataFrame]:
        aggregate = self.build_aggregate(recent_rdd)
        saved_rdd = saved_rdd.cache()
        scores = self.score_routes(saved_rdd, aggregate).cache()
        return {
            "aggregate_cells": self._aggregate_cells(aggregate),
            "route_scores": self._route_scores(saved_rdd, scores),
            "route_cells": self._route_cells(scores),
        }

    def build_aggregate(self, recent_rdd: RDD) -> GridIndex:
        projector = GridProjector(self.config)
        reduced = (
            recent_rdd.filter(lambda route: route.is_scoreable)
            .flatMap(lambda route: _segment_cells(route, projector))
            .reduceByKey(add)
        )
        cells = [(key[0], key[1], meters) for key, meters in reduced.collect()]
        index = GridIndex.from_cells(self.config, cells).freeze()
        logger.info("Spark aggregate: %d cells, %.0f m", index.get_cell_count(), index.get_total_distance())
        return index

    def score_routes(self, saved_rdd: RDD, aggregate: GridIndex) -> RDD:
        cells_bc = self.spark.sparkContext.broadcast(aggregate.to_dict())
        config = self.config
        zero_coverage = self.zero_coverage
        return saved_rdd.filter(lambda route: route.is_scoreable).mapPartitions(
            lambda routes: _score_partition(routes, cells_bc.value, config, zero_coverage)
        )

    def _aggregate_cells(self, aggregate: GridIndex) -> DataFrame:
        rows = [Row(cell_x=cell.cell_x, cell_y=cell.cell_y, distance=float(cell.distance)) for cell in aggregate]
        return self.spark.createDataFrame(rows, schema=AGGREGATE_SCHEMA)

    def _route_scores(self, saved_rdd: RDD, scores: RDD) -> DataFrame:
        scored = scores.map(_score_row)
        excluded = saved_rdd.filter(lambda route: not route.is_scoreable).map(_excluded_row)
        return self.spark.createDataFrame(scored.union(excluded), schema=SCORE_SCHEMA)

    def _route_cells(self, scores: RDD) -> DataFrame:
        rows = scores.flatMap(
            lambda result: [
                Row(
                    route_id=result.route_id,
                    cell_x=cell.cell_x,
                    cell_y=cell.cell_y,
                    route_distance=float(cell.route_distance),
                    share=float(cell.share),
                    aggregate_distance=float(cell.aggregate_distance),
                    contribution=float(cell.contribution),
                )
                for cell in result.breakdown
            ]
        )
        return self.spark.createDataFrame(rows, schema=ROUTE_CELL_SCHEMA)


def enforce_batch_limits(
    saved_rdd: RDD,
    max_routes: Optional[int] = None,
    max_points: Optional[int] = None,
) -> None:
    """Distributed counterpart of ``limit_batch``: count, then raise if over budget."""

    if max_routes is not None:
        route_count = saved_rdd.count()
        if route_count > max_routes:
            raise BatchLimitError(f"Batch has {route_count} routes; the limit is {max_routes}.")
    if max_points is not None:
        total_points = saved_rdd.map(lambda route: len(route.points)).sum()
        if total_points > max_points:
            raise BatchLimitError(f"Batch has {total_points} points; the limit is {max_points}.")


def _segment_cells(route: Route, projector: GridProjector) -> Iterator[Tuple[Tuple[int, int], float]]:
    for mid_lat, mid_lon, meters in iter_segments(route):
        if meters > 0:
            cell = projector.cell_of(mid_lat, mid_lon)
            yield (cell.cell_x, cell.cell_y), meters


def _score_partition(
    routes: Iterable[Route],
    cells: Dict[Tuple[int, int], float],
    config: GridConfig,
    zero_coverage: str,
) -> Iterator[RouteScore]:
    aggregate = GridIndex.from_cells(config, ((key[0], key[1], meters) for key, meters in cells.items()))
    scorer = OverlapScorer(aggregate.freeze(), zero_coverage=zero_coverage)
    for route in routes:
        yield scorer.score_route(route)


def _score_row(result: RouteScore) -> Row:
    stats = result.stats
    return Row(
        route_id=result.route_id,
        name=result.name,
        status=result.status,
        score=None if result.score is None else float(result.score),
        total_cells=stats.total_cells,
        total_distance=float(stats.total_distance),
        average_distance=float(stats.average_distance),
        max_distance=float(stats.max_distance),
        error=None,
    )


def _excluded_row(route: Route) -> Row:
    return Row(
        route_id=route.id,
        name=route.name,
        status=EXCLUDED,
        score=None,
        total_cells=0,
        total_distance=0.0,
        average_distance=0.0,
        max_distance=0.0,
        error=route.error or "No track points",
    )
