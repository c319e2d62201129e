import pytest

from freshroute.common.models import SCORED, UNSCORED, GridConfig, Route
from freshroute.grid.index import GridIndex
from freshroute.grid.processor import route_index
from freshroute.scoring.aggregate import build_aggregate
from freshroute.scoring.overlap import OverlapScorer, breakdown, overlap_score


def _index(config, cells):
    return GridIndex.from_cells(config, cells)


def test_score_is_share_weighted_aggregate_distance(grid_config):
    route = _index(grid_config, [(0, 0, 300.0), (1, 0, 100.0)])
    aggregate = _index(grid_config, [(0, 0, 1000.0), (5, 5, 50.0)])

    assert overlap_score(route, aggregate) == pytest.approx(0.75 * 1000.0)


def test_route_outside_aggregate_scores_zero(grid_config, amsterdam_route, utrecht_route):
    aggregate = build_aggregate([utrecht_route], grid_config)
    assert overlap_score(route_index(amsterdam_route, grid_config), aggregate) == 0.0


def test_empty_aggregate_scores_zero(grid_config, amsterdam_route):
    aggregate = build_aggregate([], grid_config)

    assert aggregate.get_total_distance() == 0
    assert overlap_score(route_index(amsterdam_route, grid_config), aggregate) == 0.0


def test_self_overlap_beats_empty_aggregate(grid_config, amsterdam_route):
    own = route_index(amsterdam_route, grid_config)
    self_score = overlap_score(own, build_aggregate([amsterdam_route], grid_config))
    empty_score = overlap_score(own, build_aggregate([], grid_config))

    assert empty_score == 0.0
    assert self_score > empty_score


def test_score_grows_with_aggregate_distance(grid_config, amsterdam_route):
    own = route_index(amsterdam_route, grid_config)
    once = overlap_score(own, build_aggregate([amsterdam_route], grid_config))
    twice = overlap_score(own, build_aggregate([amsterdam_route, amsterdam_route], grid_config))

    assert twice == pytest.approx(2 * once)


def test_zero_coverage_is_unscored_by_default(grid_config):
    dot = Route.from_coordinates("dot", [(52.3676, 4.9041)])
    scorer = OverlapScorer(build_aggregate([], grid_config))
    result = scorer.score_route(dot)

    assert overlap_score(route_index(dot, grid_config), scorer.aggregate_index) is None
    assert result.score is None
    assert result.status == UNSCORED
    assert not result.is_scored


def test_zero_coverage_legacy_sentinel(grid_config):
    dot = Route.from_coordinates("dot", [(52.3676, 4.9041)])
    scorer = OverlapScorer(build_aggregate([], grid_config), zero_coverage="max_overlap")

    assert scorer.score_route(dot).score == 1.0


def test_unknown_zero_coverage_mode(grid_config):
    with pytest.raises(ValueError):
        OverlapScorer(GridIndex(grid_config), zero_coverage="ignore")


def test_score_route_exposes_cells_breakdown_and_stats(grid_config, amsterdam_route):
    scorer = OverlapScorer(build_aggregate([amsterdam_route], grid_config))
    result = scorer.score_route(amsterdam_route)

    assert result.status == SCORED
    assert result.route_id == "amsterdam-loop"
    assert len(result.cells) == result.stats.total_cells == 2
    assert sum(row.share for row in result.breakdown) == pytest.approx(1.0)
    assert sum(row.contribution for row in result.breakdown) == pytest.approx(result.score)


def test_breakdown_of_empty_route_is_empty(grid_config):
    assert breakdown(GridIndex(grid_config), GridIndex(grid_config)) == []


def test_scoring_rejects_mismatched_grid(grid_config):
    scorer = OverlapScorer(GridIndex(grid_config))
    other = GridIndex(GridConfig(cell_size_km=1.0, reference_point=grid_config.reference_point))
    with pytest.raises(ValueError):
        scorer.score_index(other)


def test_parallel_scoring_matches_sequential(grid_config, amsterdam_route, utrecht_route):
    scorer = OverlapScorer(build_aggregate([amsterdam_route], grid_config))
    routes = [amsterdam_route, utrecht_route, amsterdam_route]

    sequential = scorer.score_routes(routes)
    parallel = scorer.score_routes(routes, max_workers=3)

    assert [r.route_id for r in parallel] == [r.id for r in routes]
    assert [r.score for r in parallel] == [r.score for r in sequential]


def test_scores_keep_route_names_for_repeated_ids(grid_config, amsterdam_route, utrecht_route):
    scorer = OverlapScorer(build_aggregate([amsterdam_route], grid_config))
    first = Route.from_coordinates("x", [(p.lat, p.lon) for p in amsterdam_route.points], name="Canal loop")
    second = Route.from_coordinates("x", [(p.lat, p.lon) for p in utrecht_route.points], name="Utrecht")

    results = scorer.score_routes([first, second])

    assert [(r.route_id, r.name) for r in results] == [("x", "Canal loop"), ("x", "Utrecht")]
    assert results[0].score > 0
    assert results[1].score == 0.0
