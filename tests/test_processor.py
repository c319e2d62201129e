import pytest

from freshroute.common.geo import haversine_m
from freshroute.common.models import Route, RoutePoint
from freshroute.grid.index import GridIndex
from freshroute.grid.processor import grid_stats, iter_segments, process_route, process_routes, route_index


def test_two_point_route_lands_in_one_cell(grid_config):
    route = Route.from_coordinates("short", [(52.3676, 4.9041), (52.4000, 4.9500)])
    index = route_index(route, grid_config)

    assert index.get_cell_count() == 1
    assert index.get_distance(0, 0) == pytest.approx(haversine_m(52.3676, 4.9041, 52.4000, 4.9500))
    assert index.get_total_distance() == pytest.approx(route.total_distance)


def test_single_point_route_contributes_nothing(grid_config):
    index = route_index(Route.from_coordinates("dot", [(52.3676, 4.9041)]), grid_config)
    assert index.get_cell_count() == 0


def test_empty_route_contributes_nothing(grid_config):
    index = GridIndex(grid_config)
    process_route(Route(id="empty"), index)
    process_route([], index)
    assert index.get_cell_count() == 0


def test_segments_attributed_to_midpoint_cells(grid_config, amsterdam_route):
    index = route_index(amsterdam_route, grid_config)

    assert index.get_cell_count() == 2
    assert index.get_distance(1, 0) == pytest.approx(haversine_m(52.4200, 4.9900, 52.3700, 5.0500))
    assert index.get_total_distance() == pytest.approx(amsterdam_route.total_distance)


def test_bare_coordinates_match_prepared_route(grid_config, amsterdam_route):
    coordinates = [(p.lat, p.lon) for p in amsterdam_route.points]
    from_pairs = route_index(coordinates, grid_config)
    from_route = route_index(amsterdam_route, grid_config)

    assert from_pairs.to_dict().keys() == from_route.to_dict().keys()
    for key, meters in from_route.to_dict().items():
        assert from_pairs.to_dict()[key] == pytest.approx(meters)


def test_cached_segment_values_are_reused(grid_config):
    points = [
        RoutePoint(52.0, 4.0),
        RoutePoint(52.5, 4.5, distance_from_prev=999.0, midpoint=(52.38, 4.93)),
    ]
    segments = list(iter_segments(points))
    assert segments == [(52.38, 4.93, 999.0)]

    index = route_index(points, grid_config)
    assert index.get_distance(0, 0) == 999.0


def test_route_from_coordinates_caches_derived_fields():
    route = Route.from_coordinates("r", [(52.0, 4.0, 3.5), (52.1, 4.2)])

    first, second = route.points
    assert first.distance_from_prev == 0.0
    assert first.midpoint is None
    assert first.elevation == 3.5
    assert second.distance_from_prev == pytest.approx(haversine_m(52.0, 4.0, 52.1, 4.2))
    assert second.midpoint == pytest.approx((52.05, 4.1))
    assert route.total_distance == second.distance_from_prev
    assert route.max_elevation == 3.5


def test_process_routes_resets_before_accumulating(grid_config, amsterdam_route, utrecht_route):
    index = GridIndex(grid_config)
    index.add_distance(60.0, 10.0, 1234.0)

    process_routes([amsterdam_route, utrecht_route], index)

    assert index.get_distance(*index.cell_of(60.0, 10.0)) == 0.0
    assert index.get_cell_count() == 3


def test_disjoint_routes_sum_cell_counts(grid_config, amsterdam_route, utrecht_route):
    separate = route_index(amsterdam_route, grid_config).get_cell_count() + route_index(
        utrecht_route, grid_config
    ).get_cell_count()
    combined = GridIndex(grid_config)
    process_routes([amsterdam_route, utrecht_route], combined)

    assert combined.get_cell_count() == separate


def test_grid_stats(grid_config, amsterdam_route):
    index = route_index(amsterdam_route, grid_config)
    stats = grid_stats(index)

    assert stats.total_cells == 2
    assert stats.total_distance == pytest.approx(amsterdam_route.total_distance)
    assert stats.average_distance == pytest.approx(stats.total_distance / 2)
    assert stats.max_distance == max(cell.distance for cell in index)
