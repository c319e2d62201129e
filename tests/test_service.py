import pytest

from freshroute.common.config import config_from_mapping
from freshroute.common.models import UNSCORED, Route
from freshroute.ingest.route_filter import BatchLimitError, RouteFilters
from freshroute.scoring.service import RouteScoringService


@pytest.fixture
def app_config():
    return config_from_mapping(
        {
            "grid": {"cell_size_km": 5, "reference_point": [52.3676, 4.9041]},
            "batch": {"max_routes": 10, "max_workers": 2},
        }
    )


def test_service_ranks_fresh_routes_first(app_config, amsterdam_route, utrecht_route):
    calls = []

    def recent_loader(config):
        calls.append(config)
        return [amsterdam_route]

    service = RouteScoringService(app_config, recent_loader)
    dot = Route.from_coordinates("dot", [(52.3676, 4.9041)])
    broken = Route.failed("broken", "Failed to parse GPX")

    result = service.score([amsterdam_route, dot, utrecht_route, broken])

    assert [r.route_id for r in result.scores] == ["utrecht-out-and-back", "amsterdam-loop", "dot"]
    assert result.scores[0].score == 0.0
    assert result.scores[1].score > 0
    assert result.scores[2].status == UNSCORED
    assert [r.id for r in result.excluded] == ["broken"]
    assert result.aggregate_stats.total_cells == 2

    service.score([utrecht_route])
    assert len(calls) == 1

    service.on_sync_completed()
    again = service.score([utrecht_route])
    assert len(calls) == 2
    assert again.aggregate_version > result.aggregate_version


def test_service_applies_filters(app_config, amsterdam_route, utrecht_route):
    service = RouteScoringService(app_config, lambda config: [])
    result = service.score([amsterdam_route, utrecht_route], filters=RouteFilters(distance_min_km=10.0))

    assert [r.route_id for r in result.scores] == ["amsterdam-loop"]


def test_service_enforces_batch_limit(app_config, amsterdam_route):
    service = RouteScoringService(app_config, lambda config: [])
    with pytest.raises(BatchLimitError):
        service.score([amsterdam_route] * 11)
