import os
import sys
from pathlib import Path

import pytest
from pyspark.sql import SparkSession


# Ensure the repository root (which contains the `freshroute` package) is importable in tests
# and in the Python workers Spark launches.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
_python_path = os.environ.get("PYTHONPATH", "")
if str(PROJECT_ROOT) not in _python_path.split(os.pathsep):
    os.environ["PYTHONPATH"] = os.pathsep.join(p for p in (str(PROJECT_ROOT), _python_path) if p)

from freshroute.common.models import GridConfig, Route  # noqa: E402

AMSTERDAM = (52.3676, 4.9041)


@pytest.fixture(scope="session")
def spark():
    spark = (
        SparkSession.builder.master("local[1]")
        .appName("freshroute-tests")
        .config("spark.ui.enabled", "false")
        .config("spark.executorEnv.PYTHONPATH", os.environ["PYTHONPATH"])
        .getOrCreate()
    )
    yield spark
    spark.stop()


@pytest.fixture
def grid_config() -> GridConfig:
    return GridConfig(cell_size_km=5.0, reference_point=AMSTERDAM)


@pytest.fixture
def amsterdam_route() -> Route:
    return Route.from_coordinates(
        "amsterdam-loop",
        [(52.3676, 4.9041), (52.4000, 4.9500), (52.4200, 4.9900), (52.3700, 5.0500)],
        folder="recent",
    )


@pytest.fixture
def utrecht_route() -> Route:
    return Route.from_coordinates(
        "utrecht-out-and-back",
        [(52.0907, 5.1214), (52.1000, 5.1600), (52.0907, 5.1214)],
    )
