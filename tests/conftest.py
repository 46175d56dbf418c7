"""Shared fixtures for the habitability test suite.

Provides a Flask test client wired to the small reference dataset under
tests/fixtures, plus builders for in-memory datasets used by the scorer
unit tests.
"""

import os

import pytest

FIXTURES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fixtures")

# Point the data dir at the fixtures BEFORE importing app (it loads on import)
os.environ["HABITABILITY_DATA_DIR"] = FIXTURES_DIR
# Keep the limiter out of the way of the test client
os.environ["RATE_LIMIT_DEFAULT"] = "10000/minute"
os.environ.pop("SENTRY_DSN", None)

from app import app, init_scorer  # noqa: E402
from spatial_data import SpatialDataset, ZonePolygon  # noqa: E402


def square(lon0, lat0, size=0.01):
    """Closed (lon, lat) ring for an axis-aligned square with SW corner (lon0, lat0)."""
    return (
        (lon0, lat0),
        (lon0 + size, lat0),
        (lon0 + size, lat0 + size),
        (lon0, lat0 + size),
        (lon0, lat0),
    )


def zone(aspect, ring, value, metric_key=None):
    """ZonePolygon whose metric key defaults to its aspect."""
    return ZonePolygon(
        aspect=aspect,
        ring=ring,
        metric_key=metric_key or aspect,
        value=value,
    )


@pytest.fixture()
def empty_dataset():
    return SpatialDataset()


@pytest.fixture()
def client():
    """Flask test client backed by the fixture dataset.

    Not used as a context manager, so teardown (and the trace summary log)
    runs as soon as each request finishes.
    """
    app.config["TESTING"] = True
    init_scorer(FIXTURES_DIR)
    yield app.test_client()
    init_scorer(FIXTURES_DIR)
