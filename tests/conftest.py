import os

# The reconciler refuses to call the provider without a key.
os.environ.setdefault("LOCATIONIQ_API_KEY", "test-api-key")

from collections.abc import Callable
from pathlib import Path

import pytest

from location_trust.geo.models import LocationSample, LocationSource
from location_trust.geo.regions import (
    RegionLoader,
    RegionRegistry,
    reset_region_registry,
    set_regions_path,
)

BASE_TIMESTAMP_MS = 1_700_000_000_000


@pytest.fixture
def regions_path() -> Path:
    """Path to the test regions fixture file."""
    return Path(__file__).parent / "fixtures" / "regions.json"


@pytest.fixture(autouse=True)
def setup_region_registry(regions_path: Path):
    """Point the process-wide registry at the fixture file and reset after each test."""
    reset_region_registry()
    set_regions_path(regions_path)
    yield
    reset_region_registry()


@pytest.fixture
def registry(regions_path: Path) -> RegionRegistry:
    return RegionLoader(regions_path).load()


@pytest.fixture
def make_sample() -> Callable[..., LocationSample]:
    """Factory for samples; offsets are minutes after a fixed base timestamp."""

    def _make_sample(
        lat: float = 19.0760,
        lng: float = 72.8777,
        accuracy: float = 8.0,
        minutes: float = 0.0,
        source: LocationSource = LocationSource.GPS,
    ) -> LocationSample:
        return LocationSample(
            latitude=lat,
            longitude=lng,
            accuracy=accuracy,
            timestamp_millis=BASE_TIMESTAMP_MS + int(minutes * 60_000),
            source=source,
        )

    return _make_sample
