"""Location trust and reconciliation engine.

In-process entry points used by attendance check-in/out, onsite-visit
status transitions and address lookup. Every call is stateless: the only
shared data is the read-only region registry.
"""

from .geo.capture import capture_location as _capture_location
from .geo.capture import config_from_settings
from .geo.device import DeviceLocationSource
from .geo.geocoding import GeocodingReconciler
from .geo.jumps import detect_jump as _detect_jump
from .geo.models import (
    CaptureConfig,
    GeocodeResult,
    GPSValidationResult,
    JumpResult,
    LocationSample,
)
from .geo.quality import classify_quality
from .settings import get_settings

__all__ = [
    "capture_location",
    "reconcile_address",
    "reconcile_address_sync",
    "detect_jump",
    "classify_quality",
]


async def capture_location(
    source: DeviceLocationSource | None, config: CaptureConfig | None = None
) -> GPSValidationResult:
    """Capture one fix, using the configured GPS_* settings when no config is given."""
    if config is None:
        config = config_from_settings(get_settings().capture)
    return await _capture_location(source, config)


async def reconcile_address(
    lat: float,
    lng: float,
    expected_region_hint: str | None = None,
    max_distance_km: float | None = None,
    reconciler: GeocodingReconciler | None = None,
) -> GeocodeResult:
    reconciler = reconciler or GeocodingReconciler.from_settings()
    return await reconciler.reconcile_address(lat, lng, expected_region_hint, max_distance_km)


def reconcile_address_sync(
    lat: float,
    lng: float,
    expected_region_hint: str | None = None,
    max_distance_km: float | None = None,
    reconciler: GeocodingReconciler | None = None,
) -> GeocodeResult:
    reconciler = reconciler or GeocodingReconciler.from_settings()
    return reconciler.reconcile_address_sync(lat, lng, expected_region_hint, max_distance_km)


def detect_jump(
    previous: LocationSample,
    current: LocationSample,
    max_speed_kmh: float | None = None,
) -> JumpResult:
    """Jump detection with the deployment's JUMP_MAX_SPEED_KMH cap when none is given."""
    if max_speed_kmh is None:
        max_speed_kmh = get_settings().jump.max_speed_kmh
    return _detect_jump(previous, current, max_speed_kmh)
