"""Structural coordinate checks and per-sample validation.

`is_valid_coordinate` is the hard gate run before any distance math. It
never consults the region registry; region containment is a separate,
softer check that only produces warnings.
"""

import math
import time

from .distance import distance_km
from .models import CoordinateCheck, LocationSample, LocationSource, ValidationResult
from .regions import BoundingBox, get_region_registry

PREFERRED_ACCURACY_M = 100.0
MAX_FUTURE_SKEW_MS = 5 * 60 * 1000
STALE_SAMPLE_MS = 10 * 60 * 1000


def coordinate_problem(lat: float, lng: float) -> str | None:
    """Describe why a coordinate pair is structurally invalid, or None if it is valid."""
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return "Invalid GPS coordinates: latitude/longitude must be finite numbers"
    if not -90.0 <= lat <= 90.0:
        return f"Invalid GPS coordinates: latitude {lat} is outside [-90, 90]"
    if not -180.0 <= lng <= 180.0:
        return f"Invalid GPS coordinates: longitude {lng} is outside [-180, 180]"
    if lat == 0 and lng == 0:
        return "Invalid GPS coordinates: Null Island (0, 0) indicates a failed fix"
    return None


def is_valid_coordinate(lat: float, lng: float) -> bool:
    """Reject NaN/inf, out-of-range values and the (0, 0) sentinel."""
    return coordinate_problem(lat, lng) is None


def validate_location(
    sample: LocationSample,
    service_region: BoundingBox | None = None,
    now_millis: int | None = None,
) -> ValidationResult:
    """Validate a sample, separating hard errors from advisory warnings.

    Args:
        sample: The location sample to check
        service_region: Bounding box the sample is expected in. Defaults to
            the registry's country box. Being outside it is only a warning.
        now_millis: Reference "now" in epoch milliseconds (defaults to the wall clock)

    Returns:
        ValidationResult with is_valid False only when errors were found
    """
    errors: list[str] = []
    warnings: list[str] = []

    problem = coordinate_problem(sample.latitude, sample.longitude)
    if problem:
        errors.append(problem)

    if sample.accuracy < 0:
        errors.append(f"Accuracy must be non-negative, got {sample.accuracy}")
    elif sample.accuracy > PREFERRED_ACCURACY_M:
        warnings.append(
            f"GPS accuracy is {sample.accuracy:.0f}m (prefer <{PREFERRED_ACCURACY_M:.0f}m)"
        )

    now = now_millis if now_millis is not None else int(time.time() * 1000)
    age_ms = now - sample.timestamp_millis
    if age_ms < -MAX_FUTURE_SKEW_MS:
        errors.append("Location timestamp is in the future")
    elif age_ms > STALE_SAMPLE_MS:
        warnings.append(f"Location is {age_ms // 60_000} minutes old")

    if not problem:
        bounds = service_region or get_region_registry().country_box
        if not bounds.contains(sample.latitude, sample.longitude):
            warnings.append("Location is outside the expected service region")

    if sample.source is LocationSource.MANUAL:
        warnings.append("Location was entered manually and is not device-verified")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def validate_against_expected(
    sample: LocationSample,
    expected_lat: float | None = None,
    expected_lng: float | None = None,
    max_distance_km: float = 5.0,
) -> CoordinateCheck:
    """Check a sample against an expected position (e.g. the customer site)."""
    warnings: list[str] = []

    if not is_valid_coordinate(sample.latitude, sample.longitude):
        return CoordinateCheck(is_valid=False, warnings=["Invalid GPS coordinates"])

    if sample.accuracy > PREFERRED_ACCURACY_M:
        warnings.append(
            f"GPS accuracy is {sample.accuracy:.0f}m (prefer <{PREFERRED_ACCURACY_M:.0f}m)"
        )

    if expected_lat is None or expected_lng is None:
        return CoordinateCheck(is_valid=True, warnings=warnings)

    if not is_valid_coordinate(expected_lat, expected_lng):
        warnings.append("Expected position is not a valid coordinate; skipped distance check")
        return CoordinateCheck(is_valid=True, warnings=warnings)

    distance = distance_km(sample.latitude, sample.longitude, expected_lat, expected_lng)
    if distance > max_distance_km:
        warnings.append(
            f"Location is {distance:.2f}km from expected position (max: {max_distance_km}km)"
        )
        return CoordinateCheck(is_valid=False, distance_km=distance, warnings=warnings)

    return CoordinateCheck(is_valid=True, distance_km=distance, warnings=warnings)
