from .capture import capture_location, capture_location_with_expected, get_high_accuracy_location
from .coordinates import is_valid_coordinate, validate_against_expected, validate_location
from .device import BlockingDeviceSource, DeviceFix, DeviceLocationSource, PositionOptions
from .distance import distance_km, speed_kmh
from .geocoding import GeocodingReconciler, format_address, reconcile_coordinates
from .jumps import detect_jump
from .locationiq_client import LocationIQClient, ReverseGeocodeResponse
from .models import (
    CaptureConfig,
    CoordinateValidation,
    GeocodeResult,
    GeocodeSource,
    GPSValidationResult,
    JumpResult,
    LocationSample,
    LocationSource,
    QualityTier,
    ValidationResult,
)
from .quality import assess_quality, classify, classify_quality
from .regions import BoundingBox, Region, RegionLoader, RegionRegistry, get_region_registry

__all__ = [
    "BlockingDeviceSource",
    "BoundingBox",
    "CaptureConfig",
    "CoordinateValidation",
    "DeviceFix",
    "DeviceLocationSource",
    "GPSValidationResult",
    "GeocodeResult",
    "GeocodeSource",
    "GeocodingReconciler",
    "JumpResult",
    "LocationIQClient",
    "LocationSample",
    "LocationSource",
    "PositionOptions",
    "QualityTier",
    "Region",
    "RegionLoader",
    "RegionRegistry",
    "ReverseGeocodeResponse",
    "ValidationResult",
    "assess_quality",
    "capture_location",
    "capture_location_with_expected",
    "classify",
    "classify_quality",
    "detect_jump",
    "distance_km",
    "format_address",
    "get_high_accuracy_location",
    "get_region_registry",
    "is_valid_coordinate",
    "reconcile_coordinates",
    "speed_kmh",
    "validate_against_expected",
    "validate_location",
]
