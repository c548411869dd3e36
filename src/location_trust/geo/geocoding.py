"""Reverse geocoding with coordinate reconciliation.

A provider address is never trusted on its name alone: two places can
share a name in different regions, so the coordinates the provider
reports for the address are compared with the input coordinates before
the address is marked valid. Geocoding is best-effort. Every provider
failure becomes a FALLBACK result carrying the formatted input
coordinates, and nothing is raised to the caller.
"""

import asyncio
import logging
from typing import Any, Protocol

from location_trust.core.exceptions import (
    ConfigurationError,
    LocationTrustError,
    NetworkError,
    ProviderAuthError,
    ProviderTimeoutError,
    RateLimitedError,
    ServiceUnavailableError,
)
from location_trust.settings import Settings, get_settings

from .coordinates import coordinate_problem
from .distance import distance_km
from .locationiq_client import LocationIQClient, ReverseGeocodeResponse
from .models import CoordinateValidation, GeocodeResult, GeocodeSource
from .regions import BoundingBox, Region, RegionRegistry, get_region_registry

logger = logging.getLogger(__name__)

DEFAULT_MAX_DISTANCE_KM = 5.0
COLLISION_DISTANCE_KM = 50.0

ADDRESS_COMPONENT_ORDER: tuple[str | tuple[str, ...], ...] = (
    "house_number",
    "road",
    "neighbourhood",
    "suburb",
    ("village", "town", "city"),
    "state",
    "postcode",
    "country",
)

PROVIDER_UNAVAILABLE_WARNING = "Geocoding service unavailable - using coordinates only"
NO_ADDRESS_MESSAGE = "No valid address found in geocoding response"
NO_COORDINATES_WARNING = "Geocoding service did not return coordinates"

# Most specific first: ProviderTimeoutError is also a NetworkError
_ERROR_MESSAGES: tuple[tuple[type[Exception], str], ...] = (
    (ProviderAuthError, "Invalid geocoding API key"),
    (RateLimitedError, "Geocoding API rate limit exceeded"),
    (ServiceUnavailableError, "Geocoding service temporarily unavailable"),
    (ProviderTimeoutError, "Request timeout - geocoding service too slow"),
    (NetworkError, "Network error: Unable to reach geocoding service"),
)


class GeocodingProvider(Protocol):
    timeout: float

    async def reverse(
        self,
        lat: float,
        lng: float,
        bounding_box: BoundingBox,
        country_code: str | None = None,
    ) -> ReverseGeocodeResponse: ...

    def reverse_sync(
        self,
        lat: float,
        lng: float,
        bounding_box: BoundingBox,
        country_code: str | None = None,
    ) -> ReverseGeocodeResponse: ...


def fallback_address(lat: float, lng: float) -> str:
    return f"{lat:.6f}, {lng:.6f}"


def _first_string(address: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = address.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def format_address(response: ReverseGeocodeResponse) -> str | None:
    """Prefer display_name; otherwise join structured components in fixed order."""
    if response.display_name:
        return response.display_name

    components = []
    for key in ADDRESS_COMPONENT_ORDER:
        keys = key if isinstance(key, tuple) else (key,)
        value = _first_string(response.address, keys)
        if value:
            components.append(value)

    return ", ".join(components) if components else None


def error_message_for(error: Exception) -> str:
    for error_type, message in _ERROR_MESSAGES:
        if isinstance(error, error_type):
            return message
    if isinstance(error, LocationTrustError):
        return error.message
    return "Unknown geocoding error"


def reconcile_coordinates(
    input_lat: float,
    input_lng: float,
    response: ReverseGeocodeResponse,
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
    collision_distance_km: float = COLLISION_DISTANCE_KM,
    expected_region: Region | None = None,
) -> CoordinateValidation:
    """Cross-check the provider's coordinates for the address against the input.

    Beyond max_distance_km the address is invalid; beyond
    collision_distance_km a place-name collision is reported as well. When
    an expected region is known, leaving its radius only adds a warning.
    """
    if response.lat is None or response.lon is None:
        return CoordinateValidation(is_valid=False, warnings=[NO_COORDINATES_WARNING])

    distance = distance_km(input_lat, input_lng, response.lat, response.lon)
    warnings: list[str] = []

    if distance > max_distance_km:
        warnings.append(
            f"Address coordinates are {distance:.2f}km away from GPS location "
            f"(max: {max_distance_km}km)"
        )
        if distance > collision_distance_km:
            warnings.append(
                "Large coordinate difference suggests possible place name collision "
                "- using GPS coordinates for validation"
            )
        return CoordinateValidation(
            is_valid=False, distance_from_input_km=distance, warnings=warnings
        )

    if expected_region is not None:
        from_center = expected_region.distance_from_center_km(response.lat, response.lon)
        if from_center > expected_region.radius_km:
            warnings.append(
                f"Location is {from_center:.1f}km from {expected_region.name} center "
                f"(expected within {expected_region.radius_km:g}km)"
            )

    return CoordinateValidation(is_valid=True, distance_from_input_km=distance, warnings=warnings)


class GeocodingReconciler:
    def __init__(
        self,
        provider: GeocodingProvider,
        registry: RegionRegistry | None = None,
        max_distance_km: float = DEFAULT_MAX_DISTANCE_KM,
        collision_distance_km: float = COLLISION_DISTANCE_KM,
    ):
        if max_distance_km <= 0 or collision_distance_km < max_distance_km:
            raise ConfigurationError(
                "Reconciliation distances must satisfy "
                "0 < max_distance_km <= collision_distance_km",
                details={
                    "max_distance_km": max_distance_km,
                    "collision_distance_km": collision_distance_km,
                },
            )
        self.provider = provider
        self.registry = registry if registry is not None else get_region_registry()
        self.max_distance_km = max_distance_km
        self.collision_distance_km = collision_distance_km

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, registry: RegionRegistry | None = None
    ) -> "GeocodingReconciler":
        settings = settings or get_settings()
        return cls(
            provider=LocationIQClient.from_settings(settings.geocoding),
            registry=registry,
            max_distance_km=settings.geocoding.max_distance_km,
            collision_distance_km=settings.geocoding.collision_distance_km,
        )

    def _query_window(
        self, expected_region_hint: str | None
    ) -> tuple[BoundingBox, str | None, Region | None]:
        """Expected region narrows the search box; otherwise the country box is used."""
        if expected_region_hint:
            region = self.registry.get(expected_region_hint)
            if region is not None:
                return self.registry.bounds(region), self.registry.country_code, region
            logger.warning(f"Unknown region hint '{expected_region_hint}', using country box")
        return self.registry.country_box, None, None

    def _fallback(
        self,
        lat: float,
        lng: float,
        message: str,
        validation: CoordinateValidation | None = None,
    ) -> GeocodeResult:
        return GeocodeResult(
            address=fallback_address(lat, lng),
            source=GeocodeSource.FALLBACK,
            error_message=message,
            coordinate_validation=validation
            or CoordinateValidation(is_valid=False, warnings=[PROVIDER_UNAVAILABLE_WARNING]),
        )

    def _provider_failure(self, lat: float, lng: float, error: Exception) -> GeocodeResult:
        details = getattr(error, "details", {})
        logger.error(
            f"Reverse geocoding failed for {lat}, {lng}: {error}",
            extra={"provider_status": details.get("status")},
        )
        return self._fallback(lat, lng, error_message_for(error))

    def _resolve_max_distance(self, max_distance_km: float | None) -> float:
        if max_distance_km is None:
            return self.max_distance_km
        if max_distance_km <= 0:
            raise ConfigurationError(
                "max_distance_km must be positive", details={"max_distance_km": max_distance_km}
            )
        return max_distance_km

    def _build_result(
        self,
        lat: float,
        lng: float,
        response: ReverseGeocodeResponse,
        region: Region | None,
        max_distance_km: float,
    ) -> GeocodeResult:
        validation = reconcile_coordinates(
            lat,
            lng,
            response,
            max_distance_km=max_distance_km,
            collision_distance_km=max(self.collision_distance_km, max_distance_km),
            expected_region=region,
        )

        address = format_address(response)
        if not address:
            logger.warning("Geocoding provider returned no usable address, using coordinates")
            return self._fallback(lat, lng, NO_ADDRESS_MESSAGE, validation)

        # An address that cannot be cross-checked is not trusted
        if not response.has_coordinates:
            logger.warning(f"Geocoded address came without coordinates, falling back: {address}")
            return self._fallback(lat, lng, NO_COORDINATES_WARNING, validation)

        if not validation.is_valid:
            logger.warning(
                f"Geocoded address failed coordinate reconciliation: {validation.warnings}"
            )
        else:
            logger.info(f"Reverse geocoding successful: {address}")

        return GeocodeResult(
            address=address,
            source=GeocodeSource.PROVIDER,
            coordinate_validation=validation,
        )

    async def reconcile_address(
        self,
        lat: float,
        lng: float,
        expected_region_hint: str | None = None,
        max_distance_km: float | None = None,
    ) -> GeocodeResult:
        """Reverse-geocode and reconcile; always returns a result.

        Provider failures become FALLBACK results. Only a non-positive
        max_distance_km, a caller error, raises ConfigurationError. The whole
        provider call is bounded by the provider timeout.
        """
        limit = self._resolve_max_distance(max_distance_km)
        problem = coordinate_problem(lat, lng)
        if problem:
            return self._fallback(
                lat, lng, problem, CoordinateValidation(is_valid=False, warnings=[problem])
            )

        bounding_box, country_code, region = self._query_window(expected_region_hint)
        try:
            response = await asyncio.wait_for(
                self.provider.reverse(lat, lng, bounding_box, country_code),
                timeout=self.provider.timeout,
            )
        except TimeoutError:
            return self._provider_failure(
                lat, lng, ProviderTimeoutError(f"No answer within {self.provider.timeout}s")
            )
        except (LocationTrustError, ValueError, KeyError, TypeError) as e:
            return self._provider_failure(lat, lng, e)

        return self._build_result(lat, lng, response, region, limit)

    def reconcile_address_sync(
        self,
        lat: float,
        lng: float,
        expected_region_hint: str | None = None,
        max_distance_km: float | None = None,
    ) -> GeocodeResult:
        """Synchronous reconcile_address for worker threads.

        Unlike the async path there is no overall deadline: the requests
        timeout applies per phase (connect, then each read), so a server that
        keeps trickling bytes can hold the call past timeout_seconds. Run it
        from a worker with its own deadline if that matters.
        """
        limit = self._resolve_max_distance(max_distance_km)
        problem = coordinate_problem(lat, lng)
        if problem:
            return self._fallback(
                lat, lng, problem, CoordinateValidation(is_valid=False, warnings=[problem])
            )

        bounding_box, country_code, region = self._query_window(expected_region_hint)
        try:
            response = self.provider.reverse_sync(lat, lng, bounding_box, country_code)
        except (LocationTrustError, ValueError, KeyError, TypeError) as e:
            return self._provider_failure(lat, lng, e)

        return self._build_result(lat, lng, response, region, limit)
