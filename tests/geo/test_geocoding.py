"""Tests for reverse geocoding with coordinate reconciliation."""

import asyncio
import time
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
import respx
from httpx import Response

from location_trust.core.exceptions import (
    ConfigurationError,
    NetworkError,
    ProviderAuthError,
    RateLimitedError,
    ServiceUnavailableError,
)
from location_trust.geo.geocoding import (
    NO_ADDRESS_MESSAGE,
    NO_COORDINATES_WARNING,
    PROVIDER_UNAVAILABLE_WARNING,
    GeocodingReconciler,
    error_message_for,
    fallback_address,
    format_address,
    reconcile_coordinates,
)
from location_trust.geo.locationiq_client import LocationIQClient, ReverseGeocodeResponse
from location_trust.geo.models import GeocodeSource

REVERSE_URL = "https://us1.locationiq.com/v1/reverse.php"

MUMBAI = (19.0760, 72.8777)
DELHI = (28.7041, 77.1025)


def provider_returning(response=None, side_effect=None, timeout=1.0) -> Mock:
    provider = Mock()
    provider.timeout = timeout
    provider.reverse = AsyncMock(return_value=response, side_effect=side_effect)
    provider.reverse_sync = Mock(return_value=response, side_effect=side_effect)
    return provider


def answer(lat, lng, display_name="Fort, Mumbai, Maharashtra, India", **address):
    return ReverseGeocodeResponse(
        display_name=display_name, address=address, lat=lat, lon=lng
    )


class SlowProvider:
    timeout = 0.05

    async def reverse(self, lat, lng, bounding_box, country_code=None):
        await asyncio.sleep(5)

    def reverse_sync(self, lat, lng, bounding_box, country_code=None):
        raise NotImplementedError


@pytest.mark.unit
class TestFormatAddress:
    def test_prefers_display_name(self):
        assert format_address(answer(*MUMBAI, display_name="Gateway of India")) == (
            "Gateway of India"
        )

    def test_joins_components_in_order(self):
        response = ReverseGeocodeResponse(
            address={
                "country": "India",
                "postcode": "400001",
                "road": "Apollo Bunder Road",
                "house_number": "1",
                "state": "Maharashtra",
                "town": "Colaba",
                "city": "Mumbai",
            }
        )

        assert format_address(response) == (
            "1, Apollo Bunder Road, Colaba, Maharashtra, 400001, India"
        )

    def test_city_used_when_no_village_or_town(self):
        response = ReverseGeocodeResponse(address={"suburb": "Fort", "city": "Mumbai"})
        assert format_address(response) == "Fort, Mumbai"

    def test_ignores_non_string_components(self):
        response = ReverseGeocodeResponse(address={"road": 42, "city": "Mumbai", "state": ""})
        assert format_address(response) == "Mumbai"

    def test_nothing_usable(self):
        assert format_address(ReverseGeocodeResponse()) is None

    def test_fallback_address_has_six_decimals(self):
        assert fallback_address(19.076, 72.8777) == "19.076000, 72.877700"


@pytest.mark.unit
class TestReconcileCoordinates:
    def test_identical_coordinates(self):
        validation = reconcile_coordinates(*MUMBAI, answer(*MUMBAI))

        assert validation.is_valid
        assert validation.distance_from_input_km == pytest.approx(0.0, abs=1e-9)
        assert validation.warnings == []

    def test_within_max_distance(self):
        validation = reconcile_coordinates(*MUMBAI, answer(19.0860, 72.8777))

        assert validation.is_valid
        assert validation.distance_from_input_km == pytest.approx(1.11, abs=0.01)

    def test_beyond_max_distance(self):
        validation = reconcile_coordinates(*MUMBAI, answer(19.1560, 72.8777))

        assert not validation.is_valid
        assert len(validation.warnings) == 1
        assert "away from GPS location (max: 5.0km)" in validation.warnings[0]

    def test_place_name_collision(self):
        validation = reconcile_coordinates(*MUMBAI, answer(*DELHI))

        assert not validation.is_valid
        assert validation.distance_from_input_km > 1000
        assert "place name collision" in validation.warnings[1]

    def test_missing_coordinates(self):
        validation = reconcile_coordinates(*MUMBAI, ReverseGeocodeResponse(display_name="X"))

        assert not validation.is_valid
        assert validation.distance_from_input_km is None
        assert validation.warnings == [NO_COORDINATES_WARNING]

    def test_outside_expected_region_only_warns(self, registry):
        mumbai = registry.require("mumbai")

        # ~47km and ~50.5km from the Mumbai center, ~3.3km apart
        validation = reconcile_coordinates(
            19.5000, 72.8777, answer(19.5300, 72.8777), expected_region=mumbai
        )

        assert validation.is_valid
        assert "from Mumbai center (expected within 50km)" in validation.warnings[0]

    def test_custom_threshold(self):
        validation = reconcile_coordinates(
            *MUMBAI, answer(19.1560, 72.8777), max_distance_km=10
        )
        assert validation.is_valid


@pytest.mark.unit
class TestErrorMessages:
    @pytest.mark.parametrize(
        "error,message",
        [
            (ProviderAuthError("401"), "Invalid geocoding API key"),
            (RateLimitedError("429"), "Geocoding API rate limit exceeded"),
            (ServiceUnavailableError("503"), "Geocoding service temporarily unavailable"),
            (NetworkError("refused"), "Network error: Unable to reach geocoding service"),
            (ConfigurationError("Missing geocoding API key"), "Missing geocoding API key"),
            (KeyError("lat"), "Unknown geocoding error"),
        ],
    )
    def test_mapping(self, error, message):
        assert error_message_for(error) == message


@pytest.mark.unit
class TestGeocodingReconciler:
    async def test_provider_address_accepted(self, registry):
        provider = provider_returning(answer(19.0761, 72.8775))
        reconciler = GeocodingReconciler(provider, registry=registry)

        result = await reconciler.reconcile_address(*MUMBAI)

        assert result.source is GeocodeSource.PROVIDER
        assert result.address == "Fort, Mumbai, Maharashtra, India"
        assert result.error_message is None
        assert result.coordinate_validation.is_valid

    async def test_no_hint_uses_country_box(self, registry):
        provider = provider_returning(answer(*MUMBAI))
        reconciler = GeocodingReconciler(provider, registry=registry)

        await reconciler.reconcile_address(*MUMBAI)

        provider.reverse.assert_awaited_once_with(*MUMBAI, registry.country_box, None)

    async def test_known_hint_narrows_window(self, registry):
        provider = provider_returning(answer(*MUMBAI))
        reconciler = GeocodingReconciler(provider, registry=registry)

        await reconciler.reconcile_address(*MUMBAI, expected_region_hint="Mumbai")

        provider.reverse.assert_awaited_once_with(*MUMBAI, registry.bounds("mumbai"), "in")

    async def test_unknown_hint_falls_back_to_country_box(self, registry, caplog):
        provider = provider_returning(answer(*MUMBAI))
        reconciler = GeocodingReconciler(provider, registry=registry)

        with caplog.at_level("WARNING"):
            await reconciler.reconcile_address(*MUMBAI, expected_region_hint="atlantis")

        provider.reverse.assert_awaited_once_with(*MUMBAI, registry.country_box, None)
        assert "Unknown region hint 'atlantis'" in caplog.text

    async def test_collision_keeps_address_but_invalid(self, registry):
        provider = provider_returning(answer(*DELHI, display_name="Fort, Delhi, India"))
        reconciler = GeocodingReconciler(provider, registry=registry)

        result = await reconciler.reconcile_address(*MUMBAI)

        assert result.source is GeocodeSource.PROVIDER
        assert result.address == "Fort, Delhi, India"
        assert not result.coordinate_validation.is_valid
        assert len(result.coordinate_validation.warnings) == 2

    async def test_no_address_falls_back(self, registry):
        provider = provider_returning(ReverseGeocodeResponse())
        reconciler = GeocodingReconciler(provider, registry=registry)

        result = await reconciler.reconcile_address(*MUMBAI)

        assert result.source is GeocodeSource.FALLBACK
        assert result.address == "19.076000, 72.877700"
        assert result.error_message == NO_ADDRESS_MESSAGE
        assert not result.coordinate_validation.is_valid

    @pytest.mark.parametrize(
        "error,message",
        [
            (ProviderAuthError("rejected"), "Invalid geocoding API key"),
            (RateLimitedError("slow down"), "Geocoding API rate limit exceeded"),
            (ServiceUnavailableError("502"), "Geocoding service temporarily unavailable"),
            (NetworkError("refused"), "Network error: Unable to reach geocoding service"),
            (ValueError("bad payload"), "Unknown geocoding error"),
        ],
    )
    async def test_provider_errors_fall_back(self, registry, error, message):
        reconciler = GeocodingReconciler(provider_returning(side_effect=error), registry=registry)

        result = await reconciler.reconcile_address(*MUMBAI)

        assert result.source is GeocodeSource.FALLBACK
        assert result.address == "19.076000, 72.877700"
        assert result.error_message == message
        assert result.coordinate_validation.warnings == [PROVIDER_UNAVAILABLE_WARNING]

    async def test_address_without_coordinates_falls_back(self, registry):
        provider = provider_returning(ReverseGeocodeResponse(display_name="Fort, Mumbai"))
        reconciler = GeocodingReconciler(provider, registry=registry)

        result = await reconciler.reconcile_address(*MUMBAI)

        assert result.source is GeocodeSource.FALLBACK
        assert result.address == "19.076000, 72.877700"
        assert result.error_message == NO_COORDINATES_WARNING
        assert not result.coordinate_validation.is_valid

    def test_sync_address_without_coordinates_falls_back(self, registry):
        provider = provider_returning(ReverseGeocodeResponse(display_name="Fort, Mumbai"))
        reconciler = GeocodingReconciler(provider, registry=registry)

        result = reconciler.reconcile_address_sync(*MUMBAI)

        assert result.source is GeocodeSource.FALLBACK
        assert result.error_message == NO_COORDINATES_WARNING

    async def test_slow_provider_bounded_by_timeout(self, registry):
        reconciler = GeocodingReconciler(SlowProvider(), registry=registry)

        start = time.perf_counter()
        result = await reconciler.reconcile_address(*MUMBAI)
        elapsed = time.perf_counter() - start

        assert elapsed < 1.0
        assert result.source is GeocodeSource.FALLBACK
        assert result.error_message == "Request timeout - geocoding service too slow"

    async def test_invalid_coordinates_skip_provider(self, registry):
        provider = provider_returning(answer(*MUMBAI))
        reconciler = GeocodingReconciler(provider, registry=registry)

        result = await reconciler.reconcile_address(0.0, 0.0)

        provider.reverse.assert_not_called()
        assert result.source is GeocodeSource.FALLBACK
        assert result.address == "0.000000, 0.000000"
        assert "Null Island" in result.error_message

    async def test_per_call_max_distance(self, registry):
        provider = provider_returning(answer(19.1560, 72.8777))
        reconciler = GeocodingReconciler(provider, registry=registry)

        strict = await reconciler.reconcile_address(*MUMBAI)
        relaxed = await reconciler.reconcile_address(*MUMBAI, max_distance_km=10)

        assert not strict.coordinate_validation.is_valid
        assert relaxed.coordinate_validation.is_valid

    @pytest.mark.parametrize("max_km", [0, -2.5])
    async def test_non_positive_max_distance_rejected(self, registry, max_km):
        provider = provider_returning(answer(*MUMBAI))
        reconciler = GeocodingReconciler(provider, registry=registry)

        with pytest.raises(ConfigurationError):
            await reconciler.reconcile_address(*MUMBAI, max_distance_km=max_km)
        with pytest.raises(ConfigurationError):
            reconciler.reconcile_address_sync(*MUMBAI, max_distance_km=max_km)

        provider.reverse.assert_not_called()
        provider.reverse_sync.assert_not_called()

    async def test_small_explicit_max_distance_is_honoured(self, registry):
        # ~1.1km apart: valid under the 5km default, invalid under 0.5km
        provider = provider_returning(answer(19.0860, 72.8777))
        reconciler = GeocodingReconciler(provider, registry=registry)

        result = await reconciler.reconcile_address(*MUMBAI, max_distance_km=0.5)

        assert not result.coordinate_validation.is_valid
        assert "(max: 0.5km)" in result.coordinate_validation.warnings[0]

    def test_sync_path(self, registry):
        provider = provider_returning(answer(19.0761, 72.8775))
        reconciler = GeocodingReconciler(provider, registry=registry)

        result = reconciler.reconcile_address_sync(*MUMBAI, expected_region_hint="mumbai")

        assert result.source is GeocodeSource.PROVIDER
        provider.reverse_sync.assert_called_once_with(*MUMBAI, registry.bounds("mumbai"), "in")

    def test_sync_path_falls_back(self, registry):
        provider = provider_returning(side_effect=RateLimitedError("429"))
        reconciler = GeocodingReconciler(provider, registry=registry)

        result = reconciler.reconcile_address_sync(*MUMBAI)

        assert result.source is GeocodeSource.FALLBACK
        assert result.error_message == "Geocoding API rate limit exceeded"

    def test_defaults_to_process_registry(self):
        reconciler = GeocodingReconciler(provider_returning())

        assert reconciler.registry.names() == ["bangalore", "delhi", "mumbai", "pune"]

    @pytest.mark.parametrize("max_km,collision_km", [(0, 50), (-1, 50), (60, 50)])
    def test_invalid_distances_rejected(self, registry, max_km, collision_km):
        with pytest.raises(ConfigurationError):
            GeocodingReconciler(
                provider_returning(),
                registry=registry,
                max_distance_km=max_km,
                collision_distance_km=collision_km,
            )


@pytest.mark.unit
class TestReconcilerWithLocationIQ:
    """End-to-end through the real HTTP client with the transport mocked."""

    async def test_round_trip_identical_coordinates(self, registry):
        client = LocationIQClient(api_key="test-key")
        reconciler = GeocodingReconciler(client, registry=registry)

        async with respx.mock:
            respx.get(REVERSE_URL).mock(
                return_value=Response(
                    200,
                    json={
                        "lat": "19.0760",
                        "lon": "72.8777",
                        "display_name": "Fort, Mumbai, Maharashtra, India",
                    },
                )
            )

            result = await reconciler.reconcile_address(*MUMBAI, expected_region_hint="mumbai")

        assert result.source is GeocodeSource.PROVIDER
        assert result.coordinate_validation.is_valid
        assert result.coordinate_validation.distance_from_input_km == pytest.approx(0, abs=1e-6)

    @pytest.mark.parametrize(
        "status_code,message",
        [
            (401, "Invalid geocoding API key"),
            (429, "Geocoding API rate limit exceeded"),
            (500, "Geocoding service temporarily unavailable"),
        ],
    )
    async def test_http_errors_fall_back(self, registry, status_code, message):
        reconciler = GeocodingReconciler(LocationIQClient(api_key="test-key"), registry=registry)

        async with respx.mock:
            respx.get(REVERSE_URL).mock(return_value=Response(status_code))

            result = await reconciler.reconcile_address(*MUMBAI)

        assert result.source is GeocodeSource.FALLBACK
        assert result.error_message == message

    async def test_transport_timeout_falls_back(self, registry):
        reconciler = GeocodingReconciler(LocationIQClient(api_key="test-key"), registry=registry)

        async with respx.mock:
            respx.get(REVERSE_URL).mock(side_effect=httpx.ConnectTimeout)

            result = await reconciler.reconcile_address(*MUMBAI)

        assert result.error_message == "Request timeout - geocoding service too slow"

    async def test_corrupt_body_falls_back(self, registry):
        reconciler = GeocodingReconciler(LocationIQClient(api_key="test-key"), registry=registry)

        async with respx.mock:
            respx.get(REVERSE_URL).mock(
                return_value=Response(
                    200,
                    headers={"content-encoding": "gzip"},
                    stream=httpx.ByteStream(b"not gzip"),
                )
            )

            result = await reconciler.reconcile_address(*MUMBAI)

        assert result.source is GeocodeSource.FALLBACK
        assert result.error_message == "Network error: Unable to reach geocoding service"

    @pytest.mark.parametrize(
        "lat,lon", [("nan", "nan"), ("inf", "72.8777"), ("19.0760", "512.0"), ("0", "0")]
    )
    async def test_impossible_provider_coordinates_fall_back(self, registry, lat, lon):
        reconciler = GeocodingReconciler(LocationIQClient(api_key="test-key"), registry=registry)

        async with respx.mock:
            respx.get(REVERSE_URL).mock(
                return_value=Response(
                    200, json={"display_name": "Somewhere", "lat": lat, "lon": lon}
                )
            )

            result = await reconciler.reconcile_address(*MUMBAI)

        assert result.source is GeocodeSource.FALLBACK
        assert result.error_message == NO_COORDINATES_WARNING
        assert result.coordinate_validation.distance_from_input_km is None
        assert not result.coordinate_validation.is_valid

    async def test_missing_api_key_falls_back(self, registry):
        reconciler = GeocodingReconciler(LocationIQClient(api_key=""), registry=registry)

        result = await reconciler.reconcile_address(*MUMBAI)

        assert result.source is GeocodeSource.FALLBACK
        assert result.error_message == "Missing geocoding API key"

    def test_sync_round_trip(self, registry):
        reconciler = GeocodingReconciler(LocationIQClient(api_key="test-key"), registry=registry)
        response = Mock(status_code=200)
        response.json.return_value = {"lat": "19.0761", "lon": "72.8775", "display_name": "Fort"}

        with patch("location_trust.geo.locationiq_client.requests.get", return_value=response):
            result = reconciler.reconcile_address_sync(*MUMBAI)

        assert result.source is GeocodeSource.PROVIDER
        assert result.address == "Fort"
