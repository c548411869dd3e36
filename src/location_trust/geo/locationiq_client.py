import logging
import time
from typing import Any

import httpx
import requests
from pydantic import BaseModel, Field, field_validator, model_validator

from location_trust.core.exceptions import (
    ConfigurationError,
    InvalidCoordinatesError,
    NetworkError,
    ProviderAuthError,
    ProviderRequestError,
    ProviderTimeoutError,
    RateLimitedError,
    ServiceUnavailableError,
)
from location_trust.settings import GeocodingSettings

from .coordinates import coordinate_problem
from .regions import BoundingBox

logger = logging.getLogger(__name__)


class ReverseGeocodeResponse(BaseModel):
    """The subset of a reverse-geocode payload the reconciler relies on."""

    display_name: str | None = None
    address: dict[str, Any] = Field(default_factory=dict)
    lat: float | None = None
    lon: float | None = None

    @field_validator("display_name", mode="before")
    @classmethod
    def drop_non_string_name(cls, v: Any) -> str | None:
        return v if isinstance(v, str) and v.strip() else None

    @field_validator("address", mode="before")
    @classmethod
    def drop_non_mapping_address(cls, v: Any) -> dict[str, Any]:
        return v if isinstance(v, dict) else {}

    @field_validator("lat", "lon", mode="before")
    @classmethod
    def parse_coordinate(cls, v: Any) -> float | None:
        # Provider returns coordinates as strings ("19.0760")
        if v is None or isinstance(v, bool):
            return None
        try:
            return float(v)
        except (TypeError, ValueError):
            return None

    @model_validator(mode="after")
    def drop_impossible_coordinates(self) -> "ReverseGeocodeResponse":
        # NaN, infinities, out-of-range values and (0, 0) count as no coordinates
        if self.has_coordinates and coordinate_problem(self.lat, self.lon):
            self.lat = None
            self.lon = None
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


class LocationIQClient:
    """Reverse geocoding over the LocationIQ (Nominatim-compatible) HTTP API.

    Raises the typed errors from core.exceptions; turning them into a
    fallback address is the reconciler's job.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://us1.locationiq.com/v1/reverse.php",
        timeout: float = 15.0,
        user_agent: str = "LocationTrust/1.0",
        accept_language: str = "en",
        zoom: int = 18,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self.accept_language = accept_language
        self.zoom = zoom

    @classmethod
    def from_settings(cls, settings: GeocodingSettings) -> "LocationIQClient":
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout_seconds,
            user_agent=settings.user_agent,
            accept_language=settings.accept_language,
            zoom=settings.zoom,
        )

    def _build_params(
        self,
        lat: float,
        lng: float,
        bounding_box: BoundingBox,
        country_code: str | None,
    ) -> dict[str, Any]:
        if not self.api_key:
            raise ConfigurationError("Missing geocoding API key")

        problem = coordinate_problem(lat, lng)
        if problem:
            raise InvalidCoordinatesError(problem, details={"lat": lat, "lng": lng})

        params: dict[str, Any] = {
            "key": self.api_key,
            "lat": lat,
            "lon": lng,
            "format": "json",
            "accept-language": self.accept_language,
            "addressdetails": 1,
            "zoom": self.zoom,
            "viewbox": bounding_box.to_viewbox(),
            "bounded": 1,
        }
        if country_code:
            params["countrycodes"] = country_code.lower()
        return params

    @property
    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "User-Agent": self.user_agent}

    @staticmethod
    def _check_status(status_code: int) -> None:
        if status_code in (401, 403):
            raise ProviderAuthError(
                "Geocoding provider rejected the API key", details={"status": status_code}
            )
        if status_code == 429:
            raise RateLimitedError(
                "Geocoding provider rate limit exceeded", details={"status": status_code}
            )
        if status_code >= 500:
            raise ServiceUnavailableError(
                f"Geocoding server error: {status_code}", details={"status": status_code}
            )
        if status_code >= 400 and status_code != 404:
            raise ProviderRequestError(
                f"Geocoding request rejected: {status_code}", details={"status": status_code}
            )

    @staticmethod
    def _parse(status_code: int, payload: Any) -> ReverseGeocodeResponse:
        # 404 means "Unable to geocode": a valid answer with no address
        if status_code == 404:
            return ReverseGeocodeResponse()
        if isinstance(payload, list):
            payload = payload[0] if payload else {}
        if not isinstance(payload, dict):
            raise ServiceUnavailableError("Malformed geocoding response")
        return ReverseGeocodeResponse.model_validate(payload)

    async def reverse(
        self,
        lat: float,
        lng: float,
        bounding_box: BoundingBox,
        country_code: str | None = None,
    ) -> ReverseGeocodeResponse:
        """Reverse-geocode a coordinate restricted to the given bounding box."""
        params = self._build_params(lat, lng, bounding_box, country_code)

        start_time = time.perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, headers=self._headers) as client:
                response = await client.get(self.base_url, params=params)

                self._check_status(response.status_code)
                payload = response.json() if response.status_code != 404 else None

        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"Request timed out after {self.timeout}s") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Network error: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Geocoding transport failed: {e}") from e
        except ValueError as e:
            raise ServiceUnavailableError("Malformed geocoding response") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Reverse geocode answered {response.status_code} in {latency_ms:.0f}ms")

        return self._parse(response.status_code, payload)

    def reverse_sync(
        self,
        lat: float,
        lng: float,
        bounding_box: BoundingBox,
        country_code: str | None = None,
    ) -> ReverseGeocodeResponse:
        """Synchronous reverse geocoding for callers running in worker threads.

        Uses the requests library instead of httpx so it never needs an event loop.
        """
        params = self._build_params(lat, lng, bounding_box, country_code)

        start_time = time.perf_counter()
        try:
            response = requests.get(
                self.base_url, params=params, headers=self._headers, timeout=self.timeout
            )

            self._check_status(response.status_code)
            payload = response.json() if response.status_code != 404 else None

        except requests.Timeout as e:
            raise ProviderTimeoutError(f"Request timed out after {self.timeout}s") from e
        except requests.JSONDecodeError as e:
            raise ServiceUnavailableError("Malformed geocoding response") from e
        except requests.RequestException as e:
            raise NetworkError(f"Network error: {e}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"Reverse geocode answered {response.status_code} in {latency_ms:.0f}ms")

        return self._parse(response.status_code, payload)
