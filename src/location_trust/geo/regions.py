import json
import logging
from collections.abc import Iterable, Iterator
from pathlib import Path
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from location_trust.core.exceptions import ConfigurationError, UnknownRegionError
from location_trust.settings import RegionSettings

from .distance import distance_km

logger = logging.getLogger(__name__)

DEFAULT_BBOX_BUFFER_DEG = 0.5  # ~55km at the equator

BUNDLED_REGIONS_PATH = Path(__file__).parent / "data" / "regions.json"


class BoundingBox(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_lat: float = Field(ge=-90.0, le=90.0)
    max_lat: float = Field(ge=-90.0, le=90.0)
    min_lng: float = Field(ge=-180.0, le=180.0)
    max_lng: float = Field(ge=-180.0, le=180.0)

    @model_validator(mode="after")
    def check_ordering(self) -> "BoundingBox":
        if self.min_lat > self.max_lat or self.min_lng > self.max_lng:
            raise ValueError("Bounding box minimums must not exceed maximums")
        return self

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng

    def to_viewbox(self) -> str:
        """Provider viewbox string: left,top,right,bottom (lng,lat,lng,lat)."""
        return f"{self.min_lng},{self.max_lat},{self.max_lng},{self.min_lat}"


class Region(BaseModel):
    """A named service region: a center point plus a containment radius."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    center_lat: float = Field(ge=-90.0, le=90.0)
    center_lng: float = Field(ge=-180.0, le=180.0)
    radius_km: float = Field(gt=0.0)

    def distance_from_center_km(self, lat: float, lng: float) -> float:
        return distance_km(lat, lng, self.center_lat, self.center_lng)


class RegionRegistry:
    """Read-only lookup of known service regions and the country bounding box.

    Built once and never mutated afterwards, so a single instance can be
    shared by any number of concurrent readers.
    """

    def __init__(
        self,
        regions: Iterable[Region],
        country_box: BoundingBox,
        country_code: str | None = None,
        bbox_buffer_deg: float = DEFAULT_BBOX_BUFFER_DEG,
    ):
        if bbox_buffer_deg <= 0:
            raise ConfigurationError(
                "Region bounding box buffer must be positive",
                details={"bbox_buffer_deg": bbox_buffer_deg},
            )
        self._regions = MappingProxyType({region.name.lower(): region for region in regions})
        self._country_box = country_box
        self._country_code = country_code.lower() if country_code else None
        self._bbox_buffer_deg = bbox_buffer_deg

    @property
    def country_box(self) -> BoundingBox:
        return self._country_box

    @property
    def country_code(self) -> str | None:
        return self._country_code

    @property
    def bbox_buffer_deg(self) -> float:
        return self._bbox_buffer_deg

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[Region]:
        return iter(self._regions.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._regions

    def names(self) -> list[str]:
        return sorted(self._regions)

    def get(self, name: str) -> Region | None:
        """Look up a region by name (case-insensitive)."""
        return self._regions.get(name.strip().lower())

    def require(self, name: str) -> Region:
        region = self.get(name)
        if region is None:
            raise UnknownRegionError(
                f"Unknown region: {name}", details={"known_regions": self.names()}
            )
        return region

    def _resolve(self, region: Region | str) -> Region:
        return region if isinstance(region, Region) else self.require(region)

    def bounds(self, region: Region | str) -> BoundingBox:
        """Provider search window: region center +/- the buffer, clamped to valid ranges."""
        resolved = self._resolve(region)
        buffer = self._bbox_buffer_deg
        return BoundingBox(
            min_lat=max(-90.0, resolved.center_lat - buffer),
            max_lat=min(90.0, resolved.center_lat + buffer),
            min_lng=max(-180.0, resolved.center_lng - buffer),
            max_lng=min(180.0, resolved.center_lng + buffer),
        )

    def is_within(self, region: Region | str, lat: float, lng: float) -> bool:
        resolved = self._resolve(region)
        return resolved.distance_from_center_km(lat, lng) <= resolved.radius_km

    def find_region(self, lat: float, lng: float) -> Region | None:
        """Nearest region whose radius contains the point, or None."""
        best: Region | None = None
        best_distance = float("inf")
        for region in self._regions.values():
            distance = region.distance_from_center_km(lat, lng)
            if distance <= region.radius_km and distance < best_distance:
                best = region
                best_distance = distance
        return best

    def is_within_service_region(
        self, lat: float, lng: float, bounds: BoundingBox | None = None
    ) -> bool:
        """Coarse containment against the country box or a caller-supplied box."""
        return (bounds or self._country_box).contains(lat, lng)


class RegionLoader:
    """Parses a regions JSON document into a RegionRegistry.

    Malformed region entries are skipped with a warning; a missing or
    malformed country section is a configuration error.
    """

    def __init__(
        self,
        path: Path | str,
        bbox_buffer_deg: float = DEFAULT_BBOX_BUFFER_DEG,
        default_country_code: str | None = None,
    ):
        self.path = Path(path)
        self.bbox_buffer_deg = bbox_buffer_deg
        self.default_country_code = default_country_code

    def load(self) -> RegionRegistry:
        try:
            with open(self.path) as f:
                document = json.load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"Regions file not found: {self.path}", details={"path": str(self.path)}
            ) from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Regions file is not valid JSON: {self.path}", details={"error": str(e)}
            ) from e

        if not isinstance(document, dict):
            raise ConfigurationError(f"Expected a JSON object in {self.path}")

        country = document.get("country") or {}
        try:
            country_box = BoundingBox(**country["bounding_box"])
        except (KeyError, TypeError, ValidationError) as e:
            raise ConfigurationError(
                f"Regions file {self.path} has no valid country bounding box"
            ) from e

        regions = []
        for entry in document.get("regions", []):
            region = self._parse_region(entry)
            if region:
                regions.append(region)

        logger.info(f"Loaded {len(regions)} regions from {self.path}")

        return RegionRegistry(
            regions,
            country_box=country_box,
            country_code=country.get("code") or self.default_country_code,
            bbox_buffer_deg=self.bbox_buffer_deg,
        )

    @staticmethod
    def _parse_region(entry: object) -> Region | None:
        if not isinstance(entry, dict):
            logger.warning("Skipping region entry that is not an object")
            return None
        try:
            return Region(**entry)
        except (TypeError, ValidationError) as e:
            logger.warning(f"Skipping region {entry.get('name', '<unnamed>')}: {e}")
            return None


# Lazy-loaded process-wide registry
_registry: RegionRegistry | None = None
_regions_path_override: Path | None = None


def _get_regions_path(settings: RegionSettings) -> Path:
    """Resolve the regions file.

    Checks in order:
    1. Path override (set via set_regions_path for testing)
    2. REGIONS_PATH environment variable
    3. The registry file bundled with the package
    """
    if _regions_path_override is not None:
        return _regions_path_override

    if settings.path is not None:
        return settings.path

    return BUNDLED_REGIONS_PATH


def get_region_registry() -> RegionRegistry:
    """Get or initialize the process-wide RegionRegistry."""
    global _registry

    if _registry is None:
        settings = RegionSettings()
        _registry = RegionLoader(
            _get_regions_path(settings),
            bbox_buffer_deg=settings.bbox_buffer_deg,
            default_country_code=settings.default_country_code,
        ).load()

    return _registry


def set_regions_path(path: Path | str | None) -> None:
    """Set or clear the regions path override. Useful for testing."""
    global _regions_path_override
    _regions_path_override = Path(path) if path is not None else None


def reset_region_registry() -> None:
    """Reset the cached registry and path override. Useful for testing."""
    global _registry, _regions_path_override
    _registry = None
    _regions_path_override = None
