"""Value objects and per-call result models for the location trust engine."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LocationSource(str, Enum):
    """Where a location sample came from."""

    GPS = "gps"
    MANUAL = "manual"
    NETWORK = "network"


class QualityTier(str, Enum):
    """Accuracy quality tiers, ordered from best to worst."""

    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    VERY_POOR = "very_poor"
    UNUSABLE = "unusable"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]

    @property
    def is_usable(self) -> bool:
        return self is not QualityTier.UNUSABLE

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, QualityTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, QualityTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, QualityTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, QualityTier):
            return NotImplemented
        return self.rank >= other.rank


_TIER_RANK: dict[QualityTier, int] = {tier: i for i, tier in enumerate(QualityTier)}


class LocationSample(BaseModel):
    """A single time-stamped position fix. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0, allow_inf_nan=False)
    longitude: float = Field(ge=-180.0, le=180.0, allow_inf_nan=False)
    accuracy: float = Field(default=0.0, ge=0.0, allow_inf_nan=False)
    timestamp_millis: int
    source: LocationSource = LocationSource.GPS

    @model_validator(mode="after")
    def reject_null_island(self) -> "LocationSample":
        # (0, 0) is what failed or defaulted fixes report
        if self.latitude == 0 and self.longitude == 0:
            raise ValueError("Null Island (0, 0) is not a valid location")
        return self


class ValidationResult(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class CoordinateCheck(BaseModel):
    """Outcome of comparing a position against an expected position."""

    is_valid: bool
    distance_km: float | None = None
    warnings: list[str] = Field(default_factory=list)


class QualityAssessment(BaseModel):
    tier: QualityTier
    accuracy_m: float
    description: str
    warning: str | None = None


class JumpResult(BaseModel):
    is_unrealistic: bool
    distance_km: float
    speed_kmh: float
    time_elapsed_hours: float
    reason: str | None = None


class CaptureConfig(BaseModel):
    """Options for a single device location request."""

    model_config = ConfigDict(frozen=True)

    max_accuracy_m: float = Field(default=100.0, gt=0.0)
    timeout_ms: int = Field(default=15_000, gt=0)
    enable_high_accuracy: bool = True
    maximum_age_ms: int = Field(default=0, ge=0)


class GPSValidationResult(BaseModel):
    success: bool
    location: LocationSample | None = None
    quality: QualityTier | None = None
    error: str | None = None
    warning: str | None = None
    requires_manual_selection: bool = False
    attempts_made: int = 1
    coordinate_check: CoordinateCheck | None = None


class GeocodeSource(str, Enum):
    PROVIDER = "provider"
    FALLBACK = "fallback"


class CoordinateValidation(BaseModel):
    is_valid: bool
    distance_from_input_km: float | None = None
    warnings: list[str] = Field(default_factory=list)


class GeocodeResult(BaseModel):
    address: str | None
    source: GeocodeSource
    error_message: str | None = None
    coordinate_validation: CoordinateValidation
