from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CaptureSettings(BaseSettings):
    max_accuracy_m: float = Field(
        default=100.0,
        gt=0.0,
        le=2000.0,
        description="Soft accuracy threshold; fixes above it are accepted with a warning",
    )
    timeout_ms: int = Field(default=15_000, ge=1_000, le=120_000)
    high_accuracy_max_accuracy_m: float = Field(default=50.0, gt=0.0, le=2000.0)
    high_accuracy_timeout_ms: int = Field(default=20_000, ge=1_000, le=120_000)
    enable_high_accuracy: bool = True
    maximum_age_ms: int = Field(
        default=0,
        ge=0,
        description="0 always requests a fresh fix, never a cached one",
    )

    model_config = SettingsConfigDict(env_prefix="GPS_")


class JumpSettings(BaseSettings):
    max_speed_kmh: float = Field(
        default=200.0,
        gt=0.0,
        le=2000.0,
        description="Implied speed above which two samples are flagged as an impossible jump",
    )

    model_config = SettingsConfigDict(env_prefix="JUMP_")


class GeocodingSettings(BaseSettings):
    api_key: str = ""
    base_url: str = "https://us1.locationiq.com/v1/reverse.php"
    timeout_seconds: float = Field(default=15.0, ge=1.0, le=60.0)
    user_agent: str = "LocationTrust/1.0"
    accept_language: str = "en"
    zoom: int = Field(default=18, ge=0, le=18)
    max_distance_km: float = Field(
        default=5.0,
        gt=0.0,
        description="Provider coordinates further than this from the input invalidate the address",
    )
    collision_distance_km: float = Field(
        default=50.0,
        gt=0.0,
        description="Distance beyond which a possible place-name collision is reported",
    )

    model_config = SettingsConfigDict(env_prefix="LOCATIONIQ_")

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Geocoding base URL must start with http:// or https://")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_distances(self) -> "GeocodingSettings":
        if self.collision_distance_km < self.max_distance_km:
            raise ValueError(
                f"collision_distance_km ({self.collision_distance_km}) must not be smaller "
                f"than max_distance_km ({self.max_distance_km})"
            )
        return self


class RegionSettings(BaseSettings):
    path: Path | None = Field(
        default=None,
        description="Regions JSON file; the bundled registry is used when unset",
    )
    bbox_buffer_deg: float = Field(default=0.5, gt=0.0, le=5.0)
    default_country_code: str = "in"

    model_config = SettingsConfigDict(env_prefix="REGIONS_")


class LoggingSettings(BaseSettings):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["text", "json"] = "text"
    environment: str = "development"

    model_config = SettingsConfigDict(env_prefix="LOG_")


class Settings(BaseSettings):
    capture: CaptureSettings = Field(default_factory=CaptureSettings)
    jump: JumpSettings = Field(default_factory=JumpSettings)
    geocoding: GeocodingSettings = Field(default_factory=GeocodingSettings)
    regions: RegionSettings = Field(default_factory=RegionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
