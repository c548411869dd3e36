"""GPS capture policy: one device request, classified into accept/warn/reject.

The policy is "accept unless catastrophic". Every fix with valid
coordinates and accuracy up to VERY_POOR_MAX_M is accepted, with a
warning for anything below GOOD or above the caller's soft threshold.
Only structurally invalid coordinates and UNUSABLE accuracy are
rejected, and both ask for manual selection. Retries are left to the
caller.
"""

import asyncio
import logging

from pydantic import ValidationError

from location_trust.core.exceptions import DeviceErrorCode, DeviceLocationError
from location_trust.settings import CaptureSettings

from .coordinates import coordinate_problem, validate_against_expected
from .device import DeviceFix, DeviceLocationSource, PositionOptions, error_message
from .models import CaptureConfig, GPSValidationResult, LocationSample, QualityTier
from .quality import classify

logger = logging.getLogger(__name__)


def config_from_settings(settings: CaptureSettings) -> CaptureConfig:
    return CaptureConfig(
        max_accuracy_m=settings.max_accuracy_m,
        timeout_ms=settings.timeout_ms,
        enable_high_accuracy=settings.enable_high_accuracy,
        maximum_age_ms=settings.maximum_age_ms,
    )


def _to_sample(fix: DeviceFix) -> LocationSample | None:
    try:
        return LocationSample(
            latitude=fix.latitude,
            longitude=fix.longitude,
            accuracy=fix.accuracy,
            timestamp_millis=fix.timestamp_millis,
            source=fix.source,
        )
    except ValidationError:
        return None


def _device_failure(code: DeviceErrorCode | None) -> GPSValidationResult:
    return GPSValidationResult(
        success=False,
        error=error_message(code),
        requires_manual_selection=True,
    )


async def _request_fix(
    source: DeviceLocationSource, config: CaptureConfig
) -> DeviceFix:
    options = PositionOptions(
        enable_high_accuracy=config.enable_high_accuracy,
        timeout_ms=config.timeout_ms,
        maximum_age_ms=config.maximum_age_ms,
    )
    try:
        return await asyncio.wait_for(
            source.get_current_position(options), timeout=config.timeout_ms / 1000
        )
    except TimeoutError as e:
        raise DeviceLocationError(
            DeviceErrorCode.TIMEOUT, details={"timeout_ms": config.timeout_ms}
        ) from e
    except DeviceLocationError:
        raise
    except Exception as e:
        # Any other source failure is treated as no fix
        logger.warning(f"Device location source failed: {type(e).__name__}: {e}")
        raise DeviceLocationError(DeviceErrorCode.POSITION_UNAVAILABLE, str(e) or None) from e


async def capture_location(
    source: DeviceLocationSource | None,
    config: CaptureConfig | None = None,
) -> GPSValidationResult:
    """Request exactly one fix from the device and decide whether to accept it."""
    if config is None:
        config = CaptureConfig()

    if source is None:
        return _device_failure(DeviceErrorCode.UNSUPPORTED)

    try:
        fix = await _request_fix(source, config)
    except DeviceLocationError as e:
        logger.warning(f"GPS capture failed: {e.code.value}")
        return _device_failure(e.code)

    problem = coordinate_problem(fix.latitude, fix.longitude)
    if problem:
        logger.warning(f"GPS capture rejected: {problem}")
        return GPSValidationResult(
            success=False,
            quality=QualityTier.UNUSABLE,
            error=problem,
            requires_manual_selection=True,
        )

    tier, warning = classify(fix.accuracy)
    sample = _to_sample(fix)

    if tier is QualityTier.UNUSABLE or sample is None:
        logger.info(f"GPS capture rejected: accuracy {fix.accuracy}m is unusable")
        return GPSValidationResult(
            success=False,
            location=sample,
            quality=QualityTier.UNUSABLE,
            error=warning,
            requires_manual_selection=True,
        )

    if warning is None and fix.accuracy > config.max_accuracy_m:
        warning = (
            f"GPS accuracy ±{fix.accuracy:.0f}m exceeds the requested "
            f"±{config.max_accuracy_m:.0f}m."
        )

    logger.debug(
        f"GPS capture accepted: tier={tier.value}, accuracy={fix.accuracy}m, "
        f"threshold={config.max_accuracy_m}m"
    )
    return GPSValidationResult(success=True, location=sample, quality=tier, warning=warning)


async def get_high_accuracy_location(
    source: DeviceLocationSource | None,
    max_accuracy_m: float = 50.0,
    timeout_ms: int = 20_000,
) -> GPSValidationResult:
    """Same policy with a tighter soft threshold.

    The tighter threshold only changes which fixes get a warning; rejection
    still happens only through the UNUSABLE gate.
    """
    config = CaptureConfig(
        max_accuracy_m=max_accuracy_m,
        timeout_ms=timeout_ms,
        enable_high_accuracy=True,
        maximum_age_ms=0,
    )
    return await capture_location(source, config)


async def capture_location_with_expected(
    source: DeviceLocationSource | None,
    expected_lat: float | None = None,
    expected_lng: float | None = None,
    max_distance_km: float = 5.0,
    config: CaptureConfig | None = None,
) -> GPSValidationResult:
    """Capture a fix and additionally require it to be near an expected position."""
    result = await capture_location(source, config)
    if not result.success or result.location is None:
        return result

    check = validate_against_expected(
        result.location, expected_lat, expected_lng, max_distance_km
    )
    if check.is_valid:
        return result.model_copy(update={"coordinate_check": check})

    return result.model_copy(
        update={
            "success": False,
            "coordinate_check": check,
            "error": check.warnings[-1],
        }
    )
