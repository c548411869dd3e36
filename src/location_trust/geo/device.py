"""Device location adapter.

The capture policy talks to devices only through the DeviceLocationSource
protocol. A source yields a raw, unvalidated DeviceFix or raises
DeviceLocationError with one of the DeviceErrorCode values.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from location_trust.core.exceptions import DeviceErrorCode, DeviceLocationError

from .models import LocationSource

logger = logging.getLogger(__name__)


class PositionOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    enable_high_accuracy: bool = True
    timeout_ms: int = 15_000
    maximum_age_ms: int = 0


class DeviceFix(BaseModel):
    """Raw reading exactly as the device reported it."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    accuracy: float
    timestamp_millis: int
    source: LocationSource = LocationSource.GPS


class DeviceLocationSource(Protocol):
    async def get_current_position(self, options: PositionOptions) -> DeviceFix: ...


ERROR_MESSAGES: dict[DeviceErrorCode, str] = {
    DeviceErrorCode.PERMISSION_DENIED: "Location access denied. Please enable location services.",
    DeviceErrorCode.POSITION_UNAVAILABLE: (
        "Location unavailable. Please check GPS/network connection."
    ),
    DeviceErrorCode.TIMEOUT: "Location request timed out. Please try again.",
    DeviceErrorCode.UNSUPPORTED: "Geolocation is not supported on this device.",
}


def error_message(code: DeviceErrorCode | None) -> str:
    if code is None:
        return "Unknown GPS error occurred."
    return ERROR_MESSAGES.get(code, "Unknown GPS error occurred.")


class BlockingDeviceSource:
    """Adapts a blocking reader (serial GPS, gpsd client, vendor SDK) to the async protocol.

    The reader runs in a worker thread so a slow device never blocks the
    event loop; the capture policy still bounds the whole call with its
    own timeout.
    """

    def __init__(self, reader: Callable[[PositionOptions], DeviceFix]):
        self._reader = reader

    async def get_current_position(self, options: PositionOptions) -> DeviceFix:
        try:
            return await asyncio.to_thread(self._reader, options)
        except DeviceLocationError:
            raise
        except TimeoutError as e:
            raise DeviceLocationError(DeviceErrorCode.TIMEOUT, str(e) or None) from e
        except Exception as e:
            # Serial I/O errors and vendor SDK crashes alike mean no fix
            logger.warning(f"Device reader failed: {type(e).__name__}: {e}")
            raise DeviceLocationError(DeviceErrorCode.POSITION_UNAVAILABLE, str(e) or None) from e


class StaticDeviceSource:
    """Always reports the same fix. Used for fixed installations and manual picks."""

    def __init__(self, fix: DeviceFix):
        self._fix = fix

    async def get_current_position(self, options: PositionOptions) -> DeviceFix:
        return self._fix
