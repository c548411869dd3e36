import logging

from .distance import distance_km, elapsed_hours, speed_kmh
from .models import JumpResult, LocationSample

logger = logging.getLogger(__name__)

DEFAULT_MAX_SPEED_KMH = 200.0


def _format_duration(hours: float) -> str:
    minutes = hours * 60
    if minutes < 1:
        return f"{hours * 3600:.0f} s"
    if minutes < 120:
        return f"{minutes:.0f} min"
    return f"{hours:.1f} h"


def detect_jump(
    previous: LocationSample,
    current: LocationSample,
    max_speed_kmh: float = DEFAULT_MAX_SPEED_KMH,
) -> JumpResult:
    """Flag movement between two samples of the same subject that is physically implausible.

    The engine keeps no "last known location"; callers pass both samples
    and own their ordering. A zero or negative time window cannot be
    evaluated and is reported as not-a-jump, so clock skew between devices
    never produces a false positive. The result is advisory; the caller
    decides whether to warn or reject.
    """
    distance = distance_km(
        previous.latitude, previous.longitude, current.latitude, current.longitude
    )
    hours = elapsed_hours(previous.timestamp_millis, current.timestamp_millis)

    if hours <= 0:
        return JumpResult(
            is_unrealistic=False,
            distance_km=distance,
            speed_kmh=0.0,
            time_elapsed_hours=hours,
        )

    speed = speed_kmh(distance, hours)
    is_unrealistic = speed > max_speed_kmh
    reason = None
    if is_unrealistic:
        reason = (
            f"implied speed {speed:.0f} km/h over {_format_duration(hours)} "
            f"exceeds {max_speed_kmh:.0f} km/h ({distance:.1f} km)"
        )
        logger.warning(f"Unrealistic location jump: {reason}")

    return JumpResult(
        is_unrealistic=is_unrealistic,
        distance_km=distance,
        speed_kmh=speed,
        time_elapsed_hours=hours,
        reason=reason,
    )
