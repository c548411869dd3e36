"""Accuracy-based location quality classification.

Tier boundaries are fixed. Classification never hard-fails on accuracy
alone up to VERY_POOR_MAX_M: poor fixes are normal at industrial field
sites, so every tier except UNUSABLE is usable and only carries a warning.
"""

import math

from .coordinates import is_valid_coordinate
from .models import LocationSample, QualityAssessment, QualityTier

EXCELLENT_MAX_M = 10.0
GOOD_MAX_M = 50.0
FAIR_MAX_M = 100.0
POOR_MAX_M = 500.0
VERY_POOR_MAX_M = 2000.0

_TIER_LIMITS: list[tuple[float, QualityTier]] = [
    (EXCELLENT_MAX_M, QualityTier.EXCELLENT),
    (GOOD_MAX_M, QualityTier.GOOD),
    (FAIR_MAX_M, QualityTier.FAIR),
    (POOR_MAX_M, QualityTier.POOR),
    (VERY_POOR_MAX_M, QualityTier.VERY_POOR),
]

_WARNINGS: dict[QualityTier, str] = {
    QualityTier.FAIR: (
        "GPS accuracy is fair (±{m}m). Consider moving to open area for better accuracy."
    ),
    QualityTier.POOR: (
        "GPS accuracy is poor (±{m}m). "
        "Move to open area or use manual address entry for better accuracy."
    ),
    QualityTier.VERY_POOR: (
        "GPS accuracy is very poor (±{m}m). "
        "Consider using manual address entry for better accuracy."
    ),
    QualityTier.UNUSABLE: "GPS accuracy too poor: ±{m}m. Please use manual address entry.",
}

_DESCRIPTIONS: dict[QualityTier, str] = {
    QualityTier.EXCELLENT: "Excellent GPS accuracy (±{m}m)",
    QualityTier.GOOD: "Good GPS accuracy (±{m}m)",
    QualityTier.FAIR: "Fair GPS accuracy (±{m}m)",
    QualityTier.POOR: "Poor GPS accuracy (±{m}m) - consider manual entry",
    QualityTier.VERY_POOR: "Very poor GPS accuracy (±{m}m) - manual entry recommended",
    QualityTier.UNUSABLE: "GPS accuracy too poor (±{m}m) - manual selection required",
}

INVALID_FIX_WARNING = "GPS fix is invalid. Please use manual address entry."


def _round_m(accuracy_m: float) -> int:
    return int(math.floor(accuracy_m + 0.5))


def tier_for_accuracy(accuracy_m: float) -> QualityTier:
    if not math.isfinite(accuracy_m) or accuracy_m < 0:
        return QualityTier.UNUSABLE
    for limit, tier in _TIER_LIMITS:
        if accuracy_m <= limit:
            return tier
    return QualityTier.UNUSABLE


def classify(accuracy_m: float) -> tuple[QualityTier, str | None]:
    """Map a reported accuracy (meters) to a tier and an optional warning."""
    tier = tier_for_accuracy(accuracy_m)
    if tier is QualityTier.UNUSABLE and not (math.isfinite(accuracy_m) and accuracy_m >= 0):
        return tier, INVALID_FIX_WARNING
    template = _WARNINGS.get(tier)
    return tier, template.format(m=_round_m(accuracy_m)) if template else None


def classify_quality(accuracy_m: float) -> QualityTier:
    return tier_for_accuracy(accuracy_m)


def classify_fix(lat: float, lng: float, accuracy_m: float) -> tuple[QualityTier, str | None]:
    """Classify a raw fix; structurally invalid coordinates are always UNUSABLE."""
    if not is_valid_coordinate(lat, lng):
        return QualityTier.UNUSABLE, INVALID_FIX_WARNING
    return classify(accuracy_m)


def describe(tier: QualityTier, accuracy_m: float) -> str:
    if not math.isfinite(accuracy_m):
        return "GPS accuracy unavailable"
    return _DESCRIPTIONS[tier].format(m=_round_m(accuracy_m))


def assess_quality(sample: LocationSample) -> QualityAssessment:
    """Tier, display description and warning for a sample."""
    tier, warning = classify_fix(sample.latitude, sample.longitude, sample.accuracy)
    return QualityAssessment(
        tier=tier,
        accuracy_m=sample.accuracy,
        description=describe(tier, sample.accuracy),
        warning=warning,
    )
