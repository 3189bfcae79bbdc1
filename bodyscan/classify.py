from __future__ import annotations

import math
from typing import Optional

from .measurements import MeasurementSet


INVERTED_TRIANGLE = "Inverted Triangle (V-Shape)"
TRIANGLE = "Triangle (Pear)"
HOURGLASS = "Hourglass"
RECTANGLE = "Rectangle"
ATHLETIC = "Athletic"
UNKNOWN = "Unknown"

BODY_SHAPES = (RECTANGLE, TRIANGLE, INVERTED_TRIANGLE, HOURGLASS, ATHLETIC, UNKNOWN)


def _usable(value: Optional[float]) -> bool:
    if value is None:
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0


def classify(
    shoulders: Optional[float],
    waist: Optional[float],
    hips_or_chest: Optional[float],
) -> str:
    """Map shoulder, waist and hip widths to a body-shape label.

    Thresholds are checked in order; the first match wins. Any missing or
    non-positive input gives ``Unknown``.
    """
    if not (_usable(shoulders) and _usable(waist) and _usable(hips_or_chest)):
        return UNKNOWN
    shoulder_to_hip = float(shoulders) / float(hips_or_chest)
    shoulder_to_waist = float(shoulders) / float(waist)

    if shoulder_to_hip > 1.05:
        return INVERTED_TRIANGLE
    if shoulder_to_hip < 0.95:
        return TRIANGLE
    if shoulder_to_waist > 1.25:
        return HOURGLASS
    if 0.90 <= shoulder_to_hip <= 1.10 and shoulder_to_waist < 1.15:
        return RECTANGLE
    return ATHLETIC


def classify_measurements(measurements: MeasurementSet) -> str:
    # Hips fall back to chest when hips were never filled in.
    lower = measurements.hips or measurements.chest
    return classify(measurements.shoulders, measurements.waist, lower)
