from __future__ import annotations

from datetime import datetime, timezone
import math
from typing import Any, Dict

from pydantic import BaseModel, field_validator


MEASUREMENT_FIELDS = ("height_cm", "weight_kg", "shoulders", "chest", "waist", "hips")
SCANNED_FIELDS = ("shoulders", "chest", "waist", "hips")


def safe_float(value: Any) -> float:
    """Parse a number from form input; anything unusable becomes 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


class MeasurementSet(BaseModel):
    height_cm: float = 0.0
    weight_kg: float = 0.0
    shoulders: float = 0.0
    chest: float = 0.0
    waist: float = 0.0
    hips: float = 0.0

    @field_validator(*MEASUREMENT_FIELDS, mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> float:
        return safe_float(value)

    @property
    def has_calibration_height(self) -> bool:
        return self.height_cm > 0

    def with_updates(self, **fields: Any) -> "MeasurementSet":
        unknown = set(fields) - set(MEASUREMENT_FIELDS)
        if unknown:
            raise KeyError(f"Unknown measurement field(s): {', '.join(sorted(unknown))}")
        data = self.model_dump()
        data.update(fields)
        return MeasurementSet.model_validate(data)

    def to_profile_record(self, body_type: str) -> Dict[str, Any]:
        return {
            "height": self.height_cm,
            "weight": self.weight_kg,
            "shoulders": self.shoulders,
            "chest": self.chest,
            "waist": self.waist,
            "hips": self.hips,
            "bodyType": body_type,
            "lastUpdated": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        }
