"""Scan engine configuration.

Values come from defaults, then an optional YAML file, then environment
variables (``BODYSCAN_*``).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError


DEFAULT_API_URL = "http://localhost:5001/scan"

_ENV_FIELDS = {
    "BODYSCAN_API_URL": "api_url",
    "BODYSCAN_INTERVAL_SECONDS": "interval_seconds",
    "BODYSCAN_REQUEST_TIMEOUT_SECONDS": "request_timeout_seconds",
    "BODYSCAN_CAMERA": "camera",
}


class ScanConfig(BaseModel):
    api_url: str = DEFAULT_API_URL
    interval_seconds: float = Field(default=2.0, gt=0)
    # No per-request timeout unless configured: a hung request holds its cycle slot.
    request_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    jpeg_quality: int = Field(default=40, ge=1, le=100)
    camera: int | str = 0
    width: int = 1280
    height: int = 720
    log_path: Optional[Path] = None


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except Exception:
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for env_name, field_name in _ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is None or not str(raw).strip():
            continue
        value: Any = str(raw).strip()
        if field_name == "camera" and value.isdigit():
            value = int(value)
        out[field_name] = value
    return out


def load_scan_config(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ScanConfig:
    data: Dict[str, Any] = {}
    if path is not None:
        data.update(_read_yaml(Path(path)))
    data.update(_env_overrides(os.environ if environ is None else environ))
    known = {k: v for k, v in data.items() if k in ScanConfig.model_fields}
    try:
        return ScanConfig.model_validate(known)
    except ValidationError as exc:
        raise ValueError(f"Invalid scan configuration: {exc}") from exc
