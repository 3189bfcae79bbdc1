"""HTTP client for the remote measurement-extraction service."""

from __future__ import annotations

import base64
from dataclasses import dataclass
import math
from typing import Any, Dict, Optional, Union

import requests

from .config import DEFAULT_API_URL
from .utils.scan_log import ScanLog


DEFAULT_RETRY_MESSAGE = "Adjust position..."
_REQUIRED_FIELDS = ("shoulders", "chest", "waist", "hips")


@dataclass(frozen=True)
class ScanSuccess:
    shoulders: float
    chest: float
    waist: float
    hips: float
    body_type: Optional[str] = None


@dataclass(frozen=True)
class ScanRetry:
    message: str


@dataclass(frozen=True)
class ScanFault:
    cause: str


ScanResult = Union[ScanSuccess, ScanRetry, ScanFault]


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def interpret_response(payload: Any, status_code: int = 200) -> ScanResult:
    if not isinstance(payload, dict):
        return ScanFault(f"Unexpected response body (HTTP {status_code}).")
    if "success" not in payload:
        if status_code >= 400:
            return ScanFault(f"Scan service returned HTTP {status_code}.")
        return ScanFault("Response is missing the success flag.")

    if not payload.get("success"):
        message = str(payload.get("message") or "").strip()
        return ScanRetry(message or DEFAULT_RETRY_MESSAGE)

    values: Dict[str, float] = {}
    missing = []
    for name in _REQUIRED_FIELDS:
        number = _as_number(payload.get(name))
        if number is None:
            missing.append(name)
        else:
            values[name] = number
    if missing:
        return ScanFault(f"Incomplete measurements in response: missing {', '.join(missing)}.")

    body_type = payload.get("bodyType")
    body_type = str(body_type).strip() if body_type not in (None, "") else None
    return ScanSuccess(body_type=body_type or None, **values)


class ScanClient:
    """Single-attempt adapter: one POST, one verdict, no retries."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: Optional[float] = None,
        session: Optional[requests.Session] = None,
        log: Optional[ScanLog] = None,
    ) -> None:
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._log = log or ScanLog.default()

    def build_payload(self, image_bytes: bytes, height_cm: float) -> Dict[str, Any]:
        return {
            "image": base64.b64encode(image_bytes).decode("ascii"),
            "height": float(height_cm),
        }

    def submit(self, image_bytes: bytes, height_cm: float) -> ScanResult:
        payload = self.build_payload(image_bytes, height_cm)
        try:
            resp = self._session.post(
                self.api_url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            self._log.warning(f"event=scan_request_failed url={self.api_url} error={exc}")
            return ScanFault(f"Request failed: {exc}")

        try:
            body = resp.json()
        except ValueError as exc:
            self._log.warning(f"event=scan_response_unparsable status={resp.status_code} error={exc}")
            return ScanFault(f"Malformed JSON from scan service (HTTP {resp.status_code}).")

        result = interpret_response(body, status_code=resp.status_code)
        if isinstance(result, ScanFault):
            self._log.warning(f"event=scan_response_fault status={resp.status_code} cause={result.cause}")
        return result

    def close(self) -> None:
        self._session.close()
