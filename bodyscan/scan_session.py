from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
import threading
from typing import Callable, Optional

from .classify import classify_measurements
from .measurements import MeasurementSet, safe_float
from .scan_client import DEFAULT_RETRY_MESSAGE, ScanFault, ScanResult, ScanRetry, ScanSuccess


class ScanValidationError(ValueError):
    """Raised when a scan cannot be started."""


class ScanState(str, Enum):
    IDLE = "IDLE"
    CALIBRATING = "CALIBRATING"
    CAPTURING = "CAPTURING"
    AWAITING_RESULT = "AWAITING_RESULT"
    SUCCESS = "SUCCESS"
    CANCELLED = "CANCELLED"


TERMINAL_STATES = (ScanState.SUCCESS, ScanState.CANCELLED)

STATUS_IDLE = "Stand back to start..."
STATUS_ALIGNING = "Aligning... Stand back."
STATUS_ANALYZING = "Analyzing..."
STATUS_CONNECTING = "Connecting..."
STATUS_SUCCESS = "Scan complete."
STATUS_CANCELLED = "Scan cancelled."


@dataclass(frozen=True)
class ScanSnapshot:
    state: ScanState
    status_message: str
    attempt_in_flight: bool
    cancelled: bool
    height_cm: float
    measurements: Optional[MeasurementSet]
    body_type: Optional[str]
    service_body_type: Optional[str]

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES


SessionSubscriber = Callable[[ScanSnapshot], None]


class ScanSession:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.state = ScanState.IDLE
        self.status_message = STATUS_IDLE
        self.attempt_in_flight = False
        self.cancelled = False
        self.height_cm = 0.0
        self.measurements: Optional[MeasurementSet] = None
        self.body_type: Optional[str] = None
        self.service_body_type: Optional[str] = None
        self._subscribers: dict[int, SessionSubscriber] = {}
        self._next_subscriber_id = 1

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def active(self) -> bool:
        return self.state not in TERMINAL_STATES and self.state != ScanState.IDLE

    def snapshot(self) -> ScanSnapshot:
        with self._lock:
            return ScanSnapshot(
                state=self.state,
                status_message=self.status_message,
                attempt_in_flight=self.attempt_in_flight,
                cancelled=self.cancelled,
                height_cm=self.height_cm,
                measurements=copy.deepcopy(self.measurements),
                body_type=self.body_type,
                service_body_type=self.service_body_type,
            )

    def subscribe(self, callback: SessionSubscriber, emit_initial: bool = True) -> int:
        with self._lock:
            token = self._next_subscriber_id
            self._next_subscriber_id += 1
            self._subscribers[token] = callback
        if emit_initial:
            callback(self.snapshot())
        return token

    def unsubscribe(self, token: int) -> None:
        with self._lock:
            self._subscribers.pop(token, None)

    def _emit(self) -> None:
        snapshot = self.snapshot()
        with self._lock:
            callbacks = list(self._subscribers.values())
        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception:
                continue

    # Transitions

    def start(self, height_cm: object) -> ScanSnapshot:
        height = safe_float(height_cm)
        with self._lock:
            if self.state != ScanState.IDLE:
                raise ScanValidationError(f"Scan session already {self.state.value.lower()}.")
            if height <= 0:
                raise ScanValidationError("Please enter your height first to calibrate.")
            self.height_cm = height
            self.state = ScanState.CALIBRATING
            self.status_message = STATUS_ALIGNING
        self._emit()
        return self.snapshot()

    def begin_cycle(self) -> bool:
        """Claim the single in-flight slot. False means skip this tick."""
        with self._lock:
            if self.terminal or self.state == ScanState.IDLE or self.attempt_in_flight:
                return False
            if self.state == ScanState.CALIBRATING:
                self.state = ScanState.CAPTURING
                self.status_message = STATUS_ANALYZING
            self.attempt_in_flight = True
        self._emit()
        return True

    def frame_captured(self) -> bool:
        with self._lock:
            if self.state != ScanState.CAPTURING or not self.attempt_in_flight:
                return False
            self.state = ScanState.AWAITING_RESULT
            self.status_message = STATUS_ANALYZING
        self._emit()
        return True

    def apply_result(self, result: ScanResult) -> bool:
        """Feed one cycle outcome. Returns False when the result was discarded."""
        with self._lock:
            self.attempt_in_flight = False
            if self.terminal or self.state == ScanState.IDLE:
                return False
            if isinstance(result, ScanSuccess):
                measurements = MeasurementSet(
                    height_cm=self.height_cm,
                    shoulders=result.shoulders,
                    chest=result.chest,
                    waist=result.waist,
                    hips=result.hips,
                )
                self.measurements = measurements
                self.body_type = classify_measurements(measurements)
                self.service_body_type = result.body_type
                self.state = ScanState.SUCCESS
                self.status_message = STATUS_SUCCESS
            elif isinstance(result, ScanRetry):
                self.state = ScanState.CAPTURING
                self.status_message = result.message or DEFAULT_RETRY_MESSAGE
            elif isinstance(result, ScanFault):
                self.state = ScanState.CAPTURING
                self.status_message = STATUS_CONNECTING
            else:
                raise TypeError(f"Unsupported scan result: {result!r}")
        self._emit()
        return True

    def cancel(self) -> bool:
        with self._lock:
            if self.terminal:
                return False
            self.cancelled = True
            self.state = ScanState.CANCELLED
            self.status_message = STATUS_CANCELLED
        self._emit()
        return True
