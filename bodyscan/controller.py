from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional

from .classify import classify_measurements
from .measurements import SCANNED_FIELDS, MeasurementSet
from .profile_store import ProfileSink
from .scan_session import ScanSession, ScanSnapshot, ScanState, ScanValidationError
from .scheduler import CaptureScheduler
from .utils.scan_log import ScanLog


SchedulerFactory = Callable[[], CaptureScheduler]


class MeasurementsController:
    """Owns the measurement form, its live label, and at most one scan session."""

    def __init__(
        self,
        scheduler_factory: SchedulerFactory,
        sink: Optional[ProfileSink] = None,
        measurements: Optional[MeasurementSet] = None,
        log: Optional[ScanLog] = None,
        on_change: Optional[Callable[[ScanSnapshot], None]] = None,
    ) -> None:
        self._scheduler_factory = scheduler_factory
        self._sink = sink
        self._log = log or ScanLog.default()
        self._on_change = on_change
        self._lock = threading.RLock()
        self.measurements = measurements or MeasurementSet()
        self.body_type = classify_measurements(self.measurements)
        self.session: Optional[ScanSession] = None
        self.scheduler: Optional[CaptureScheduler] = None

    @property
    def scanning(self) -> bool:
        session = self.session
        return session is not None and session.active

    def edit(self, **fields: Any) -> str:
        with self._lock:
            self.measurements = self.measurements.with_updates(**fields)
            self.body_type = classify_measurements(self.measurements)
            return self.body_type

    def start_scan(self) -> ScanSession:
        with self._lock:
            if self.scanning:
                raise ScanValidationError("A scan is already running.")
            if not self.measurements.has_calibration_height:
                raise ScanValidationError("Height missing: please enter your height first to calibrate.")
            session = ScanSession()
            session.start(self.measurements.height_cm)
            session.subscribe(self._on_session_update, emit_initial=False)
            scheduler = self._scheduler_factory()
            self.session = session
            self.scheduler = scheduler
            self._log.info(f"event=scan_started height_cm={self.measurements.height_cm:g}")
        scheduler.start(session)
        return session

    def cancel_scan(self) -> bool:
        with self._lock:
            session = self.session
            scheduler = self.scheduler
        if session is None:
            return False
        # Cancel first: a terminal session rejects any result still in flight.
        cancelled = session.cancel()
        if scheduler is not None:
            scheduler.stop(session)
        if cancelled:
            self._log.info("event=scan_cancelled")
        return cancelled

    def close(self) -> None:
        self.cancel_scan()
        with self._lock:
            self.session = None
            self.scheduler = None

    def save(self) -> Dict[str, Any]:
        with self._lock:
            record = self.measurements.to_profile_record(self.body_type)
        if self._sink is not None:
            self._sink(record)
            self._log.info(f"event=profile_saved body_type={record['bodyType']}")
        return record

    def _on_session_update(self, snapshot: ScanSnapshot) -> None:
        if snapshot.state == ScanState.SUCCESS and snapshot.measurements is not None:
            scanned = {name: getattr(snapshot.measurements, name) for name in SCANNED_FIELDS}
            label = self.edit(**scanned)
            self._log.info(
                f"event=scan_committed body_type={label} service_body_type={snapshot.service_body_type}"
            )
        if self._on_change is not None:
            self._on_change(snapshot)
