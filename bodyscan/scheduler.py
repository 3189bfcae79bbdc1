from __future__ import annotations

import threading
from typing import Callable, Optional, Protocol

from .scan_client import ScanFault, ScanResult
from .scan_session import ScanSession
from .utils.scan_log import ScanLog


class FrameCapture(Protocol):
    def capture(self) -> bytes: ...


class ScanSubmitter(Protocol):
    def submit(self, image_bytes: bytes, height_cm: float) -> ScanResult: ...


CycleRunner = Callable[[Callable[[], None]], None]


def _thread_runner(job: Callable[[], None]) -> None:
    threading.Thread(target=job, name="bodyscan-cycle", daemon=True).start()


class CaptureScheduler:
    """Runs capture+submit cycles for one session on a fixed cadence.

    At most one cycle is outstanding; ticks that arrive while a request is in
    flight are dropped. ``stop`` never aborts a request, it only discards its
    result.
    """

    def __init__(
        self,
        frame_source: FrameCapture,
        client: ScanSubmitter,
        interval_seconds: float = 2.0,
        runner: CycleRunner = _thread_runner,
        log: Optional[ScanLog] = None,
    ) -> None:
        self.frame_source = frame_source
        self.client = client
        self.interval_seconds = float(interval_seconds)
        self._runner = runner
        self._log = log or ScanLog.default()
        self._session: Optional[ScanSession] = None
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()
        self._stopped.set()
        self._lock = threading.Lock()
        # Held around the stop check + apply so stop() and a late result never interleave.
        self._apply_lock = threading.RLock()
        self.requests_issued = 0
        self.ticks_skipped = 0

    @property
    def running(self) -> bool:
        return not self._stopped.is_set()

    def start(self, session: ScanSession, use_timer: bool = True) -> None:
        with self._lock:
            if self.running:
                raise RuntimeError("Capture scheduler is already running.")
            if not session.active:
                raise RuntimeError(f"Cannot schedule a session in state {session.state.value}.")
            self._session = session
            # Fresh token per run so a late result from a previous run is ignored.
            self._stopped = threading.Event()
            self._log.info(
                f"event=scheduler_start interval={self.interval_seconds:.2f}s height_cm={session.height_cm:g}"
            )
            if not use_timer:
                return
            self._thread = threading.Thread(
                target=self._run_timer,
                args=(session, self._stopped),
                name="bodyscan-timer",
                daemon=True,
            )
            self._thread.start()

    def stop(self, session: Optional[ScanSession] = None) -> None:
        with self._apply_lock, self._lock:
            if session is not None and session is not self._session:
                return
            if self._stopped.is_set():
                return
            self._stopped.set()
            thread = self._thread
            self._thread = None
            self._log.info("event=scheduler_stop")
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def tick(self) -> bool:
        """Run one cadence step. Returns True if a new cycle was issued."""
        with self._apply_lock:
            session = self._session
            stopped = self._stopped
            if session is None or stopped.is_set():
                return False
            finished = session.terminal
            claimed = not finished and session.begin_cycle()
            if claimed:
                self.requests_issued += 1
            elif not finished:
                self.ticks_skipped += 1
                self._log.info("event=tick_skipped reason=attempt_in_flight")
        if finished:
            self.stop(session)
            return False
        if not claimed:
            return False
        self._runner(lambda: self._run_cycle(session, stopped))
        return True

    def _run_timer(self, session: ScanSession, stopped: threading.Event) -> None:
        while not stopped.is_set():
            self.tick()
            if session.terminal:
                self.stop(session)
                break
            if stopped.wait(self.interval_seconds):
                break

    def _run_cycle(self, session: ScanSession, stopped: threading.Event) -> None:
        result: Optional[ScanResult] = None
        try:
            image = self.frame_source.capture()
            # Nothing is sent once the session has left CAPTURING (e.g. cancelled).
            if not stopped.is_set() and session.frame_captured():
                result = self.client.submit(image, session.height_cm)
        except Exception as exc:
            self._log.error(f"event=cycle_failed error={exc}")
            result = ScanFault(f"Capture failed: {exc}")

        # stop() takes the same lock, so once it returns no result can land.
        with self._apply_lock:
            if stopped.is_set():
                name = type(result).__name__ if result is not None else "None"
                self._log.info(f"event=result_discarded result={name}")
                return
            if result is None:
                applied = session.apply_result(ScanFault("Cycle abandoned before submit."))
                self._log.info(f"event=submit_skipped applied={applied} state={session.state.value}")
            else:
                applied = session.apply_result(result)
                self._log.info(
                    f"event=cycle_result result={type(result).__name__} applied={applied} state={session.state.value}"
                )
        if session.terminal:
            self.stop(session)
