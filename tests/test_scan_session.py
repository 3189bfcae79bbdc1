from __future__ import annotations

import unittest

from bodyscan.classify import HOURGLASS
from bodyscan.scan_client import ScanFault, ScanRetry, ScanSuccess
from bodyscan.scan_session import (
    STATUS_ALIGNING,
    STATUS_ANALYZING,
    STATUS_CONNECTING,
    ScanSession,
    ScanState,
    ScanValidationError,
)


class ScanSessionTests(unittest.TestCase):
    def _started(self) -> ScanSession:
        session = ScanSession()
        session.start(175)
        return session

    def test_start_requires_positive_height(self) -> None:
        for height in (0, -5, None, "", "tall"):
            with self.subTest(height=height):
                session = ScanSession()
                with self.assertRaises(ScanValidationError):
                    session.start(height)
                self.assertEqual(session.state, ScanState.IDLE)

    def test_start_moves_to_calibrating(self) -> None:
        snap = ScanSession().start("180")
        self.assertEqual(snap.state, ScanState.CALIBRATING)
        self.assertEqual(snap.status_message, STATUS_ALIGNING)
        self.assertEqual(snap.height_cm, 180.0)

    def test_start_twice_is_rejected(self) -> None:
        session = self._started()
        with self.assertRaises(ScanValidationError):
            session.start(175)

    def test_first_cycle_moves_to_capturing_and_claims_slot(self) -> None:
        session = self._started()
        self.assertTrue(session.begin_cycle())
        self.assertEqual(session.state, ScanState.CAPTURING)
        self.assertEqual(session.status_message, STATUS_ANALYZING)
        self.assertTrue(session.attempt_in_flight)
        self.assertFalse(session.begin_cycle())

    def test_idle_session_cannot_cycle(self) -> None:
        self.assertFalse(ScanSession().begin_cycle())

    def test_retry_returns_to_capturing_with_service_message(self) -> None:
        session = self._started()
        session.begin_cycle()
        self.assertTrue(session.frame_captured())
        self.assertEqual(session.state, ScanState.AWAITING_RESULT)
        session.apply_result(ScanRetry("Feet not visible"))
        self.assertEqual(session.state, ScanState.CAPTURING)
        self.assertEqual(session.status_message, "Feet not visible")
        self.assertFalse(session.attempt_in_flight)

    def test_fault_returns_to_capturing_silently(self) -> None:
        session = self._started()
        session.begin_cycle()
        session.frame_captured()
        session.apply_result(ScanFault("timeout"))
        self.assertEqual(session.state, ScanState.CAPTURING)
        self.assertEqual(session.status_message, STATUS_CONNECTING)

    def test_success_commits_measurements_and_local_label(self) -> None:
        session = self._started()
        session.begin_cycle()
        session.frame_captured()
        session.apply_result(ScanSuccess(shoulders=50, chest=90, waist=38, hips=50, body_type="Rectangle"))
        snap = session.snapshot()
        self.assertEqual(snap.state, ScanState.SUCCESS)
        assert snap.measurements is not None
        self.assertEqual(snap.measurements.height_cm, 175.0)
        self.assertEqual(snap.measurements.waist, 38.0)
        self.assertEqual(snap.body_type, HOURGLASS)
        self.assertEqual(snap.service_body_type, "Rectangle")

    def test_terminal_states_have_no_exits(self) -> None:
        session = self._started()
        session.begin_cycle()
        session.apply_result(ScanSuccess(50, 90, 40, 50))
        self.assertFalse(session.cancel())
        self.assertFalse(session.begin_cycle())
        self.assertFalse(session.apply_result(ScanRetry("late")))
        self.assertEqual(session.state, ScanState.SUCCESS)

    def test_cancel_discards_in_flight_result(self) -> None:
        session = self._started()
        session.begin_cycle()
        session.frame_captured()
        self.assertTrue(session.cancel())
        self.assertFalse(session.apply_result(ScanSuccess(50, 90, 40, 50)))
        snap = session.snapshot()
        self.assertEqual(snap.state, ScanState.CANCELLED)
        self.assertTrue(snap.cancelled)
        self.assertIsNone(snap.measurements)

    def test_subscribers_see_each_transition_and_bad_ones_are_skipped(self) -> None:
        seen: list[ScanState] = []

        def _boom(_snapshot) -> None:
            raise RuntimeError("listener failure")

        session = ScanSession()
        session.subscribe(_boom, emit_initial=False)
        token = session.subscribe(lambda snap: seen.append(snap.state))
        session.start(170)
        session.begin_cycle()
        session.unsubscribe(token)
        session.cancel()
        self.assertEqual(seen, [ScanState.IDLE, ScanState.CALIBRATING, ScanState.CAPTURING])


if __name__ == "__main__":
    unittest.main()
