from __future__ import annotations

import contextlib
import io
from pathlib import Path
import tempfile
import unittest

from bodyscan.cli import build_parser, main
from bodyscan.utils.scan_log import ScanLog


class CliTests(unittest.TestCase):
    def _run(self, argv: list[str]) -> tuple[int, str]:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main(argv)
        return code, out.getvalue().strip()

    def test_classify_command_prints_label(self) -> None:
        self.assertEqual(self._run(["classify", "--shoulders", "60", "--waist", "40", "--hips", "50"]), (0, "Inverted Triangle (V-Shape)"))

    def test_classify_uses_chest_when_hips_missing(self) -> None:
        code, out = self._run(["classify", "--shoulders", "40", "--waist", "40", "--chest", "50"])
        self.assertEqual((code, out), (0, "Triangle (Pear)"))

    def test_classify_with_bad_numbers_is_unknown(self) -> None:
        code, out = self._run(["classify", "--shoulders", "wide", "--waist", "40", "--hips", "50"])
        self.assertEqual((code, out), (0, "Unknown"))

    def test_scan_parser_rejects_camera_and_image_together(self) -> None:
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit):
                build_parser().parse_args(["scan", "--height", "175", "--camera", "0", "--image", "a.jpg"])

    def test_logs_command_prints_recent_lines_from_configured_log(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = Path(tmpdir) / "scan.log"
            log = ScanLog(log_path)
            log.info("event=scheduler_start")
            log.error("event=cycle_failed error=camera unplugged")
            config = Path(tmpdir) / "scan.yaml"
            config.write_text(f"log_path: {log_path.as_posix()}\n", encoding="utf-8")

            code, out = self._run(["logs", "--config", str(config), "--lines", "1"])
            self.assertEqual(code, 0)
            self.assertIn("[ERROR] event=cycle_failed", out)
            self.assertNotIn("scheduler_start", out)

    def test_logs_command_without_log_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = Path(tmpdir) / "scan.yaml"
            config.write_text(f"log_path: {(Path(tmpdir) / 'none.log').as_posix()}\n", encoding="utf-8")
            self.assertEqual(self._run(["logs", "--config", str(config)]), (0, "No logs available."))


if __name__ == "__main__":
    unittest.main()
