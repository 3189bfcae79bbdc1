from __future__ import annotations

import argparse
import json
import threading
from pathlib import Path
from typing import Optional

from .capture import CameraFrameSource, FrameSource, ImageFileFrameSource
from .classify import classify_measurements
from .config import ScanConfig, load_scan_config
from .controller import MeasurementsController
from .measurements import MeasurementSet
from .profile_store import BodyProfileStore
from .scan_client import ScanClient
from .scan_session import ScanSnapshot, ScanState, ScanValidationError
from .scheduler import CaptureScheduler
from .utils.scan_log import ScanLog


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bodyscan",
        description="Hands-free body scan: capture, measure remotely, classify body shape.",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    p_scan = sub.add_parser("scan", help="Run one scan until it succeeds or is cancelled (Ctrl+C)")
    p_scan.add_argument("--height", required=True, help="Calibration height in cm")
    p_scan.add_argument("--weight", default=None, help="Weight in kg (optional)")
    src = p_scan.add_mutually_exclusive_group()
    src.add_argument(
        "--camera",
        "--cam-index",
        dest="camera",
        type=str,
        default=None,
        help="Camera index (e.g. 0, 1, 2) or Linux device path (e.g. /dev/video2).",
    )
    src.add_argument("--image", default=None, help="Submit a still image file instead of the camera.")
    p_scan.add_argument("--api-url", default=None, help="Scan service endpoint (default from config).")
    p_scan.add_argument("--interval", type=float, default=None, help="Seconds between scan cycles.")
    p_scan.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds.")
    p_scan.add_argument("--config", default=None, help="YAML config file.")
    p_scan.add_argument("--profile", default=None, help="Save the result to this body profile.")

    p_cls = sub.add_parser("classify", help="Classify body shape from measurements")
    p_cls.add_argument("--shoulders", required=True)
    p_cls.add_argument("--waist", required=True)
    p_cls.add_argument("--hips", default=None)
    p_cls.add_argument("--chest", default=None)

    p_prof = sub.add_parser("profile", help="Body profile storage")
    subp = p_prof.add_subparsers(dest="action", required=True)
    p_show = subp.add_parser("show", help="Show a stored body profile")
    p_show.add_argument("--name", required=True)

    p_logs = sub.add_parser("logs", help="Show recent scan log lines")
    p_logs.add_argument("--lines", type=int, default=120, help="Number of trailing lines (0 = all).")
    p_logs.add_argument("--config", default=None, help="YAML config file (for log_path).")

    return p


def _resolve_config(args: argparse.Namespace) -> ScanConfig:
    cfg = load_scan_config(Path(args.config) if args.config else None)
    overrides = {}
    if args.api_url:
        overrides["api_url"] = args.api_url
    if args.interval is not None:
        overrides["interval_seconds"] = args.interval
    if args.timeout is not None:
        overrides["request_timeout_seconds"] = args.timeout
    if args.camera is not None:
        overrides["camera"] = int(args.camera) if str(args.camera).isdigit() else str(args.camera)
    if not overrides:
        return cfg
    return ScanConfig.model_validate({**cfg.model_dump(), **overrides})


def _open_frame_source(cfg: ScanConfig, image: Optional[str]) -> FrameSource:
    if image:
        return ImageFileFrameSource(path=Path(image), jpeg_quality=cfg.jpeg_quality)
    return CameraFrameSource(
        device=cfg.camera,
        width=cfg.width,
        height=cfg.height,
        jpeg_quality=cfg.jpeg_quality,
    )


def run_scan(args: argparse.Namespace) -> int:
    try:
        cfg = _resolve_config(args)
    except ValueError as exc:
        print(f"[bodyscan] {exc}")
        return 2
    log = ScanLog(path=cfg.log_path) if cfg.log_path else ScanLog.default()
    source = _open_frame_source(cfg, args.image)
    client = ScanClient(api_url=cfg.api_url, timeout_seconds=cfg.request_timeout_seconds, log=log)

    done = threading.Event()
    last_status = {"text": ""}

    def _on_change(snapshot: ScanSnapshot) -> None:
        if snapshot.status_message != last_status["text"]:
            last_status["text"] = snapshot.status_message
            print(f"[bodyscan] {snapshot.status_message}")
        if snapshot.terminal:
            done.set()

    sink = None
    if args.profile:
        sink = BodyProfileStore.default().sink_for(args.profile)
    controller = MeasurementsController(
        scheduler_factory=lambda: CaptureScheduler(source, client, interval_seconds=cfg.interval_seconds, log=log),
        sink=sink,
        measurements=MeasurementSet(height_cm=args.height, weight_kg=args.weight),
        log=log,
        on_change=_on_change,
    )

    try:
        source.start()
    except RuntimeError as exc:
        log.error(f"event=source_start_failed error={exc}")
        print(f"[bodyscan] {exc}")
        return 2
    try:
        try:
            controller.start_scan()
        except ScanValidationError as exc:
            print(f"[bodyscan] {exc}")
            return 2
        try:
            while not done.wait(0.2):
                pass
        except KeyboardInterrupt:
            controller.cancel_scan()
        session = controller.session
        if session is None or session.state != ScanState.SUCCESS:
            print("[bodyscan] Scan cancelled.")
            return 1
        record = controller.save()
        print(json.dumps(record, indent=2))
        return 0
    finally:
        controller.close()
        source.stop()
        client.close()


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    if args.cmd == "scan":
        return run_scan(args)

    if args.cmd == "classify":
        ms = MeasurementSet(shoulders=args.shoulders, waist=args.waist, hips=args.hips, chest=args.chest)
        print(classify_measurements(ms))
        return 0

    if args.cmd == "logs":
        try:
            cfg = load_scan_config(Path(args.config) if args.config else None)
        except ValueError as exc:
            print(f"[bodyscan] {exc}")
            return 2
        log = ScanLog(path=cfg.log_path) if cfg.log_path else ScanLog.default()
        print(log.read_recent(max_lines=args.lines))
        return 0

    if args.cmd == "profile" and args.action == "show":
        record = BodyProfileStore.default().load_body_profile(args.name)
        if record is None:
            print(f"No body profile stored for: {args.name}")
            return 1
        print(json.dumps(record, indent=2))
        return 0

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
