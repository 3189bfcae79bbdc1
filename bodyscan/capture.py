"""Still-frame sources for the scan loop.

Supported sources:
- Webcam via OpenCV (index or Linux device path).
- A still image on disk, re-encoded on every capture.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

import cv2
import numpy as np


class FrameSource(Protocol):
    def start(self) -> None: ...

    def capture(self) -> bytes: ...

    def stop(self) -> None: ...


def encode_jpeg(frame: np.ndarray, quality: int = 40) -> bytes:
    if frame is None or frame.size == 0:
        raise RuntimeError("Cannot encode an empty frame.")
    ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise RuntimeError("JPEG encoding failed.")
    return buf.tobytes()


@dataclass
class CameraFrameSource:
    # Either an integer index (0, 1, 2, ...) or a device path such as /dev/video2.
    device: Union[int, str] = 0
    width: int = 1280
    height: int = 720
    jpeg_quality: int = 40

    _cap: Optional[cv2.VideoCapture] = None

    def start(self) -> None:
        if self._cap is not None:
            return
        device = self.device
        if isinstance(device, str) and device.isdigit():
            device = int(device)
        cap = cv2.VideoCapture(device)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(
                f"OpenCV could not open the camera {self.device!r}. "
                "Try another index or a device path like /dev/video2."
            )
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, float(self.width))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, float(self.height))
        self._cap = cap

    def capture(self) -> bytes:
        if self._cap is None:
            self.start()
        if self._cap is None:
            raise RuntimeError("Camera is not open.")
        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise RuntimeError("Camera returned no frame.")
        return encode_jpeg(frame, self.jpeg_quality)

    def stop(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


@dataclass
class ImageFileFrameSource:
    path: Path
    jpeg_quality: int = 40

    def start(self) -> None:
        if not Path(self.path).is_file():
            raise RuntimeError(f"Image not found: {self.path}")

    def capture(self) -> bytes:
        raw = np.fromfile(str(self.path), dtype=np.uint8)
        frame = cv2.imdecode(raw, cv2.IMREAD_COLOR) if raw.size else None
        if frame is None:
            raise RuntimeError(f"Could not decode image: {self.path}")
        return encode_jpeg(frame, self.jpeg_quality)

    def stop(self) -> None:
        return
