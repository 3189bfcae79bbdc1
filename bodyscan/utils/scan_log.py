from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path


def default_log_path() -> Path:
    return Path(__file__).resolve().parent.parent.parent / "sessions" / "logs" / "scan.log"


@dataclass(frozen=True)
class ScanLog:
    path: Path

    @staticmethod
    def default() -> "ScanLog":
        return ScanLog(path=default_log_path())

    def write(self, level: str, message: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            line = f"{timestamp} [{level}] {message}\n"
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line)
        except Exception:
            return

    def info(self, message: str) -> None:
        self.write("INFO", message)

    def warning(self, message: str) -> None:
        self.write("WARNING", message)

    def error(self, message: str) -> None:
        self.write("ERROR", message)

    def read_recent(self, max_lines: int = 120) -> str:
        if not self.path.exists():
            return "No logs available."
        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except Exception as exc:
            return f"Unable to read logs: {exc}"
        tail = lines[-max_lines:] if max_lines > 0 else lines
        return "\n".join(tail)
