from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional


ProfileSink = Callable[[Dict[str, Any]], None]


@dataclass
class BodyProfileStore:
    root: Path

    @staticmethod
    def default() -> "BodyProfileStore":
        root = Path(__file__).resolve().parent.parent / "sessions"
        root.mkdir(parents=True, exist_ok=True)
        return BodyProfileStore(root=root)

    def path_for(self, profile_name: str) -> Path:
        safe = "".join(c for c in profile_name.lower() if c.isalnum() or c in "-_ ").strip().replace(" ", "_")
        if not safe:
            raise ValueError(f"Invalid profile name: {profile_name!r}")
        out = self.root / safe
        out.mkdir(parents=True, exist_ok=True)
        return out / "body_profile.json"

    def load_body_profile(self, profile_name: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(profile_name)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except Exception:
            return None
        return data if isinstance(data, dict) else None

    def save_body_profile(self, profile_name: str, record: Dict[str, Any]) -> Path:
        path = self.path_for(profile_name)
        # Merge so fields owned by other writers survive.
        data = self.load_body_profile(profile_name) or {}
        data.update(record)
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    def sink_for(self, profile_name: str) -> ProfileSink:
        def _save(record: Dict[str, Any]) -> None:
            self.save_body_profile(profile_name, record)

        return _save
