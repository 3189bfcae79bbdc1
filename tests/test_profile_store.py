from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from bodyscan.measurements import MeasurementSet
from bodyscan.profile_store import BodyProfileStore


class BodyProfileStoreTests(unittest.TestCase):
    def test_sink_persists_record_and_merges_existing_fields(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = BodyProfileStore(root=Path(tmpdir))
            store.save_body_profile("Alex Doe", {"displayName": "Alex"})
            sink = store.sink_for("Alex Doe")
            record = MeasurementSet(height_cm=170, shoulders=44).to_profile_record("Unknown")
            sink(record)

            loaded = store.load_body_profile("Alex Doe")
            assert loaded is not None
            self.assertEqual(loaded["displayName"], "Alex")
            self.assertEqual(loaded["height"], 170.0)
            self.assertEqual(loaded["bodyType"], "Unknown")
            self.assertEqual(store.path_for("Alex Doe").parent.name, "alex_doe")

    def test_missing_or_corrupt_profile_loads_as_none(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            store = BodyProfileStore(root=Path(tmpdir))
            self.assertIsNone(store.load_body_profile("nobody"))
            store.path_for("broken").write_text("{not json", encoding="utf-8")
            self.assertIsNone(store.load_body_profile("broken"))

    def test_empty_profile_name_is_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(ValueError):
                BodyProfileStore(root=Path(tmpdir)).path_for("???")


if __name__ == "__main__":
    unittest.main()
