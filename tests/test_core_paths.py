import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from core import paths as core_paths


class CorePathsTests(unittest.TestCase):
    def test_env_home_takes_precedence(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "home"
            with mock.patch.dict(os.environ, {"SMARTDUMP_HOME": str(target)}):
                resolved = core_paths.resolve_working_dir()
            self.assertEqual(resolved, target.resolve())
            self.assertTrue(resolved.is_dir())

    def test_falls_back_to_user_home(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch.object(core_paths, "_env_home", return_value=None), mock.patch.object(
                core_paths.Path, "home", return_value=Path(tmp)
            ):
                resolved = core_paths.resolve_working_dir()
            self.assertEqual(resolved, Path(tmp) / ".smartdump")

    def test_settings_search_order(self) -> None:
        working_dir = Path("/tmp/smartdump-test")
        candidates = core_paths.get_default_settings_paths(working_dir)
        self.assertEqual(candidates[0], working_dir / "settings.json")
        self.assertEqual(len(candidates), 2)

    def test_logs_dir_sits_under_working_dir(self) -> None:
        working_dir = Path("/tmp/smartdump-test")
        self.assertEqual(core_paths.get_logs_dir(working_dir), working_dir / "logs")


if __name__ == "__main__":
    unittest.main()
