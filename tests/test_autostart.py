from __future__ import annotations

import os
import plistlib
import tempfile
import unittest
from unittest.mock import patch

import autostart


class AutostartTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self._env = patch.dict(os.environ, {"XDG_CONFIG_HOME": self._tmp.name})
        self._env.start()

    def tearDown(self) -> None:
        self._env.stop()
        self._tmp.cleanup()


@patch("autostart.IS_WIN", False)
@patch("autostart.IS_MAC", False)
class LinuxAutostartTests(AutostartTestCase):
    def test_enable_writes_desktop_entry(self) -> None:
        self.assertFalse(autostart.get_launch_at_login())
        self.assertTrue(autostart.set_launch_at_login(True))

        path = os.path.join(self._tmp.name, "autostart", "HydrateStretch.desktop")
        with open(path, encoding="utf-8") as f:
            entry = f.read()
        self.assertIn("[Desktop Entry]", entry)
        self.assertIn("--hidden", entry)
        self.assertTrue(autostart.get_launch_at_login())

    def test_disable_removes_entry(self) -> None:
        autostart.set_launch_at_login(True)
        self.assertTrue(autostart.set_launch_at_login(False))
        self.assertFalse(autostart.get_launch_at_login())
        # Disabling twice is fine
        self.assertTrue(autostart.set_launch_at_login(False))

    def test_write_failure_reports_false(self) -> None:
        with patch("autostart.os.makedirs", side_effect=PermissionError("read-only")):
            with self.assertLogs("autostart", "WARNING"):
                self.assertFalse(autostart.set_launch_at_login(True))


@patch("autostart.IS_WIN", False)
@patch("autostart.IS_MAC", True)
class MacAutostartTests(AutostartTestCase):
    def test_enable_writes_launch_agent(self) -> None:
        plist = os.path.join(self._tmp.name, "LaunchAgents", "com.hydrate.stretch.plist")
        with patch("autostart.mac_plist_file", return_value=plist):
            self.assertTrue(autostart.set_launch_at_login(True))
            with open(plist, "rb") as f:
                data = plistlib.load(f)
            self.assertEqual(data["Label"], "com.hydrate.stretch")
            self.assertTrue(data["RunAtLoad"])
            self.assertEqual(data["ProgramArguments"][-1], "--hidden")
            self.assertTrue(autostart.get_launch_at_login())

            autostart.set_launch_at_login(False)
            self.assertFalse(autostart.get_launch_at_login())


class LaunchCommandTests(unittest.TestCase):
    def test_script_launch_command(self) -> None:
        with patch("autostart.IS_WIN", False):
            cmd = autostart.launch_command()
        self.assertTrue(cmd[1].endswith("hydrate_stretch.py"))
        self.assertEqual(cmd[-1], "--hidden")


if __name__ == "__main__":
    unittest.main()
