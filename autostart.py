"""Launch-at-login registration for Windows, macOS and Linux desktops."""
from __future__ import annotations

import logging
import os
import platform
import plistlib
import sys

logger = logging.getLogger(__name__)

# ─── Platform ────────────────────────────────────────────────
IS_MAC = platform.system() == "Darwin"
IS_WIN = platform.system() == "Windows"

APP_NAME = "HydrateStretch"
APP_ID = "com.hydrate.stretch"
REGISTRY_KEY = r"Software\Microsoft\Windows\CurrentVersion\Run"


def launch_command() -> list[str]:
    """Command line that starts the app hidden in the tray."""
    if getattr(sys, "frozen", False):
        return [sys.executable, "--hidden"]
    script = os.path.join(os.path.dirname(os.path.abspath(__file__)), "hydrate_stretch.py")
    exe = sys.executable
    if IS_WIN and exe.lower().endswith("python.exe"):
        # pythonw avoids a console window at login
        exe = exe[: -len("python.exe")] + "pythonw.exe"
    return [exe, script, "--hidden"]


def _quoted(cmd: list[str]) -> str:
    return " ".join(f'"{c}"' if " " in c else c for c in cmd)


def linux_desktop_file() -> str:
    base = os.environ.get("XDG_CONFIG_HOME") or os.path.join(os.path.expanduser("~"), ".config")
    return os.path.join(base, "autostart", f"{APP_NAME}.desktop")


def mac_plist_file() -> str:
    return os.path.join(os.path.expanduser("~"), "Library", "LaunchAgents", f"{APP_ID}.plist")


def get_launch_at_login() -> bool:
    """Check whether the app is registered to start at login."""
    try:
        if IS_WIN:
            import winreg
            key = winreg.OpenKey(winreg.HKEY_CURRENT_USER, REGISTRY_KEY)
            try:
                winreg.QueryValueEx(key, APP_NAME)
                return True
            except FileNotFoundError:
                return False
            finally:
                winreg.CloseKey(key)
        if IS_MAC:
            return os.path.exists(mac_plist_file())
        return os.path.exists(linux_desktop_file())
    except OSError as e:
        logger.warning("Could not read autostart state: %s", e)
        return False


def set_launch_at_login(enable: bool) -> bool:
    """Register or unregister start at login. Returns True on success."""
    cmd = launch_command()
    try:
        if IS_WIN:
            import winreg
            key = winreg.OpenKey(winreg.HKEY_CURRENT_USER, REGISTRY_KEY, 0, winreg.KEY_SET_VALUE)
            try:
                if enable:
                    winreg.SetValueEx(key, APP_NAME, 0, winreg.REG_SZ, _quoted(cmd))
                else:
                    try:
                        winreg.DeleteValue(key, APP_NAME)
                    except FileNotFoundError:
                        pass
            finally:
                winreg.CloseKey(key)
        elif IS_MAC:
            path = mac_plist_file()
            if enable:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(path, "wb") as f:
                    plistlib.dump({"Label": APP_ID, "ProgramArguments": cmd, "RunAtLoad": True}, f)
            elif os.path.exists(path):
                os.remove(path)
        else:
            path = linux_desktop_file()
            if enable:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                with open(path, "w", encoding="utf-8") as f:
                    f.write("[Desktop Entry]\n"
                            "Type=Application\n"
                            "Name=Hydrate & Stretch\n"
                            f"Exec={_quoted(cmd)}\n"
                            "X-GNOME-Autostart-enabled=true\n")
            elif os.path.exists(path):
                os.remove(path)
    except OSError as e:
        logger.warning("Could not %s launch at login: %s", "enable" if enable else "disable", e)
        return False
    logger.info("Launch at login %s", "enabled" if enable else "disabled")
    return True
