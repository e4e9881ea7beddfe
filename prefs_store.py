"""Load and save Hydrate & Stretch preferences as a flat JSON file."""
from __future__ import annotations

import json
import logging
import os
from typing import Any

from reminders import Preferences, TestFirePolicy, clamp_interval, parse_hhmm

logger = logging.getLogger(__name__)

# ─── Config ───────────────────────────────────────────────────
CONFIG_FILE = os.path.join(os.path.expanduser("~"), "hydrate_stretch_config.json")

PREF_KEYS = frozenset(Preferences().to_dict())
INTERVAL_KEYS = ("hydration_interval", "stretch_interval")

DEFAULT_CONFIG = {
    **Preferences().to_dict(),
    # App behaviour (not scheduling preferences)
    "test_fire_policy": TestFirePolicy.ISOLATED.value,  # "shared" = test toasts also debounce real ones
    "open_settings_on_start": True,
}


def load_config(path: str | None = None, test_mode: bool = False) -> dict[str, Any]:
    """Load config from file, falling back to defaults for missing/invalid values."""
    path = path or CONFIG_FILE
    defaults = json.loads(json.dumps(DEFAULT_CONFIG))
    if os.path.exists(path):
        try:
            with open(path, encoding="utf-8") as f:
                user_cfg = json.load(f)
            if isinstance(user_cfg, dict):
                defaults.update(user_cfg)
            else:
                logger.warning("Config %s is not a JSON object. Using defaults.", path)
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning("Config load error: %s. Using defaults.", e)

    if test_mode:
        for key in INTERVAL_KEYS:
            defaults[key] = 1

    # Validate fields; a bad value falls back to its default
    for key in INTERVAL_KEYS:
        try:
            defaults[key] = clamp_interval(defaults[key])
        except ValueError:
            defaults[key] = DEFAULT_CONFIG[key]
    for key in ("work_start", "work_end"):
        try:
            parse_hhmm(defaults[key])
        except ValueError:
            defaults[key] = DEFAULT_CONFIG[key]
    for key in ("hydration_enabled", "stretch_enabled", "weekdays_only",
                "work_hours_only", "open_settings_on_start"):
        if not isinstance(defaults.get(key), bool):
            defaults[key] = DEFAULT_CONFIG[key]
    for key in ("hydration_message", "stretch_message"):
        if not isinstance(defaults.get(key), str):
            defaults[key] = DEFAULT_CONFIG[key]
    if defaults.get("test_fire_policy") not in {p.value for p in TestFirePolicy}:
        defaults["test_fire_policy"] = DEFAULT_CONFIG["test_fire_policy"]

    return defaults


def save_config(cfg: dict[str, Any], path: str | None = None, test_mode: bool = False) -> None:
    """Save config to file. In test mode the stored intervals are kept, not the forced ones."""
    path = path or CONFIG_FILE
    if test_mode:
        stored = load_config(path)
        cfg = {**cfg, **{k: stored[k] for k in INTERVAL_KEYS}}
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(cfg, f, indent=2, ensure_ascii=False)
    except OSError as e:
        logger.warning("Config save error: %s", e)


def preferences_from_config(cfg: dict[str, Any]) -> Preferences:
    return Preferences().merged({k: v for k, v in cfg.items() if k in PREF_KEYS})


def fire_policy_from_config(cfg: dict[str, Any]) -> TestFirePolicy:
    return TestFirePolicy(cfg.get("test_fire_policy", TestFirePolicy.ISOLATED.value))
