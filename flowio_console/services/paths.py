from __future__ import annotations

import os
import sys
from pathlib import Path


def app_root() -> Path:
    if getattr(sys, "frozen", False) and hasattr(sys, "_MEIPASS"):
        return Path(sys._MEIPASS) / "flowio_console"  # type: ignore[attr-defined]
    return Path(__file__).resolve().parents[1]


def schemas_dir() -> Path:
    return app_root() / "schemas"


def user_data_dir() -> Path:
    override = (os.getenv("FLOWIO_CONSOLE_HOME") or "").strip()
    if override:
        return Path(override).expanduser()
    appdata = os.getenv("APPDATA")
    if appdata:
        return Path(appdata) / "FlowIOConsole"
    return Path.home() / ".flowio-console"


def settings_path() -> Path:
    return user_data_dir() / "settings.json"


def event_log_path() -> Path:
    return user_data_dir() / "logs" / "events.log"
