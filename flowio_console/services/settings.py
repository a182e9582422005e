from __future__ import annotations

import json
import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from flowio_console.services.paths import event_log_path
from flowio_console.services.paths import settings_path as default_settings_path


logger = logging.getLogger(__name__)

URL_ENV = "FLOWIO_CONSOLE_URL"
TIMEOUT_ENV = "FLOWIO_CONSOLE_TIMEOUT"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_LOGGING_CONFIGURED = False


class ConsoleSettings(BaseModel):
    base_url: str = "http://flowio.local"
    request_timeout_seconds: float = Field(default=8.0, gt=0)
    upgrade_poll_seconds: float = Field(default=2.0, gt=0)
    scan_poll_seconds: float = Field(default=1.2, gt=0)
    log_capacity: int = Field(default=2000, ge=1)
    event_log_path: Path = Field(default_factory=event_log_path)

    @field_validator("base_url", mode="after")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        cleaned = value.strip().rstrip("/")
        if not cleaned:
            raise ValueError("base_url is required.")
        if "://" not in cleaned:
            cleaned = f"http://{cleaned}"
        return cleaned


def _read_settings_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return {}
    if not isinstance(raw, dict):
        logger.warning("Ignoring settings file %s: top level is not an object", path)
        return {}
    return raw


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
    **overrides: Any,
) -> ConsoleSettings:
    """Build settings from the JSON file, then the environment, then explicit overrides.

    Keyword overrides set to ``None`` are ignored so CLI flags can be passed through
    unconditionally.
    """
    env = os.environ if env is None else env
    values = _read_settings_file(path or default_settings_path())

    url = (env.get(URL_ENV) or "").strip()
    if url:
        values["base_url"] = url
    timeout = (env.get(TIMEOUT_ENV) or "").strip()
    if timeout:
        values["request_timeout_seconds"] = timeout

    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return ConsoleSettings.model_validate(values)
    except ValidationError as exc:
        raise ValueError(f"Invalid console settings: {exc.errors()[0]['msg']}") from exc


def save_settings(settings: ConsoleSettings, path: Path | None = None) -> Path:
    target = path or default_settings_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(
        json.dumps(settings.model_dump(mode="json"), indent=2, sort_keys=True),
        encoding="utf-8",
    )
    return target


def configure_logging(level: int = logging.INFO) -> None:
    global _LOGGING_CONFIGURED

    root = logging.getLogger()
    root.setLevel(level)
    if _LOGGING_CONFIGURED:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _LOGGING_CONFIGURED = True
