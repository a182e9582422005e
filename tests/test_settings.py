from __future__ import annotations

import json
import logging

import pytest

from flowio_console.services import settings as settings_module
from flowio_console.services.settings import (
    ConsoleSettings,
    configure_logging,
    load_settings,
    save_settings,
)


def test_defaults_without_file_or_env(tmp_path) -> None:
    settings = load_settings(tmp_path / "missing.json", env={})

    assert settings.base_url == "http://flowio.local"
    assert settings.request_timeout_seconds == 8.0
    assert settings.upgrade_poll_seconds == 2.0
    assert settings.scan_poll_seconds == 1.2
    assert settings.log_capacity == 2000


def test_file_then_env_then_overrides(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"base_url": "http://from-file", "log_capacity": 500}),
        encoding="utf-8",
    )

    settings = load_settings(
        path,
        env={"FLOWIO_CONSOLE_URL": "192.168.4.1/", "FLOWIO_CONSOLE_TIMEOUT": "3"},
        request_timeout_seconds=None,
        scan_poll_seconds=0.5,
    )

    assert settings.base_url == "http://192.168.4.1"
    assert settings.request_timeout_seconds == 3.0
    assert settings.log_capacity == 500
    assert settings.scan_poll_seconds == 0.5


def test_unreadable_file_is_ignored(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert load_settings(path, env={}).base_url == "http://flowio.local"


def test_invalid_values_raise_value_error(tmp_path) -> None:
    with pytest.raises(ValueError):
        load_settings(tmp_path / "missing.json", env={"FLOWIO_CONSOLE_TIMEOUT": "-1"})


def test_save_then_load_keeps_values(tmp_path) -> None:
    path = tmp_path / "nested" / "settings.json"
    save_settings(ConsoleSettings(base_url="https://pool.example/", log_capacity=10), path)

    loaded = load_settings(path, env={})

    assert loaded.base_url == "https://pool.example"
    assert loaded.log_capacity == 10


def test_configure_logging_installs_one_handler(monkeypatch) -> None:
    root = logging.getLogger()
    before = list(root.handlers)
    monkeypatch.setattr(settings_module, "_LOGGING_CONFIGURED", False)

    try:
        configure_logging(logging.DEBUG)
        configure_logging(logging.INFO)

        added = [handler for handler in root.handlers if handler not in before]
        assert len(added) == 1
        assert root.level == logging.INFO
    finally:
        for handler in root.handlers[:]:
            if handler not in before:
                root.removeHandler(handler)
