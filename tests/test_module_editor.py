from __future__ import annotations

import json

import pytest

from conftest import form
from flowio_console.domain.models import FieldKind
from flowio_console.services.module_editor import (
    MASKED_PLACEHOLDER,
    ConfigModuleEditor,
    PatchPreconditionError,
    build_control,
    classify_value,
    is_secret_field,
    parse_float_text,
    parse_int_text,
)


MQTT_MODULE = {
    "ok": True,
    "data": {
        "enabled": True,
        "port": 1883,
        "keepalive": 30.0,
        "ratio": 0.25,
        "host": "broker.local",
        "password": "***",
        "api_token": "plain-visible",
    },
}


def test_classify_value_checks_bool_before_numbers() -> None:
    assert classify_value(True) == FieldKind.BOOL
    assert classify_value(3) == FieldKind.INT
    assert classify_value(3.0) == FieldKind.INT
    assert classify_value(3.5) == FieldKind.FLOAT
    assert classify_value("3") == FieldKind.STRING
    assert classify_value(None) == FieldKind.STRING


def test_secret_detection_is_case_insensitive() -> None:
    assert is_secret_field("wifi_PASS")
    assert is_secret_field("ApiToken")
    assert is_secret_field("client_secret")
    assert not is_secret_field("host")


def test_build_control_masks_secret_sentinel() -> None:
    control = build_control("password", "***")

    assert control.text == ""
    assert control.masked is True
    assert control.placeholder == MASKED_PLACEHOLDER


def test_build_control_steps() -> None:
    assert build_control("port", 1883).step == "1"
    assert build_control("ratio", 0.25).step == "0.001"
    assert build_control("keepalive", 30.0).text == "30"


def test_number_parsing_falls_back_to_zero() -> None:
    assert parse_int_text("abc") == 0
    assert parse_int_text(" 42px") == 42
    assert parse_int_text("-7.9") == -7
    assert parse_float_text("abc") == 0
    assert parse_float_text("1.5e2") == 150.0
    assert parse_float_text("1e999") == 0
    assert parse_float_text(".5") == 0.5


def test_number_parsing_accepts_only_ascii_digits() -> None:
    assert parse_int_text("\u0663") == 0
    assert parse_float_text("\u0663") == 0
    assert parse_int_text("4\u0662") == 4
    assert parse_float_text("\uff11\uff12") == 0


async def test_load_builds_sorted_controls(device, api) -> None:
    device.route("GET", "/api/flowcfg/module", MQTT_MODULE)
    editor = ConfigModuleEditor(api)

    assert await editor.load("/mqtt/") is True

    assert editor.module == "mqtt"
    assert [control.key for control in editor.controls] == sorted(MQTT_MODULE["data"])
    assert editor.apply_enabled is True
    assert editor.message == "Branch loaded."
    assert device.calls("GET", "/api/flowcfg/module")[0].url.params["name"] == "mqtt"


async def test_load_reports_truncated_module(device, api) -> None:
    device.route("GET", "/api/flowcfg/module", {"ok": True, "data": {}, "truncated": True})
    editor = ConfigModuleEditor(api)

    await editor.load("pool")

    assert editor.message == "Branch loaded (truncated, remote buffer full)."


async def test_load_failure_resets_editor(device, api) -> None:
    device.route("GET", "/api/flowcfg/module", {"ok": False})
    editor = ConfigModuleEditor(api)

    assert await editor.load("mqtt") is False

    assert editor.loaded is False
    assert editor.apply_enabled is False
    assert editor.message.startswith("Failed to load branch:")


async def test_unchanged_masked_secret_is_omitted_from_patch(device, api) -> None:
    device.route("GET", "/api/flowcfg/module", MQTT_MODULE)
    editor = ConfigModuleEditor(api)
    await editor.load("mqtt")

    patch = editor.build_patch()

    assert patch == {
        "mqtt": {
            "api_token": "plain-visible",
            "enabled": True,
            "host": "broker.local",
            "keepalive": 30,
            "port": 1883,
            "ratio": 0.25,
        }
    }


async def test_edited_fields_are_coerced_by_kind(device, api) -> None:
    device.route("GET", "/api/flowcfg/module", MQTT_MODULE)
    editor = ConfigModuleEditor(api)
    await editor.load("mqtt")

    editor.set_field("port", "abc")
    editor.set_field("ratio", "0.5")
    editor.set_field("enabled", False)
    editor.set_field("password", "n3w")

    fields = editor.build_patch()["mqtt"]
    assert fields["port"] == 0
    assert fields["ratio"] == 0.5
    assert fields["enabled"] is False
    assert fields["password"] == "n3w"


async def test_build_patch_requires_a_loaded_module(api) -> None:
    editor = ConfigModuleEditor(api)

    with pytest.raises(PatchPreconditionError):
        editor.build_patch()

    assert await editor.apply() is False
    assert editor.message.startswith("Failed to apply configuration:")


async def test_apply_posts_patch_then_reloads(device, api) -> None:
    device.route("GET", "/api/flowcfg/module", MQTT_MODULE)
    device.route("POST", "/api/flowcfg/apply", {"ok": True})
    messages: list[str] = []
    editor = ConfigModuleEditor(api, on_message=messages.append)
    await editor.load("mqtt")

    assert await editor.apply() is True

    patch = json.loads(form(device.calls("POST", "/api/flowcfg/apply")[0])["patch"])
    assert "password" not in patch["mqtt"]
    assert "Configuration applied to Flow.IO." in messages
    assert len(device.calls("GET", "/api/flowcfg/module")) == 2
    assert editor.message == "Branch loaded."


async def test_apply_failure_keeps_form(device, api) -> None:
    device.route("GET", "/api/flowcfg/module", MQTT_MODULE)
    device.route("POST", "/api/flowcfg/apply", {"ok": False})
    editor = ConfigModuleEditor(api)
    await editor.load("mqtt")

    assert await editor.apply() is False

    assert editor.loaded is True
    assert editor.message.startswith("Failed to apply configuration:")
