from __future__ import annotations

import json

import pytest

from flowio_console.services.event_log import EventLogService
from flowio_console.services.system_actions import FLOW_FACTORY_RESET_PROMPT, SystemActionsPanel


async def test_reboot_supervisor_reports_success(device, api) -> None:
    device.route("POST", "/api/system/reboot", {"ok": True})
    panel = SystemActionsPanel(api)

    assert await panel.reboot("supervisor") is True

    assert panel.message == "Supervisor reboot started..."


async def test_flow_factory_reset_requires_confirmation(device, api) -> None:
    device.route("POST", "/api/flow/system/factory-reset", {"ok": True})
    prompts: list[str] = []

    def decline(prompt: str) -> bool:
        prompts.append(prompt)
        return False

    panel = SystemActionsPanel(api, confirm=decline)

    assert await panel.factory_reset("flow") is False

    assert prompts == [FLOW_FACTORY_RESET_PROMPT]
    assert device.calls("POST", "/api/flow/system/factory-reset") == []


async def test_flow_factory_reset_without_callback_is_declined(device, api) -> None:
    panel = SystemActionsPanel(api)

    assert await panel.factory_reset("flow") is False
    assert device.requests == []


async def test_confirmed_flow_factory_reset(device, api) -> None:
    device.route("POST", "/api/flow/system/factory-reset", {"ok": True})
    panel = SystemActionsPanel(api, confirm=lambda _prompt: True)

    assert await panel.factory_reset("flow") is True

    assert panel.message == "Flow.IO factory reset started. Rebooting..."


async def test_supervisor_factory_reset_needs_no_confirmation(device, api) -> None:
    device.route("POST", "/api/system/factory-reset", {"ok": True})
    panel = SystemActionsPanel(api)

    assert await panel.factory_reset("supervisor") is True
    assert panel.message == "Supervisor factory reset started. Rebooting..."


async def test_failed_action_is_reported_and_logged(device, api, tmp_path) -> None:
    device.route("POST", "/api/flow/system/reboot", {"ok": False})
    log_path = tmp_path / "events.log"
    panel = SystemActionsPanel(api, events=EventLogService(log_path))

    assert await panel.reboot("flow") is False

    assert panel.message.startswith("Flow.IO reboot failed:")
    entry = json.loads(log_path.read_text(encoding="utf-8").splitlines()[-1])
    assert entry["event"] == "system_action"
    assert entry["target"] == "flow"
    assert entry["error_type"] == "DeviceEnvelopeError"


async def test_unknown_action_is_rejected(api) -> None:
    panel = SystemActionsPanel(api)

    with pytest.raises(ValueError):
        await panel.run("flow", "shutdown")  # type: ignore[arg-type]
