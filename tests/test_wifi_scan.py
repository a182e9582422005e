from __future__ import annotations

import asyncio

from conftest import form
from flowio_console.domain.models import NetworkInfo, ScanStatus
from flowio_console.services.polling import MonitorState
from flowio_console.services.wifi_scan import (
    MANUAL_ENTRY,
    ScanOption,
    WifiScanController,
    build_scan_options,
    choose_selection,
    describe_scan,
    network_label,
)


SCAN_DONE = {
    "ok": True,
    "running": False,
    "requested": False,
    "count": 2,
    "total_found": 3,
    "networks": [
        {"ssid": "Home", "rssi": -61, "secure": True},
        {"ssid": "Office", "rssi": -70, "secure": False},
        {"ssid": "", "hidden": True},
    ],
}


def test_network_label_formats_security_and_signal() -> None:
    assert network_label(NetworkInfo(ssid="Home", rssi=-61, secure=True)) == "Home (secure) -61 dBm"
    assert network_label(NetworkInfo(ssid="Cafe")) == "Cafe (open)"


def test_network_label_truncates_long_names() -> None:
    label = network_label(NetworkInfo(ssid="x" * 80, rssi=-40, secure=True))

    assert len(label) == 56
    assert label.endswith("…")


def test_build_scan_options_skips_hidden_and_blank_networks() -> None:
    options = build_scan_options(
        [
            NetworkInfo(ssid="Home", rssi=-61, secure=True),
            NetworkInfo(ssid="", hidden=True),
            NetworkInfo(ssid="Ghost", hidden=True),
        ]
    )

    assert options[0] == MANUAL_ENTRY
    assert [option.value for option in options] == ["", "Home"]


def test_choose_selection_prefers_typed_ssid_then_previous() -> None:
    options = [
        MANUAL_ENTRY,
        ScanOption("Home", "Home (secure) -61 dBm"),
        ScanOption("Office", "Office (open) -70 dBm"),
    ]

    assert choose_selection(options, "Home", "Office") == "Home"
    assert choose_selection(options, "Elsewhere", "Office") == "Office"
    assert choose_selection(options, "", "Gone") == ""


def test_describe_scan_messages() -> None:
    assert describe_scan(ScanStatus(requested=True)) == "WiFi scan in progress..."
    assert (
        describe_scan(ScanStatus.model_validate(SCAN_DONE))
        == "WiFi scan complete: 2 networks shown (3 detected)."
    )
    assert describe_scan(ScanStatus()) == "No visible network detected."


async def test_apply_scan_keeps_typed_ssid_selected(api) -> None:
    controller = WifiScanController(api)
    controller.typed_ssid = "Home"
    controller.selected = "Office"

    controller.apply_scan(ScanStatus.model_validate(SCAN_DONE))

    assert controller.selected == "Home"
    assert [option.value for option in controller.options] == ["", "Home", "Office"]


async def test_first_page_show_triggers_a_forced_scan_only_once(device, api) -> None:
    device.route("POST", "/api/wifi/scan", {"ok": True})
    device.route("GET", "/api/wifi/scan", SCAN_DONE)
    controller = WifiScanController(api, poll_seconds=0.01)

    await controller.on_page_shown()
    await controller.on_page_shown()

    posts = device.calls("POST", "/api/wifi/scan")
    assert len(posts) == 1
    assert form(posts[0]) == {"force": "1"}
    assert len(device.calls("GET", "/api/wifi/scan")) == 2
    assert controller.monitor.state == MonitorState.IDLE


async def test_polling_continues_while_scan_is_running(device, api) -> None:
    device.route("GET", "/api/wifi/scan", {"ok": True, "running": True})
    device.route("GET", "/api/wifi/scan", {"ok": True, "requested": True})
    device.route("GET", "/api/wifi/scan", SCAN_DONE)
    controller = WifiScanController(api, poll_seconds=0.01)

    await controller.refresh_scan_status()
    await asyncio.sleep(0.1)

    assert len(device.calls("GET", "/api/wifi/scan")) == 3
    assert controller.message == "WiFi scan complete: 2 networks shown (3 detected)."
    assert controller.monitor.state == MonitorState.IDLE


async def test_null_flags_read_as_false_and_finish_the_scan(device, api) -> None:
    device.route(
        "GET",
        "/api/wifi/scan",
        {
            "ok": True,
            "running": None,
            "requested": None,
            "count": 1,
            "networks": [{"ssid": "Home", "hidden": None, "secure": None, "rssi": -61}],
        },
    )
    controller = WifiScanController(api, poll_seconds=0.01)

    status = await controller.refresh_scan_status()

    assert status is not None and status.active is False
    assert status.networks[0].hidden is False
    assert [option.value for option in controller.options] == ["", "Home"]
    assert controller.options[1].label == "Home (open) -61 dBm"
    assert controller.message == "WiFi scan complete: 1 networks shown (1 detected)."
    assert controller.monitor.state == MonitorState.IDLE


def test_scan_status_tolerates_null_network_list() -> None:
    status = ScanStatus.model_validate({"ok": True, "networks": None, "running": "0"})

    assert status.networks == []
    assert status.active is False


async def test_polling_stops_on_error(device, api) -> None:
    device.route("GET", "/api/wifi/scan", {"ok": True, "running": True})
    device.route("GET", "/api/wifi/scan", {"ok": False})
    controller = WifiScanController(api, poll_seconds=0.01)

    await controller.refresh_scan_status()
    await asyncio.sleep(0.1)

    assert len(device.calls("GET", "/api/wifi/scan")) == 2
    assert controller.message.startswith("WiFi scan unavailable:")
    assert controller.monitor.state == MonitorState.IDLE


async def test_select_option_updates_typed_ssid(api) -> None:
    controller = WifiScanController(api)

    controller.select_option("Office")
    assert controller.typed_ssid == "Office"

    controller.select_option("")
    assert controller.selected == ""
    assert controller.typed_ssid == "Office"
