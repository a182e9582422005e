from __future__ import annotations

import json
import math
from typing import Any

from flowio_console.domain.models import StatusCard
from flowio_console.services.device_api import DeviceApiClient, DeviceApiError
from flowio_console.services.event_log import EventLogService
from flowio_console.services.panel import MessageSink, PanelController


MISSING_VALUE = "-"
ONLINE_CHIP = "Flow.IO online (I2C OK)"
PARTIAL_CHIP = "Flow.IO partial / weak I2C link"
ERROR_CHIP = "status read error"


def format_value(value: Any) -> str:
    if value is None:
        return MISSING_VALUE
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


def format_uptime(milliseconds: Any) -> str:
    if isinstance(milliseconds, bool) or not isinstance(milliseconds, (int, float)):
        return MISSING_VALUE
    if not math.isfinite(milliseconds) or milliseconds < 0:
        return MISSING_VALUE
    seconds = int(milliseconds // 1000)
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _card(title: str, rows: list[tuple[str, Any]]) -> StatusCard:
    return StatusCard(title=title, rows=[(label, format_value(value)) for label, value in rows])


def build_status_cards(data: dict[str, Any]) -> list[StatusCard]:
    wifi = _section(data, "wifi")
    mqtt = _section(data, "mqtt")
    heap = _section(data, "heap")
    i2c = _section(data, "i2c")
    return [
        _card(
            "Network",
            [
                ("WiFi connected", bool(wifi.get("ready"))),
                ("IP", wifi.get("ip") or MISSING_VALUE),
                ("RSSI (dBm)", wifi.get("rssi_dbm") if wifi.get("has_rssi") else MISSING_VALUE),
                ("MQTT connected", bool(mqtt.get("ready"))),
            ],
        ),
        _card(
            "I2C Supervisor",
            [
                ("Link active", bool(i2c.get("supervisor_link_ok"))),
                ("Supervisor seen", bool(i2c.get("supervisor_seen"))),
                ("Requests total", i2c.get("request_count")),
                ("Last request (ms)", i2c.get("last_request_ago_ms")),
            ],
        ),
        _card(
            "Flow.IO System",
            [
                ("Firmware", data.get("firmware") or MISSING_VALUE),
                ("Uptime", format_uptime(data.get("uptime_ms"))),
                ("Free heap", heap.get("free")),
                ("Min heap", heap.get("min")),
            ],
        ),
        _card(
            "MQTT Diagnostics",
            [
                ("RX drop", mqtt.get("rx_drop")),
                ("Parse fail", mqtt.get("parse_fail")),
                ("Handler fail", mqtt.get("handler_fail")),
                ("Oversize drop", mqtt.get("oversize_drop")),
            ],
        ),
    ]


def status_chip(data: dict[str, Any]) -> str:
    return ONLINE_CHIP if _section(data, "i2c").get("supervisor_link_ok") else PARTIAL_CHIP


class FlowStatusPanel(PanelController):
    """Read-only view of ``/api/flow/status`` as cards, a chip and the raw payload."""

    panel_name = "flow_status"

    def __init__(
        self,
        api: DeviceApiClient,
        *,
        events: EventLogService | None = None,
        on_message: MessageSink | None = None,
    ) -> None:
        super().__init__(events=events, on_message=on_message)
        self.api = api
        self.cards: list[StatusCard] = []
        self.raw = ""

    @property
    def chip(self) -> str:
        return self.message

    async def refresh(self) -> bool:
        try:
            data = await self.api.get_flow_status()
        except DeviceApiError as exc:
            self.cards = []
            self.raw = f"Error: {exc}"
            self._set_message(ERROR_CHIP)
            return False
        self.apply_status(data)
        return True

    def apply_status(self, data: dict[str, Any]) -> None:
        self.cards = build_status_cards(data)
        self.raw = json.dumps(data, indent=2, ensure_ascii=False)
        self._set_message(status_chip(data))
