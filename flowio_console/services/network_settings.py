from __future__ import annotations

from flowio_console.domain.models import MqttConfig, WifiConfig
from flowio_console.services.device_api import DeviceApiClient, DeviceApiError
from flowio_console.services.event_log import EventLogService
from flowio_console.services.panel import MessageSink, PanelController
from flowio_console.services.polling import LoadLatch
from flowio_console.services.wifi_scan import WifiScanController


class WifiConfigPanel(PanelController):
    panel_name = "wifi"

    def __init__(
        self,
        api: DeviceApiClient,
        *,
        events: EventLogService | None = None,
        on_message: MessageSink | None = None,
    ) -> None:
        super().__init__(events=events, on_message=on_message)
        self.api = api
        self.config = WifiConfig()
        self.latch = LoadLatch()

    async def load(self) -> bool:
        try:
            self.config = await self.api.get_wifi_config()
        except DeviceApiError as exc:
            self._set_message(f"Failed to load WiFi configuration: {exc}")
            return False
        self._set_message("WiFi configuration loaded.")
        return True

    async def save(self) -> bool:
        try:
            await self.api.save_wifi_config(self.config)
        except DeviceApiError as exc:
            self._set_message(f"Failed to apply WiFi configuration: {exc}")
            self._record_failure("wifi_config_save", exc)
            return False
        self._set_message("WiFi configuration applied (reconnecting).")
        self._record("wifi_config_saved", ssid=self.config.ssid.strip())
        return True


class MqttConfigPanel(PanelController):
    panel_name = "mqtt"

    def __init__(
        self,
        api: DeviceApiClient,
        *,
        events: EventLogService | None = None,
        on_message: MessageSink | None = None,
    ) -> None:
        super().__init__(events=events, on_message=on_message)
        self.api = api
        self.config = MqttConfig()
        self.latch = LoadLatch()

    async def load(self) -> bool:
        try:
            self.config = await self.api.get_mqtt_config()
        except DeviceApiError as exc:
            self._set_message(f"Failed to load MQTT configuration: {exc}")
            return False
        self._set_message("MQTT configuration loaded.")
        return True

    async def save(self) -> bool:
        try:
            await self.api.save_mqtt_config(self.config)
        except DeviceApiError as exc:
            self._set_message(f"Failed to apply MQTT configuration: {exc}")
            self._record_failure("mqtt_config_save", exc)
            return False
        self._set_message("MQTT configuration applied.")
        self._record("mqtt_config_saved", server=self.config.server.strip())
        return True


class ConfigPage:
    """Network configuration page: each form loads once, the scan bootstraps once."""

    def __init__(
        self,
        wifi: WifiConfigPanel,
        mqtt: MqttConfigPanel,
        scan: WifiScanController,
    ) -> None:
        self.wifi = wifi
        self.mqtt = mqtt
        self.scan = scan

    async def on_shown(self) -> None:
        if self.wifi.latch.claim():
            if await self.wifi.load():
                self.scan.typed_ssid = self.wifi.config.ssid
        if self.mqtt.latch.claim():
            await self.mqtt.load()
        await self.scan.on_page_shown()

    def set_typed_ssid(self, value: str) -> None:
        self.wifi.config.ssid = value
        self.scan.typed_ssid = value

    def pick_scanned_network(self, value: str) -> None:
        self.scan.select_option(value)
        if self.scan.selected:
            self.wifi.config.ssid = self.scan.selected
