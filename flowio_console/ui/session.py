from __future__ import annotations

import logging
from collections.abc import AsyncIterable

import httpx

from flowio_console.services.config_navigator import ConfigTreeNavigator
from flowio_console.services.config_tree import ConfigTreeCache
from flowio_console.services.device_api import DeviceApiClient, DeviceApiError
from flowio_console.services.event_log import EventLogService
from flowio_console.services.flow_status import FlowStatusPanel
from flowio_console.services.log_stream import LogStreamSession, LogStreamView, SendLine
from flowio_console.services.module_editor import ConfigModuleEditor
from flowio_console.services.network_settings import ConfigPage, MqttConfigPanel, WifiConfigPanel
from flowio_console.services.settings import ConsoleSettings
from flowio_console.services.system_actions import Confirm, SystemActionsPanel
from flowio_console.services.upgrade_status import UpgradeStatusController
from flowio_console.services.wifi_scan import WifiScanController
from flowio_console.ui.app_state import PAGES, AppStateStore


logger = logging.getLogger(__name__)

LOG_SOCKET_PATH = "/wsserial"
AP_MODE = "ap"


def log_socket_url(base_url: str) -> str:
    """WebSocket URL of the serial console relay for a device base URL."""
    if base_url.startswith("https://"):
        return "wss://" + base_url[len("https://"):] + LOG_SOCKET_PATH
    if base_url.startswith("http://"):
        return "ws://" + base_url[len("http://"):] + LOG_SOCKET_PATH
    return base_url + LOG_SOCKET_PATH


class ConsoleSession:
    """Wires every panel to one device client, one event log and one state store.

    Panel status texts land in the store under the panel's name, so a front end
    only has to subscribe to the store.
    """

    def __init__(
        self,
        settings: ConsoleSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        confirm: Confirm | None = None,
        send_line: SendLine | None = None,
        events: EventLogService | None = None,
        store: AppStateStore | None = None,
    ) -> None:
        self.settings = settings
        self.store = store or AppStateStore()
        self.events = events or EventLogService(settings.event_log_path)
        self.api = DeviceApiClient(
            settings.base_url,
            timeout_seconds=settings.request_timeout_seconds,
            transport=transport,
        )
        self.store.update_connection(base_url=settings.base_url)

        report = self.store.panel_reporter
        self.log = LogStreamSession(
            view=LogStreamView(settings.log_capacity),
            send=send_line,
            on_status=lambda status: self.store.update_connection(log_stream=status),
        )
        self.upgrade = UpgradeStatusController(
            self.api,
            poll_seconds=settings.upgrade_poll_seconds,
            events=self.events,
            on_message=report("upgrade"),
        )
        self.scan = WifiScanController(
            self.api,
            poll_seconds=settings.scan_poll_seconds,
            events=self.events,
            on_message=report("wifi_scan"),
        )
        self.wifi = WifiConfigPanel(self.api, events=self.events, on_message=report("wifi"))
        self.mqtt = MqttConfigPanel(self.api, events=self.events, on_message=report("mqtt"))
        self.config_page = ConfigPage(self.wifi, self.mqtt, self.scan)

        self.tree = ConfigTreeCache(self.api)
        self.editor = ConfigModuleEditor(
            self.api, events=self.events, on_message=report("flowcfg")
        )
        self.navigator = ConfigTreeNavigator(
            self.tree, self.editor, events=self.events, on_message=report("flowcfg")
        )
        self.flow_status = FlowStatusPanel(
            self.api, events=self.events, on_message=report("flow_status")
        )
        self.system = SystemActionsPanel(
            self.api, confirm=confirm, events=self.events, on_message=report("system")
        )

    async def __aenter__(self) -> ConsoleSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def active_page(self) -> str:
        return self.store.snapshot().ui.active_page

    @property
    def log_socket_url(self) -> str:
        return log_socket_url(self.settings.base_url)

    async def show_page(self, page_id: str) -> bool:
        """Switch page and run its show hook. Failures are logged, never raised."""
        if page_id not in PAGES:
            logger.warning("Ignoring unknown page %r", page_id)
            return False
        self.store.update_ui(active_page=page_id)
        try:
            if page_id == "config":
                await self.config_page.on_shown()
            elif page_id == "control":
                await self.navigator.load_modules(False)
        except Exception as exc:  # noqa: BLE001
            self.events.log_failure("page_shown", exc, page=page_id)
            return False
        return True

    async def open_default_page(self) -> str:
        """Show the config page when the device runs its access point."""
        try:
            mode = await self.api.get_network_mode()
        except DeviceApiError as exc:
            logger.info("Network mode unavailable, keeping %s page: %s", self.active_page, exc)
            return self.active_page
        self.store.update_connection(network_mode=mode)
        if mode == AP_MODE:
            await self.show_page("config")
        return self.active_page

    async def start(self) -> None:
        await self.upgrade.load_configuration()
        await self.flow_status.refresh()
        await self.open_default_page()
        self.upgrade.start_polling()

    async def stream_logs(self, frames: AsyncIterable[str]) -> None:
        self.log.mark_connecting()
        await self.log.consume(frames)

    async def close(self) -> None:
        await self.upgrade.monitor.aclose()
        await self.scan.monitor.aclose()
        await self.api.aclose()
