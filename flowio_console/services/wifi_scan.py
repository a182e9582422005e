from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from flowio_console.domain.models import NetworkInfo, ScanStatus
from flowio_console.services.device_api import DeviceApiClient, DeviceApiError
from flowio_console.services.event_log import EventLogService
from flowio_console.services.panel import MessageSink, PanelController
from flowio_console.services.polling import (
    ConditionalReschedulePolicy,
    LoadLatch,
    PollingMonitor,
)


MAX_OPTION_LABEL_LENGTH = 56
MANUAL_ENTRY_LABEL = "Manual entry"


@dataclass(frozen=True)
class ScanOption:
    value: str
    label: str


MANUAL_ENTRY = ScanOption(value="", label=MANUAL_ENTRY_LABEL)


def network_label(network: NetworkInfo, max_length: int = MAX_OPTION_LABEL_LENGTH) -> str:
    label = network.ssid + (" (secure)" if network.secure else " (open)")
    if network.rssi is not None:
        label += f" {network.rssi} dBm"
    if len(label) > max_length:
        return label[: max_length - 1] + "…"
    return label


def build_scan_options(networks: Iterable[NetworkInfo]) -> list[ScanOption]:
    options = [MANUAL_ENTRY]
    for network in networks:
        if not network.ssid or network.hidden:
            continue
        options.append(ScanOption(value=network.ssid, label=network_label(network)))
    return options


def choose_selection(options: Iterable[ScanOption], typed_ssid: str, previous: str) -> str:
    values = {option.value for option in options}
    typed = typed_ssid.strip()
    if typed and typed in values:
        return typed
    if previous and previous in values:
        return previous
    return MANUAL_ENTRY.value


def describe_scan(status: ScanStatus) -> str:
    if status.active:
        return "WiFi scan in progress..."
    if status.count > 0:
        return (
            f"WiFi scan complete: {status.count} networks shown "
            f"({status.found} detected)."
        )
    return "No visible network detected."


class WifiScanController(PanelController):
    """Drives the device WiFi scan and keeps the SSID picker in sync with it.

    Polling only continues while the device reports the scan as running or
    requested; any failed request ends the cycle until the next manual trigger.
    """

    panel_name = "wifi_scan"

    def __init__(
        self,
        api: DeviceApiClient,
        *,
        poll_seconds: float = 1.2,
        events: EventLogService | None = None,
        on_message: MessageSink | None = None,
    ) -> None:
        super().__init__(events=events, on_message=on_message)
        self.api = api
        self.status: ScanStatus | None = None
        self.options: list[ScanOption] = [MANUAL_ENTRY]
        self.selected = MANUAL_ENTRY.value
        self.typed_ssid = ""
        self.bootstrap = LoadLatch()
        self.monitor = PollingMonitor(
            self._poll_passive,
            ConditionalReschedulePolicy(
                poll_seconds,
                should_continue=lambda status: status is not None and status.active,
            ),
            name="wifi-scan",
        )

    async def request_scan(self, force: bool) -> None:
        """Ask the device to scan; it may answer from cache unless ``force`` is set."""
        await self.api.request_wifi_scan(force)

    async def refresh_scan_status(self, trigger_scan: bool = False) -> ScanStatus | None:
        return await self.monitor.run_now(lambda: self._poll(trigger_scan))

    async def on_page_shown(self) -> ScanStatus | None:
        return await self.refresh_scan_status(trigger_scan=self.bootstrap.claim())

    def stop(self) -> None:
        self.monitor.stop()

    def select_option(self, value: str) -> None:
        picked = value.strip()
        self.selected = picked
        if picked:
            self.typed_ssid = picked

    async def _poll_passive(self) -> ScanStatus:
        return await self._poll(False)

    async def _poll(self, trigger_scan: bool) -> ScanStatus:
        try:
            if trigger_scan:
                await self.request_scan(True)
            status = await self.api.get_wifi_scan()
        except DeviceApiError as exc:
            self._set_message(f"WiFi scan unavailable: {exc}")
            raise
        self.apply_scan(status)
        return status

    def apply_scan(self, status: ScanStatus) -> None:
        self.status = status
        self.options = build_scan_options(status.networks)
        self.selected = choose_selection(self.options, self.typed_ssid, self.selected)
        self._set_message(describe_scan(status))
