from __future__ import annotations

from flowio_console.domain.models import (
    UPGRADE_TARGETS,
    UpgradeConfig,
    UpgradeState,
    UpgradeStatus,
    UpgradeTarget,
)
from flowio_console.services.device_api import DeviceApiClient, DeviceApiError
from flowio_console.services.event_log import EventLogService
from flowio_console.services.panel import MessageSink, PanelController
from flowio_console.services.polling import FixedIntervalPolicy, PollingMonitor


STATE_LABELS: dict[UpgradeState, str] = {
    UpgradeState.IDLE: "idle",
    UpgradeState.QUEUED: "queued",
    UpgradeState.RUNNING: "running",
    UpgradeState.DONE: "done",
    UpgradeState.ERROR: "error",
    UpgradeState.UNKNOWN: "unknown",
}
QUEUED_MIN_PROGRESS = 2.0
STARTED_PROGRESS = 1.0


def clamp_progress(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


def display_progress(status: UpgradeStatus) -> float:
    """Progress to show for a status; the remote number is not shown verbatim."""
    progress = status.progress
    if status.state == UpgradeState.DONE:
        progress = 100.0
    if status.state == UpgradeState.QUEUED and progress <= 0:
        progress = QUEUED_MIN_PROGRESS
    return clamp_progress(progress)


def state_label(status: UpgradeStatus) -> str:
    """Unrecognized states are shown as the device reported them."""
    if status.state == UpgradeState.UNKNOWN:
        return status.reported_state or STATE_LABELS[UpgradeState.UNKNOWN]
    return STATE_LABELS[status.state]


def describe_status(status: UpgradeStatus) -> str:
    label = state_label(status)
    target = status.target or "-"
    text = f"{label} | target={target}"
    if status.message:
        text += f" | {status.message}"
    return text


class UpgradeStatusController(PanelController):
    """Reflects the device firmware-update state and drives upgrade requests.

    The state machine lives on the device; this controller only mirrors the last
    fetched status. A fixed-interval monitor refreshes it every tick regardless of
    errors, and manual refreshes may race with it (whichever answer lands last is
    what is shown).
    """

    panel_name = "upgrade"

    def __init__(
        self,
        api: DeviceApiClient,
        *,
        poll_seconds: float = 2.0,
        events: EventLogService | None = None,
        on_message: MessageSink | None = None,
    ) -> None:
        super().__init__(events=events, on_message=on_message)
        self.api = api
        self.config = UpgradeConfig()
        self.status: UpgradeStatus | None = None
        self.progress = 0.0
        self.state_label = ""
        self.monitor = PollingMonitor(
            self.refresh_status,
            FixedIntervalPolicy(poll_seconds),
            name="upgrade-status",
        )

    def start_polling(self) -> None:
        self.monitor.start()

    def stop_polling(self) -> None:
        self.monitor.stop()

    async def load_configuration(self) -> bool:
        try:
            config = await self.api.get_upgrade_config()
        except DeviceApiError as exc:
            self._set_message(f"Failed to load configuration: {exc}")
            self._record_failure("upgrade_config_load", exc)
            return False
        self.config = config
        return True

    async def save_configuration(self) -> None:
        """Persist the edited fields; raises ``DeviceApiError`` when not acknowledged."""
        await self.api.save_upgrade_config(self.config)
        self._set_message("Configuration saved.")

    async def start_upgrade(self, target: UpgradeTarget) -> bool:
        if target not in UPGRADE_TARGETS:
            raise ValueError(f"Unknown upgrade target: {target!r}")
        try:
            await self.save_configuration()
            await self.api.start_upgrade(target)
        except DeviceApiError as exc:
            self._set_message(f"Upgrade failed: {exc}")
            self._record_failure("upgrade_start", exc, target=target)
            return False
        self.progress = STARTED_PROGRESS
        self._set_message(f"Upgrade request accepted for {target}.")
        self._record("upgrade_started", target=target)
        await self.refresh_status()
        return True

    async def refresh_status(self) -> UpgradeStatus | None:
        try:
            status = await self.api.get_upgrade_status()
        except DeviceApiError as exc:
            self._set_message(f"Failed to read status: {exc}")
            return None
        self.apply_status(status)
        return status

    def apply_status(self, status: UpgradeStatus) -> None:
        self.status = status
        self.state_label = state_label(status)
        self.progress = display_progress(status)
        self._set_message(describe_status(status))
