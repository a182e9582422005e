from __future__ import annotations

from collections.abc import Callable

from flowio_console.domain.models import SystemAction, SystemTarget
from flowio_console.services.device_api import DeviceApiClient, DeviceApiError
from flowio_console.services.event_log import EventLogService
from flowio_console.services.panel import MessageSink, PanelController


Confirm = Callable[[str], bool]

FLOW_FACTORY_RESET_PROMPT = (
    "Confirm the Flow.IO factory reset? This erases the remote configuration."
)

SUCCESS_MESSAGES: dict[tuple[str, str], str] = {
    ("supervisor", "reboot"): "Supervisor reboot started...",
    ("supervisor", "factory_reset"): "Supervisor factory reset started. Rebooting...",
    ("flow", "reboot"): "Flow.IO reboot started...",
    ("flow", "factory_reset"): "Flow.IO factory reset started. Rebooting...",
}

FAILURE_PREFIXES: dict[tuple[str, str], str] = {
    ("supervisor", "reboot"): "Supervisor reboot failed",
    ("supervisor", "factory_reset"): "Supervisor factory reset failed",
    ("flow", "reboot"): "Flow.IO reboot failed",
    ("flow", "factory_reset"): "Flow.IO factory reset failed",
}


def _decline(prompt: str) -> bool:
    return False


class SystemActionsPanel(PanelController):
    """Reboot and factory reset for both boards.

    Wiping the Flow.IO board needs ``confirm`` to return True first. Without a
    confirmation callback the request is declined.
    """

    panel_name = "system"

    def __init__(
        self,
        api: DeviceApiClient,
        *,
        confirm: Confirm | None = None,
        events: EventLogService | None = None,
        on_message: MessageSink | None = None,
    ) -> None:
        super().__init__(events=events, on_message=on_message)
        self.api = api
        self.confirm = confirm or _decline

    async def run(self, target: SystemTarget, action: SystemAction) -> bool:
        key = (target, action)
        if key not in SUCCESS_MESSAGES:
            raise ValueError(f"Unsupported system action: {target}/{action}")
        if key == ("flow", "factory_reset") and not self.confirm(FLOW_FACTORY_RESET_PROMPT):
            self._record("system_action_declined", target=target, action=action)
            return False
        try:
            await self.api.system_action(target, action)
        except DeviceApiError as exc:
            self._set_message(f"{FAILURE_PREFIXES[key]}: {exc}")
            self._record_failure("system_action", exc, target=target, action=action)
            return False
        self._set_message(SUCCESS_MESSAGES[key])
        self._record("system_action", target=target, action=action)
        return True

    async def reboot(self, target: SystemTarget) -> bool:
        return await self.run(target, "reboot")

    async def factory_reset(self, target: SystemTarget) -> bool:
        return await self.run(target, "factory_reset")
