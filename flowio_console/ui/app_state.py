from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Mapping


PAGES = ("logs", "control", "config", "upgrade", "system")
DEFAULT_PAGE = "logs"


@dataclass(frozen=True)
class ConnectionState:
    base_url: str = ""
    log_stream: str = "idle"  # idle|connecting|connected|disconnected|error
    network_mode: str = ""
    last_updated_utc: str = ""


@dataclass(frozen=True)
class PanelMessage:
    text: str = ""
    last_updated_utc: str = ""


@dataclass(frozen=True)
class UIState:
    active_page: str = DEFAULT_PAGE
    last_updated_utc: str = ""


@dataclass(frozen=True)
class AppState:
    connection: ConnectionState = field(default_factory=ConnectionState)
    ui: UIState = field(default_factory=UIState)
    panels: Mapping[str, PanelMessage] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def message(self, panel: str) -> str:
        entry = self.panels.get(panel)
        return entry.text if entry is not None else ""


Listener = Callable[[AppState], None]


def _now_utc() -> str:
    return datetime.now(timezone.utc).isoformat()


class AppStateStore:
    """Centralized in-memory console state with coarse-grained update helpers."""

    def __init__(self) -> None:
        self._state = AppState()
        self._listeners: list[Listener] = []

    def snapshot(self) -> AppState:
        return self._state

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def update_connection(
        self,
        *,
        base_url: str | None = None,
        log_stream: str | None = None,
        network_mode: str | None = None,
    ) -> None:
        current = self._state.connection
        connection = ConnectionState(
            base_url=current.base_url if base_url is None else str(base_url),
            log_stream=current.log_stream if log_stream is None else str(log_stream),
            network_mode=(
                current.network_mode if network_mode is None else str(network_mode)
            ),
            last_updated_utc=_now_utc(),
        )
        self._publish(replace(self._state, connection=connection))

    def update_ui(self, *, active_page: str) -> None:
        if active_page not in PAGES:
            raise ValueError(f"Unknown page: {active_page!r}")
        ui = UIState(active_page=active_page, last_updated_utc=_now_utc())
        self._publish(replace(self._state, ui=ui))

    def update_panel(self, panel: str, text: str) -> None:
        panels = dict(self._state.panels)
        panels[panel] = PanelMessage(text=str(text), last_updated_utc=_now_utc())
        self._publish(replace(self._state, panels=MappingProxyType(panels)))

    def panel_reporter(self, panel: str) -> Callable[[str], None]:
        """Message sink that files a controller's status text under ``panel``."""

        def report(text: str) -> None:
            self.update_panel(panel, text)

        return report

    def _publish(self, next_state: AppState) -> None:
        self._state = next_state
        for listener in list(self._listeners):
            listener(self._state)
