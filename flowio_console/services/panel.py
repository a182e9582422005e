from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from flowio_console.services.event_log import EventLogService


logger = logging.getLogger(__name__)

MessageSink = Callable[[str], None]


class PanelController:
    """Shared status-text and event plumbing for the console panels."""

    panel_name = "panel"

    def __init__(
        self,
        *,
        events: EventLogService | None = None,
        on_message: MessageSink | None = None,
    ) -> None:
        self.message = ""
        self.events = events
        self.on_message = on_message

    def _set_message(self, text: str) -> None:
        self.message = text
        if self.on_message is not None:
            self.on_message(text)

    def _record(self, event: str, **fields: Any) -> None:
        if self.events is not None:
            self.events.log_event(event, panel=self.panel_name, **fields)

    def _record_failure(self, event: str, exc: BaseException, **fields: Any) -> None:
        if self.events is None:
            logger.warning("%s: %s failed: %s", self.panel_name, event, exc)
            return
        self.events.log_failure(event, exc, panel=self.panel_name, **fields)
