from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from flowio_console.services.paths import event_log_path


logger = logging.getLogger(__name__)


class EventLogService:
    """Append-only structured event log for device operations and page hook failures."""

    def __init__(self, log_path: Path | None = None) -> None:
        if log_path is None:
            log_path = event_log_path()
        self.log_path = log_path.expanduser()

    def log_event(self, event: str, **fields: Any) -> None:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
        }
        payload.update(fields)
        self._append_json_line(payload)

    def log_failure(self, event: str, exc: BaseException, **fields: Any) -> None:
        logger.warning("%s failed: %s", event, exc)
        self.log_event(event, error=str(exc), error_type=type(exc).__name__, **fields)

    def _append_json_line(self, payload: dict[str, Any]) -> None:
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with self.log_path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(payload, sort_keys=True, default=str) + "\n")
        except OSError as exc:
            # Event logging must never break device workflows.
            logger.debug("Could not write event log %s: %s", self.log_path, exc)
            return
