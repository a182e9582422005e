from __future__ import annotations

import logging
from collections import deque
from collections.abc import AsyncIterable, Awaitable, Callable
from typing import Literal

from flowio_console.domain.models import LineRecord
from flowio_console.services.ansi_decoder import AnsiLineDecoder


logger = logging.getLogger(__name__)

DEFAULT_LOG_CAPACITY = 2000

ConnectionStatus = Literal["idle", "connecting", "connected", "disconnected", "error"]
SendLine = Callable[[str], Awaitable[None]]
StatusListener = Callable[[ConnectionStatus], None]


class LogStreamView:
    """Bounded FIFO of decoded log lines with an externally toggled autoscroll flag."""

    def __init__(self, capacity: int = DEFAULT_LOG_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("Log capacity must be greater than 0.")
        self.capacity = capacity
        self._lines: deque[LineRecord] = deque(maxlen=capacity)
        self._autoscroll = True
        self.scroll_position = 0
        self.evicted = 0

    @property
    def lines(self) -> list[LineRecord]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def autoscroll(self) -> bool:
        return self._autoscroll

    @autoscroll.setter
    def autoscroll(self, enabled: bool) -> None:
        self._autoscroll = bool(enabled)
        if self._autoscroll:
            self._scroll_to_newest()

    def append(self, record: LineRecord) -> None:
        if len(self._lines) == self.capacity:
            self.evicted += 1
        self._lines.append(record)
        if self._autoscroll:
            self._scroll_to_newest()

    def clear(self) -> None:
        self._lines.clear()
        self.scroll_position = 0

    def _scroll_to_newest(self) -> None:
        self.scroll_position = max(0, len(self._lines) - 1)


class LogStreamSession:
    """Feeds raw console frames through one decoder into one view.

    The socket itself belongs to the caller: frames arrive as an async iterable
    and outbound console lines go through ``send``.
    """

    def __init__(
        self,
        view: LogStreamView | None = None,
        decoder: AnsiLineDecoder | None = None,
        send: SendLine | None = None,
        on_status: StatusListener | None = None,
    ) -> None:
        self.view = view if view is not None else LogStreamView()
        self.decoder = decoder if decoder is not None else AnsiLineDecoder()
        self._send = send
        self._on_status = on_status
        self.status: ConnectionStatus = "idle"

    def _set_status(self, status: ConnectionStatus) -> None:
        self.status = status
        if self._on_status is not None:
            self._on_status(status)

    def receive(self, frame: str) -> LineRecord:
        record = self.decoder.decode(str(frame or ""))
        self.view.append(record)
        return record

    def mark_connecting(self) -> None:
        self._set_status("connecting")

    async def consume(self, frames: AsyncIterable[str]) -> None:
        self._set_status("connected")
        try:
            async for frame in frames:
                self.receive(frame)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Log stream closed with error: %s", exc)
            self._set_status("error")
            return
        self._set_status("disconnected")

    async def send_line(self, text: str) -> bool:
        if not text:
            return False
        if self.status != "connected" or self._send is None:
            logger.debug("Dropping console line, stream is %s", self.status)
            return False
        await self._send(text)
        return True
