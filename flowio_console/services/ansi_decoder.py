from __future__ import annotations

import re
from dataclasses import dataclass

from flowio_console.domain.models import LineRecord


ANSI_FOREGROUND_COLORS: dict[int, str] = {
    30: "#94a3b8",
    31: "#ef4444",
    32: "#22c55e",
    33: "#f59e0b",
    34: "#60a5fa",
    35: "#f472b6",
    36: "#22d3ee",
    37: "#e2e8f0",
    90: "#64748b",
    91: "#f87171",
    92: "#4ade80",
    93: "#fbbf24",
    94: "#93c5fd",
    95: "#f9a8d4",
    96: "#67e8f9",
    97: "#f8fafc",
}
RESET_CODES = frozenset({0, 39})


@dataclass
class AnsiState:
    current_foreground: str | None = None


class AnsiLineDecoder:
    """Strip SGR escape sequences from log frames and track the foreground color.

    Colors are tracked per line, not per span: a frame starts with the color
    carried over from earlier frames and takes any color set while decoding it.
    A reset inside a frame only affects the frames after it. One decoder owns
    one ``AnsiState``, so independent streams never share color state.
    """

    SGR_PATTERN = re.compile(r"\x1b\[([0-9;]*)m")

    def __init__(self, state: AnsiState | None = None) -> None:
        self.state = state if state is not None else AnsiState()

    def reset(self) -> None:
        self.state.current_foreground = None

    def decode(self, raw: str) -> LineRecord:
        parts: list[str] = []
        cursor = 0
        line_color = self.state.current_foreground
        for match in self.SGR_PATTERN.finditer(raw):
            parts.append(raw[cursor : match.start()])
            self._apply_codes(match.group(1))
            if self.state.current_foreground is not None:
                line_color = self.state.current_foreground
            cursor = match.end()
        parts.append(raw[cursor:])
        return LineRecord(text="".join(parts), color=line_color)

    def _apply_codes(self, raw_codes: str) -> None:
        for code in self._parse_codes(raw_codes):
            if code in RESET_CODES:
                self.state.current_foreground = None
            elif code in ANSI_FOREGROUND_COLORS:
                self.state.current_foreground = ANSI_FOREGROUND_COLORS[code]

    @staticmethod
    def _parse_codes(raw_codes: str) -> list[int]:
        if raw_codes == "":
            return [0]
        return [int(part) for part in raw_codes.split(";") if part.isdigit()]
