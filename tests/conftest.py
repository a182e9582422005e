from __future__ import annotations

from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from flowio_console.services.device_api import DeviceApiClient


BASE_URL = "http://flowio.test"

Reply = dict[str, Any] | Callable[[httpx.Request], httpx.Response]


class FakeDevice:
    """In-memory supervisor answering through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[tuple[int, Reply]]] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, reply: Reply, *, status: int = 200) -> None:
        """Queue a reply; the last queued reply for a route keeps answering."""
        self.routes.setdefault((method, path), []).append((status, reply))

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and request.url.path == path
        ]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"ok": False, "err": "not found"})
        status, reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(reply):
            return reply(request)
        return httpx.Response(status, json=reply)


def form(request: httpx.Request) -> dict[str, str]:
    parsed = parse_qs(request.content.decode("utf-8"), keep_blank_values=True)
    return {key: values[-1] for key, values in parsed.items()}


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
async def api(device: FakeDevice):
    client = DeviceApiClient(BASE_URL, transport=device.transport())
    yield client
    await client.aclose()


@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("FLOWIO_CONSOLE_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("FLOWIO_CONSOLE_URL", raising=False)
    monkeypatch.delenv("FLOWIO_CONSOLE_TIMEOUT", raising=False)
