from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, TypeVar

import httpx
from jsonschema import Draft202012Validator
from pydantic import BaseModel, ValidationError

from flowio_console.domain.models import (
    UPGRADE_TARGETS,
    MqttConfig,
    ScanStatus,
    SystemAction,
    SystemTarget,
    UpgradeConfig,
    UpgradeStatus,
    UpgradeTarget,
    WifiConfig,
)
from flowio_console.services.paths import schemas_dir as default_schemas_dir


logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

NO_STORE_HEADERS = {"Cache-Control": "no-store"}

SYSTEM_ACTION_ENDPOINTS: dict[tuple[str, str], str] = {
    ("supervisor", "reboot"): "/api/system/reboot",
    ("supervisor", "factory_reset"): "/api/system/factory-reset",
    ("flow", "reboot"): "/api/flow/system/reboot",
    ("flow", "factory_reset"): "/api/flow/system/factory-reset",
}


class DeviceApiError(Exception):
    """Raised when a device request does not produce a usable answer."""


class DeviceTransportError(DeviceApiError):
    """Raised when the device cannot be reached or answers with a non-2xx status."""


class DeviceEnvelopeError(DeviceApiError):
    """Raised when the device answers without ``ok: true`` or with a malformed payload."""


class DeviceApiClient:
    """Thin async client for the supervisor web API.

    Every response is checked against the ``ok`` envelope before any payload is
    used. GET requests ask intermediaries not to cache, POST bodies are sent as
    url-encoded forms, which is what the firmware parses.
    """

    SCHEMA_NAMES = ("envelope", "children", "module", "scan_status", "upgrade_status")

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 8.0,
        transport: httpx.AsyncBaseTransport | None = None,
        schema_root: Path | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )
        root = schema_root or default_schemas_dir()
        self._validators = {
            name: Draft202012Validator(self._read_schema(root / f"{name}.schema.json"))
            for name in self.SCHEMA_NAMES
        }

    @staticmethod
    def _read_schema(path: Path) -> dict[str, Any]:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    async def __aenter__(self) -> DeviceApiClient:
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Raw requests ────────────────────────────────────────────────

    async def get_json(
        self,
        path: str,
        params: dict[str, str] | None = None,
        *,
        schema: str = "envelope",
    ) -> dict[str, Any]:
        try:
            response = await self._client.get(path, params=params, headers=NO_STORE_HEADERS)
        except httpx.HTTPError as exc:
            raise DeviceTransportError(f"GET {path}: {exc}") from exc
        return self._decode("GET", path, response, schema)

    async def post_form(
        self,
        path: str,
        form: dict[str, str] | None = None,
        *,
        schema: str = "envelope",
    ) -> dict[str, Any]:
        try:
            response = await self._client.post(path, data=form)
        except httpx.HTTPError as exc:
            raise DeviceTransportError(f"POST {path}: {exc}") from exc
        return self._decode("POST", path, response, schema)

    def _decode(
        self,
        method: str,
        path: str,
        response: httpx.Response,
        schema: str,
    ) -> dict[str, Any]:
        if not response.is_success:
            raise DeviceTransportError(f"{method} {path} returned HTTP {response.status_code}.")
        try:
            payload = response.json()
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise DeviceEnvelopeError(f"{method} {path}: response is not JSON.") from exc
        if not isinstance(payload, dict) or payload.get("ok") is not True:
            raise DeviceEnvelopeError(f"{method} {path}: device refused the request.")
        errors = list(self._validators[schema].iter_errors(payload))
        if errors:
            raise DeviceEnvelopeError(f"{method} {path}: {errors[0].message}")
        logger.debug("%s %s ok", method, path)
        return payload

    # ── Firmware update ─────────────────────────────────────────────

    async def get_upgrade_config(self) -> UpgradeConfig:
        payload = await self.get_json("/api/fwupdate/config")
        return _parse(UpgradeConfig, payload, "/api/fwupdate/config")

    async def save_upgrade_config(self, config: UpgradeConfig) -> None:
        await self.post_form("/api/fwupdate/config", config.as_form())

    async def get_upgrade_status(self) -> UpgradeStatus:
        payload = await self.get_json("/api/fwupdate/status", schema="upgrade_status")
        return _parse(UpgradeStatus, payload, "/api/fwupdate/status")

    async def start_upgrade(self, target: UpgradeTarget) -> None:
        if target not in UPGRADE_TARGETS:
            raise ValueError(f"Unknown upgrade target: {target!r}")
        await self.post_form(f"/fwupdate/{target}")

    # ── Network settings ────────────────────────────────────────────

    async def get_mqtt_config(self) -> MqttConfig:
        payload = await self.get_json("/api/mqtt/config")
        return _parse(MqttConfig, payload, "/api/mqtt/config")

    async def save_mqtt_config(self, config: MqttConfig) -> None:
        port = str(config.port).strip() or "1883"
        await self.post_form(
            "/api/mqtt/config",
            {
                "server": config.server.strip(),
                "port": port,
                "username": config.username.strip(),
                "password": config.password,
            },
        )

    async def get_wifi_config(self) -> WifiConfig:
        payload = await self.get_json("/api/wifi/config")
        return _parse(WifiConfig, payload, "/api/wifi/config")

    async def save_wifi_config(self, config: WifiConfig) -> None:
        await self.post_form(
            "/api/wifi/config",
            {
                "enabled": "1" if config.enabled else "0",
                "ssid": config.ssid.strip(),
                "pass": config.password,
            },
        )

    async def request_wifi_scan(self, force: bool) -> dict[str, Any]:
        return await self.post_form("/api/wifi/scan", {"force": "1" if force else "0"})

    async def get_wifi_scan(self) -> ScanStatus:
        payload = await self.get_json("/api/wifi/scan", schema="scan_status")
        return _parse(ScanStatus, payload, "/api/wifi/scan")

    async def get_network_mode(self) -> str:
        payload = await self.get_json("/api/network/mode")
        return str(payload.get("mode") or "")

    # ── Flow.IO ─────────────────────────────────────────────────────

    async def get_flow_status(self) -> dict[str, Any]:
        return await self.get_json("/api/flow/status")

    async def get_config_children(self, prefix: str) -> dict[str, Any]:
        params = {"prefix": prefix} if prefix else None
        return await self.get_json("/api/flowcfg/children", params, schema="children")

    async def get_config_module(self, name: str) -> dict[str, Any]:
        return await self.get_json("/api/flowcfg/module", {"name": name}, schema="module")

    async def apply_config_patch(self, patch: dict[str, dict[str, Any]]) -> None:
        encoded = json.dumps(patch, separators=(",", ":"), ensure_ascii=False)
        await self.post_form("/api/flowcfg/apply", {"patch": encoded})

    # ── System ──────────────────────────────────────────────────────

    async def system_action(self, target: SystemTarget, action: SystemAction) -> None:
        endpoint = SYSTEM_ACTION_ENDPOINTS.get((target, action))
        if endpoint is None:
            raise ValueError(f"Unsupported system action: {target}/{action}")
        await self.post_form(endpoint)


def _parse(model: type[ModelT], payload: dict[str, Any], path: str) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise DeviceEnvelopeError(f"{path}: {exc.errors()[0]['msg']}") from exc
