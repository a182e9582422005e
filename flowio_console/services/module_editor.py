from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any

from flowio_console.domain.models import MASKED_SECRET_SENTINEL, FieldKind, FieldValue
from flowio_console.services.config_tree import normalize_path
from flowio_console.services.device_api import DeviceApiClient, DeviceApiError
from flowio_console.services.event_log import EventLogService
from flowio_console.services.panel import MessageSink, PanelController


SECRET_FIELD_PATTERN = re.compile(r"pass|token|secret", re.IGNORECASE)
INT_PREFIX_PATTERN = re.compile(r"^\s*([+-]?[0-9]+)")
FLOAT_PREFIX_PATTERN = re.compile(r"^\s*([+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?)")
MASKED_PLACEHOLDER = "Keep current (masked)"
INT_STEP = "1"
FLOAT_STEP = "0.001"

Patch = dict[str, dict[str, FieldValue]]


class PatchPreconditionError(Exception):
    """Raised when a patch is built while no module is loaded."""


@dataclass
class FieldControl:
    key: str
    kind: FieldKind
    text: str = ""
    checked: bool = False
    secret: bool = False
    masked: bool = False
    placeholder: str = ""
    step: str | None = None


def is_secret_field(name: str) -> bool:
    return SECRET_FIELD_PATTERN.search(name) is not None


def classify_value(value: Any) -> FieldKind:
    if isinstance(value, bool):
        return FieldKind.BOOL
    if isinstance(value, int):
        return FieldKind.INT
    if isinstance(value, float):
        return FieldKind.INT if value.is_integer() else FieldKind.FLOAT
    return FieldKind.STRING


def _value_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def build_control(key: str, value: Any) -> FieldControl:
    kind = classify_value(value)
    if kind == FieldKind.BOOL:
        return FieldControl(key=key, kind=kind, checked=bool(value))
    if kind == FieldKind.INT:
        return FieldControl(key=key, kind=kind, text=str(int(value)), step=INT_STEP)
    if kind == FieldKind.FLOAT:
        return FieldControl(key=key, kind=kind, text=repr(float(value)), step=FLOAT_STEP)

    text = _value_text(value)
    secret = is_secret_field(key)
    if secret and text == MASKED_SECRET_SENTINEL:
        return FieldControl(
            key=key,
            kind=kind,
            secret=True,
            masked=True,
            placeholder=MASKED_PLACEHOLDER,
        )
    return FieldControl(key=key, kind=kind, text=text, secret=secret)


def parse_int_text(text: str) -> int:
    match = INT_PREFIX_PATTERN.match(text or "")
    return int(match.group(1)) if match else 0


def parse_float_text(text: str) -> float:
    match = FLOAT_PREFIX_PATTERN.match(text or "")
    if match is None:
        return 0
    value = float(match.group(1))
    return value if math.isfinite(value) else 0


class ConfigModuleEditor(PanelController):
    """Form model for one configuration module and the patch built from it.

    Secrets come back from the device as ``***``. They are shown empty, and an
    empty secret is left out of the patch so the device keeps its stored value.
    Typing a value replaces it.
    """

    panel_name = "flowcfg"

    def __init__(
        self,
        api: DeviceApiClient,
        *,
        events: EventLogService | None = None,
        on_message: MessageSink | None = None,
    ) -> None:
        super().__init__(events=events, on_message=on_message)
        self.api = api
        self.module = ""
        self.baseline: dict[str, Any] = {}
        self.controls: list[FieldControl] = []
        self.apply_enabled = False
        self.truncated = False

    @property
    def loaded(self) -> bool:
        return bool(self.module)

    def control(self, key: str) -> FieldControl:
        for control in self.controls:
            if control.key == key:
                return control
        raise KeyError(key)

    def set_field(self, key: str, value: Any) -> None:
        control = self.control(key)
        if control.kind == FieldKind.BOOL:
            control.checked = bool(value)
        else:
            control.text = "" if value is None else str(value)

    def reset(self, message: str = "") -> None:
        self.module = ""
        self.baseline = {}
        self.controls = []
        self.apply_enabled = False
        self.truncated = False
        if message:
            self._set_message(message)

    async def load(self, module_path: str) -> bool:
        name = normalize_path(module_path)
        if not name:
            self.reset("No branch selected.")
            return False
        try:
            payload = await self.api.get_config_module(name)
        except DeviceApiError as exc:
            self.reset(f"Failed to load branch: {exc}")
            return False

        data: dict[str, Any] = dict(payload["data"])
        self.module = name
        self.baseline = data
        self.controls = [build_control(key, data[key]) for key in sorted(data)]
        self.apply_enabled = True
        self.truncated = bool(payload.get("truncated"))
        self._set_message(
            "Branch loaded (truncated, remote buffer full)."
            if self.truncated
            else "Branch loaded."
        )
        return True

    def build_patch(self) -> Patch:
        if not self.module:
            raise PatchPreconditionError("No branch selected.")
        fields: dict[str, FieldValue] = {}
        for control in self.controls:
            if control.kind == FieldKind.BOOL:
                fields[control.key] = control.checked
            elif control.kind == FieldKind.INT:
                fields[control.key] = parse_int_text(control.text)
            elif control.kind == FieldKind.FLOAT:
                fields[control.key] = parse_float_text(control.text)
            elif control.secret and control.text == "":
                continue
            else:
                fields[control.key] = control.text
        return {self.module: fields}

    async def apply(self) -> bool:
        try:
            patch = self.build_patch()
            await self.api.apply_config_patch(patch)
        except (PatchPreconditionError, DeviceApiError) as exc:
            self._set_message(f"Failed to apply configuration: {exc}")
            self._record_failure("config_apply", exc, module=self.module)
            return False
        self._set_message("Configuration applied to Flow.IO.")
        self._record("config_applied", module=self.module, fields=sorted(patch[self.module]))
        await self.load(self.module)
        return True
