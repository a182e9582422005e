from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


UpgradeTarget = Literal["supervisor", "flowio", "nextion"]
SystemTarget = Literal["supervisor", "flow"]
SystemAction = Literal["reboot", "factory_reset"]
FieldValue = bool | int | float | str

UPGRADE_TARGETS: tuple[str, ...] = ("supervisor", "flowio", "nextion")
MASKED_SECRET_SENTINEL = "***"
ROOT_CACHE_KEY = "__root__"
TRUE_STRINGS = frozenset({"1", "true", "on", "yes"})


def loose_bool(value: Any) -> bool:
    """Device flags arrive as bools, numbers, strings or null."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return False


class LineRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    color: str | None = None


class UpgradeState(str, Enum):
    IDLE = "idle"
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"
    UNKNOWN = "unknown"


class UpgradeStatus(BaseModel):
    """Last update state reported by the device.

    A missing or unrecognized ``state`` becomes ``UNKNOWN``; the raw value is
    kept in ``reported_state`` so it can still be shown.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    state: UpgradeState = UpgradeState.UNKNOWN
    reported_state: str = ""
    target: str = ""
    progress: float = 0
    message: str = Field(default="", alias="msg")

    @model_validator(mode="before")
    @classmethod
    def _keep_reported_state(cls, data: Any) -> Any:
        if isinstance(data, dict) and "reported_state" not in data and "state" in data:
            raw = data["state"]
            if isinstance(raw, UpgradeState):
                raw = raw.value
            data = {**data, "reported_state": raw if isinstance(raw, str) else ""}
        return data

    @field_validator("state", mode="before")
    @classmethod
    def _known_state(cls, value: Any) -> Any:
        if isinstance(value, UpgradeState):
            return value
        try:
            return UpgradeState(value)
        except ValueError:
            return UpgradeState.UNKNOWN

    @field_validator("target", "message", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("progress", mode="before")
    @classmethod
    def _progress_or_zero(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0
        return value


class UpgradeConfig(BaseModel):
    update_host: str = ""
    flowio_path: str = ""
    supervisor_path: str = ""
    nextion_path: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def as_form(self) -> dict[str, str]:
        return {key: str(value).strip() for key, value in self.model_dump().items()}


class NetworkInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    ssid: str = ""
    hidden: bool = False
    secure: bool = False
    rssi: int | None = None

    @field_validator("ssid", mode="before")
    @classmethod
    def _ssid_text(cls, value: Any) -> Any:
        return value if isinstance(value, str) else ""

    @field_validator("hidden", "secure", mode="before")
    @classmethod
    def _loose_flags(cls, value: Any) -> bool:
        return loose_bool(value)

    @field_validator("rssi", mode="before")
    @classmethod
    def _rssi_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return int(value)


class ScanStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    running: bool = False
    requested: bool = False
    count: int = 0
    total_found: int | None = None
    networks: list[NetworkInfo] = Field(default_factory=list)

    @field_validator("running", "requested", mode="before")
    @classmethod
    def _loose_flags(cls, value: Any) -> bool:
        return loose_bool(value)

    @field_validator("count", mode="before")
    @classmethod
    def _count_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0
        return int(value)

    @field_validator("total_found", mode="before")
    @classmethod
    def _total_number(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return int(value)

    @field_validator("networks", mode="before")
    @classmethod
    def _networks_objects(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @property
    def active(self) -> bool:
        return self.running or self.requested

    @property
    def found(self) -> int:
        return self.count if self.total_found is None else self.total_found


class WifiConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    ssid: str = ""
    password: str = Field(default="", alias="pass")

    @field_validator("enabled", mode="before")
    @classmethod
    def _loose_bool(cls, value: Any) -> bool:
        return loose_bool(value)

    @field_validator("ssid", "password", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class MqttConfig(BaseModel):
    server: str = ""
    port: int = 1883
    username: str = ""
    password: str = ""

    @field_validator("port", mode="before")
    @classmethod
    def _port_or_default(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 1883
        return int(value)

    @field_validator("server", "username", "password", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ConfigTreeNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    prefix: str
    has_exact_module: bool = False
    children: tuple[str, ...] = ()


class FieldKind(str, Enum):
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    STRING = "string"


class StatusCard(BaseModel):
    title: str
    rows: list[tuple[str, str]] = Field(default_factory=list)
