from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class IntegrationType(str, Enum):
    PHILLIPS_HUE = "PHILLIPS_HUE"
    NANOLEAF = "NANOLEAF"


@dataclass(frozen=True)
class LightState:
    on: bool
    brightness: float
    hue: float | None = None  # degrees, [0, 360)
    saturation: float | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.brightness <= 1.0:
            raise ValueError(f"brightness must be within [0.0, 1.0], got {self.brightness}")
        if self.hue is not None and not 0.0 <= self.hue < 360.0:
            raise ValueError(f"hue must be within [0, 360), got {self.hue}")
        if self.saturation is not None and not 0.0 <= self.saturation <= 1.0:
            raise ValueError(f"saturation must be within [0.0, 1.0], got {self.saturation}")

    def apply_to(self, target: "LightState") -> "LightState":
        """
        Partial update of `target`: on/brightness always, hue/saturation only when set here.
        """
        return replace(
            target,
            on=self.on,
            brightness=self.brightness,
            hue=self.hue if self.hue is not None else target.hue,
            saturation=self.saturation if self.saturation is not None else target.saturation,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"on": self.on, "brightness": self.brightness, "hue": self.hue, "saturation": self.saturation}

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "LightState":
        return LightState(
            on=bool(data.get("on", False)),
            brightness=float(data.get("brightness", 0.0)),
            hue=float(data["hue"]) if data.get("hue") is not None else None,
            saturation=float(data["saturation"]) if data.get("saturation") is not None else None,
        )


ON_STATE = LightState(on=True, brightness=1.0)
OFF_STATE = LightState(on=False, brightness=0.0)


@dataclass
class Light:
    id: str
    name: str
    integration_type: IntegrationType
    state: LightState = field(default_factory=lambda: OFF_STATE)
    integration_id: str | None = None  # vendor-side device id
    address: str | None = None  # host for peer-addressed devices
    access_token: str | None = None


@dataclass
class Room:
    id: str
    name: str
    light_ids: list[str] = field(default_factory=list)
    integration_ids: dict[IntegrationType, str] = field(default_factory=dict)

    def add_light_ids(self, ids: list[str]) -> None:
        for light_id in ids:
            if light_id not in self.light_ids:
                self.light_ids.append(light_id)

    def remove_light_id(self, light_id: str) -> None:
        self.light_ids = [lid for lid in self.light_ids if lid != light_id]


@dataclass(frozen=True)
class Status:
    success: bool
    message: str | None = None


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None
    status: Status

    @property
    def ok(self) -> bool:
        return self.status.success

    @property
    def message(self) -> str | None:
        return self.status.message

    @staticmethod
    def success(value: Any = None) -> "Result[Any]":
        return Result(value=value, status=Status(success=True))

    @staticmethod
    def failure(message: str, value: Any = None) -> "Result[Any]":
        return Result(value=value, status=Status(success=False, message=message))
