import math
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator

from app.shared.schemas import FrozenCamelModel, ensure_utc


def _norm(x: float, y: float, z: float) -> float:
    return math.sqrt(x * x + y * y + z * z)


def _null_as_zero(value: object) -> object:
    # Sensors send null for a vital they could not sample this cycle
    return 0.0 if value is None else value


class Accelerometer(FrozenCamelModel):
    """Linear acceleration in m/s², optionally with a precomputed magnitude."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    total: float | None = None

    @field_validator("x", "y", "z", mode="before")
    @classmethod
    def null_axis_is_zero(cls, value: object) -> object:
        return _null_as_zero(value)

    @property
    def magnitude(self) -> float:
        """Reported total, or the Euclidean norm when the sensor left it out."""
        if self.total:
            return self.total
        return _norm(self.x, self.y, self.z)


class Gyroscope(FrozenCamelModel):
    """Angular velocity in rad/s."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @field_validator("x", "y", "z", mode="before")
    @classmethod
    def null_axis_is_zero(cls, value: object) -> object:
        return _null_as_zero(value)

    @property
    def magnitude(self) -> float:
        return _norm(self.x, self.y, self.z)


class Reading(FrozenCamelModel):
    """
    One timestamped sample from the sensor.

    Accepts both camelCase and snake_case field names; always serialises as camelCase.
    ``timestamp`` is the server's receive time once the reading has gone through
    ``ingest``; whatever clock value the device sent is kept in ``device_timestamp``.
    """

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    device_timestamp: float | str | None = None
    heart_rate: float = Field(
        default=0.0, validation_alias=AliasChoices("heartRate", "heart_rate")
    )
    spo2: float = Field(default=0.0, validation_alias=AliasChoices("spo2", "spO2", "SpO2"))
    temperature: float = 0.0
    accelerometer: Optional[Accelerometer] = None
    gyroscope: Optional[Gyroscope] = None
    fall_alert: bool = Field(
        default=False,
        validation_alias=AliasChoices("fallAlert", "fall_alert", "fall_detected"),
    )

    @field_validator("heart_rate", "spo2", "temperature", mode="before")
    @classmethod
    def null_vitals_default_to_zero(cls, value: object) -> object:
        return _null_as_zero(value)

    @field_validator("fall_alert", mode="before")
    @classmethod
    def null_flag_is_false(cls, value: object) -> object:
        return False if value is None else value

    # Allow integer/float epoch seconds as timestamp input
    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_epoch_timestamp(cls, value: object) -> object:
        if value is None:
            return datetime.now(timezone.utc)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                return datetime.fromtimestamp(value, tz=timezone.utc)
            except (OverflowError, OSError, ValueError) as exc:
                raise ValueError(f"epoch timestamp out of range: {value}") from exc
        return value

    @field_validator("timestamp")
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def vitals_snapshot(self) -> "VitalsSnapshot":
        return VitalsSnapshot(
            heart_rate=self.heart_rate, spo2=self.spo2, temperature=self.temperature
        )

    def to_message(self) -> dict[str, Any]:
        """Broadcast shape: the reading plus a ``type`` discriminator."""
        return {"type": "vitals", **self.model_dump(by_alias=True, mode="json")}


class VitalsSnapshot(FrozenCamelModel):
    """The three vital signs copied onto an incident."""

    heart_rate: float = 0.0
    spo2: float = 0.0
    temperature: float = 0.0
