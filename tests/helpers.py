"""Builders shared across test modules."""

from typing import Any

from app.core.config import Settings


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, **overrides)


def sample_payload(**overrides: Any) -> dict[str, Any]:
    """A quiet reading in the sensor's wire format; no rule fires on it."""
    payload: dict[str, Any] = {
        "timestamp": "2024-05-01T10:00:00Z",
        "heartRate": 72,
        "spo2": 98,
        "temperature": 36.8,
        "accelerometer": {"x": 0.1, "y": 0.2, "z": 9.8, "total": 9.8},
        "gyroscope": {"x": 0.0, "y": 0.1, "z": 0.0},
        "fallAlert": False,
    }
    payload.update(overrides)
    return payload


def fall_payload(impact: float = 25.0, rotation: float = 4.0, **overrides: Any) -> dict[str, Any]:
    """Reading flagged by the sensor whose motion classifies as a fall."""
    payload = sample_payload(
        accelerometer={"x": impact, "y": 0.0, "z": 0.0},
        gyroscope={"x": rotation, "y": 0.0, "z": 0.0},
        fallAlert=True,
    )
    payload.update(overrides)
    return payload


def esp32_payload(**overrides: Any) -> dict[str, Any]:
    """What the wearable firmware posts: ``timestamp`` is ``millis()`` since boot."""
    payload: dict[str, Any] = {
        "timestamp": 123456,
        "temperature": 36.55,
        "heartRate": 78,
        "spo2": 97,
        "accelerometer": {"x": 0.12, "y": -0.4, "z": 9.71, "total": 9.72},
        "gyroscope": {"x": 0.01, "y": 0.02, "z": -0.01},
        "fallAlert": False,
    }
    payload.update(overrides)
    return payload
