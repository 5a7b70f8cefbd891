from dataclasses import dataclass
from enum import Enum


class AlertKind(str, Enum):
    """Alert severity. Fall-classifier alerts are emitted as CRITICAL."""

    HIGH = "high"
    CRITICAL = "critical"
    LOW = "low"
    FALL = "fall"


class SourceMetric(str, Enum):
    HEART_RATE = "heartRate"
    SPO2 = "spo2"
    TEMPERATURE = "temperature"
    FALL = "fall"

    @property
    def reading_field(self) -> str:
        """Attribute name on Reading holding this metric's value."""
        return {"heartRate": "heart_rate"}.get(self.value, self.value)


class RuleTable(str, Enum):
    THRESHOLD = "threshold"
    BAND = "band"
    FALL = "fall"


class FallSeverity(str, Enum):
    FALL = "FALL DETECTED"
    HIGH_IMPACT = "HIGH IMPACT"


@dataclass(frozen=True)
class FallClassification:
    severity: FallSeverity
    total_accel: float
    total_gyro: float
