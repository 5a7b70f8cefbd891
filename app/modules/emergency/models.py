from enum import Enum


class FallType(str, Enum):
    """What started an incident."""

    FALL = "FALL"
    HIGH_IMPACT = "HIGH_IMPACT"
    MANUAL = "MANUAL"

    @property
    def label(self) -> str:
        return {
            "FALL": "FALL DETECTED",
            "HIGH_IMPACT": "HIGH IMPACT (Possible car crash or severe fall)",
            "MANUAL": "MANUAL EMERGENCY REQUEST",
        }[self.value]


class IncidentState(str, Enum):
    IDLE = "idle"
    AWAITING_LOCATION = "awaiting_location"
    NOTIFYING = "notifying"
    RESOLVED = "resolved"


class NotifyOutcome(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
