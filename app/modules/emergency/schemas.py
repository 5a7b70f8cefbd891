import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import AliasChoices, Field

from app.modules.emergency.models import FallType, IncidentState, NotifyOutcome
from app.modules.vitals.schemas import VitalsSnapshot
from app.shared.schemas import CamelModel, FrozenCamelModel


class Coordinates(FrozenCamelModel):
    lat: float = Field(ge=-90, le=90, validation_alias=AliasChoices("lat", "latitude"))
    lon: float = Field(
        ge=-180, le=180, validation_alias=AliasChoices("lon", "lng", "longitude")
    )

    @property
    def map_link(self) -> str:
        return f"https://www.google.com/maps?q={self.lat},{self.lon}"


class Facility(FrozenCamelModel):
    """One entry of the static medical facility directory."""

    name: str
    lat: float
    lon: float
    contact: str = ""
    address: str = ""


class NearestFacility(FrozenCamelModel):
    facility: Facility
    distance_km: float


class EmergencyIncident(FrozenCamelModel):
    """The immutable facts an escalation starts from."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    fall_type: FallType
    impact_force: float
    vitals: VitalsSnapshot
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class IncidentRecord(CamelModel):
    """Mutable per-incident progress, owned by the escalation workflow."""

    incident: EmergencyIncident
    state: IncidentState = IncidentState.IDLE
    location: Optional[Coordinates] = None
    location_error: Optional[str] = None
    nearest: Optional[NearestFacility] = None
    outcome: NotifyOutcome = NotifyOutcome.PENDING
    message_id: Optional[str] = None
    error: Optional[str] = None
    summary: str = ""


class EmergencyStatus(FrozenCamelModel):
    is_active: bool = False
    last_triggered: Optional[datetime] = None
    location: Optional[Coordinates] = None


class LocationReport(CamelModel):
    """Device position as reported by a dashboard, or why it could not be read."""

    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lon: Optional[float] = Field(default=None, ge=-180, le=180)
    error: Optional[Literal["denied", "unavailable", "unsupported"]] = None


class NotifyRequest(CamelModel):
    to: str = Field(min_length=1)
    subject: str = Field(min_length=1)
    html: str = Field(min_length=1)


class NotifyResponse(CamelModel):
    success: bool = True
    message_id: str


class ManualTriggerRequest(CamelModel):
    note: Optional[str] = None
