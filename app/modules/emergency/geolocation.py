"""Sources for the monitored device's current position."""

from datetime import datetime, timezone
from typing import Callable, Optional, Protocol, Union

import structlog

from app.core.config import Settings
from app.modules.emergency.schemas import Coordinates, LocationReport
from app.shared.exceptions import (
    GeolocationError,
    GeolocationUnsupported,
    PermissionDenied,
    PositionUnavailable,
)

log = structlog.get_logger()


class Locator(Protocol):
    async def get_current_position(self) -> Coordinates: ...


class StaticLocator:
    """Fixed position for a device installed at a known address."""

    def __init__(self, position: Coordinates) -> None:
        self._position = position

    async def get_current_position(self) -> Coordinates:
        return self._position


class UnsupportedLocator:
    async def get_current_position(self) -> Coordinates:
        raise GeolocationUnsupported("geolocation is not available on this deployment")


class ReportedLocator:
    """
    Position last reported by a connected dashboard.

    Dashboards run next to the patient and push what the browser geolocation API
    returns, including a denied/unavailable outcome. Reports older than
    ``max_age_seconds`` are treated as unavailable.
    """

    def __init__(
        self,
        max_age_seconds: int = 300,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._max_age_seconds = max_age_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # Either the reported position or the reason the device gave for not having one
        self._last: Union[Coordinates, str, None] = None
        self._reported_at: Optional[datetime] = None

    def report(self, report: LocationReport) -> None:
        self._reported_at = self._clock()
        if report.error is not None or report.lat is None or report.lon is None:
            self._last = _error_for(report.error).reason
            log.info("device location error reported", reason=self._last)
            return
        self._last = Coordinates(lat=report.lat, lon=report.lon)
        log.debug("device location reported", lat=report.lat, lon=report.lon)

    async def get_current_position(self) -> Coordinates:
        if self._reported_at is None or self._last is None:
            raise PositionUnavailable("no device location has been reported")
        age = (self._clock() - self._reported_at).total_seconds()
        if age > self._max_age_seconds:
            raise PositionUnavailable(f"last device location is {int(age)}s old")
        if isinstance(self._last, Coordinates):
            return self._last
        raise _error_for(self._last)


def _error_for(reason: Optional[str]) -> GeolocationError:
    if reason == "denied":
        return PermissionDenied("location permission denied on the device")
    if reason == "unsupported":
        return GeolocationUnsupported("device does not support geolocation")
    return PositionUnavailable("device could not determine its location")


def build_locator(settings: Settings) -> Locator:
    if settings.GEOLOCATION_PROVIDER == "static":
        if settings.DEVICE_LATITUDE is None or settings.DEVICE_LONGITUDE is None:
            log.warning("static geolocation selected without coordinates")
            return UnsupportedLocator()
        return StaticLocator(
            Coordinates(lat=settings.DEVICE_LATITUDE, lon=settings.DEVICE_LONGITUDE)
        )
    if settings.GEOLOCATION_PROVIDER == "none":
        return UnsupportedLocator()
    return ReportedLocator(max_age_seconds=settings.LOCATION_MAX_AGE_SECONDS)
