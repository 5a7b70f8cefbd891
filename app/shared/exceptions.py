"""Error taxonomy shared by the ingest, broadcast and escalation paths."""


class RelayError(Exception):
    """Base class for errors raised by the relay."""


class ReadingValidationError(RelayError):
    """Inbound payload could not be turned into a Reading."""


class TransportError(RelayError):
    """Sending to a single subscriber channel failed."""


class GeolocationError(RelayError):
    """Device position could not be resolved."""

    reason = "unavailable"


class PermissionDenied(GeolocationError):
    reason = "denied"


class PositionUnavailable(GeolocationError):
    reason = "unavailable"


class GeolocationUnsupported(GeolocationError):
    reason = "unsupported"


class NotificationDispatchError(RelayError):
    """Outbound notification was rejected, failed or timed out."""


class UpstreamServiceError(RelayError):
    """An optional external capability (e.g. the AI summary) failed."""


class ConfigurationError(RelayError):
    """A capability was used without its required credential or URL."""
