from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


def to_camel(value: str) -> str:
    """Convert snake_case field names to lowerCamelCase for API payloads."""
    if "_" not in value:
        return value
    head, *tail = value.split("_")
    return head + "".join(word.capitalize() for word in tail if word)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Make a datetime timezone-aware in UTC, assuming naive values are already UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class FrozenCamelModel(BaseModel):
    """CamelModel variant for values that must not change after creation."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, frozen=True)


class StatusResponse(CamelModel):
    """Machine-readable outcome plus a human message."""

    success: bool
    message: str
