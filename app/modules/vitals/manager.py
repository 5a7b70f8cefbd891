import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from app.modules.vitals.schemas import Reading

log = structlog.get_logger()

CONNECTED_MESSAGE = "Connected to vitals monitoring server"


@dataclass(eq=False)
class Channel:
    """A subscriber's outbound mailbox. Messages are delivered in publish order."""

    queue: asyncio.Queue[dict[str, Any]]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    transport: str = "unknown"
    dropped: int = 0


class VitalsBroadcaster:
    """
    Fan-out of readings and events to every connected dashboard.

    Each channel owns a bounded queue; publishing never awaits, so a slow or dead
    subscriber only loses its own messages and never holds up the others.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._channels: dict[str, Channel] = {}

    @property
    def channels(self) -> list[Channel]:
        return list(self._channels.values())

    def subscribe(self, transport: str = "unknown") -> Channel:
        """Register a channel and queue the ``connected`` acknowledgement as its first message."""
        channel = Channel(queue=asyncio.Queue(maxsize=self._queue_size), transport=transport)
        self._channels[channel.id] = channel
        channel.queue.put_nowait(
            {
                "type": "connected",
                "message": CONNECTED_MESSAGE,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )
        log.info("channel subscribed", channel_id=channel.id, transport=transport)
        return channel

    def unsubscribe(self, channel: Channel) -> None:
        """Drop a channel if it is still tracked; queued messages are discarded."""
        if self._channels.pop(channel.id, None) is not None:
            log.info(
                "channel unsubscribed",
                channel_id=channel.id,
                transport=channel.transport,
                dropped=channel.dropped,
            )

    def publish(self, reading: Reading) -> int:
        """Queue a ``vitals`` message on every channel and return how many accepted it."""
        return self._fan_out(reading.to_message())

    def publish_event(self, event_type: str, payload: dict[str, Any]) -> int:
        """Queue a non-reading message (alerts, emergency updates) on every channel."""
        return self._fan_out({"type": event_type, **payload})

    def _fan_out(self, message: dict[str, Any]) -> int:
        delivered = 0
        # Iterate over a copy so a concurrent unsubscribe cannot break the loop
        for channel in list(self._channels.values()):
            try:
                channel.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                channel.dropped += 1
                log.warning(
                    "channel queue full, message dropped",
                    channel_id=channel.id,
                    message_type=message.get("type"),
                    dropped=channel.dropped,
                )
        return delivered
