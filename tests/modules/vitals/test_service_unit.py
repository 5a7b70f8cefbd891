from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from app.modules.vitals.manager import VitalsBroadcaster
from app.modules.vitals.schemas import Reading
from app.modules.vitals.service import VitalService, VitalsHistory, ingest
from app.shared.exceptions import ReadingValidationError
from tests.helpers import esp32_payload, sample_payload


def _drain(queue) -> list[dict]:
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


def test_ingest_returns_reading_for_object_payload() -> None:
    reading = ingest(sample_payload())

    assert isinstance(reading, Reading)
    assert reading.heart_rate == 72


@pytest.mark.parametrize("raw", [[1, 2, 3], "heartRate=80", 42, None])
def test_ingest_rejects_non_object_payload(raw: object) -> None:
    with pytest.raises(ReadingValidationError, match="JSON object"):
        ingest(raw)


def test_ingest_names_invalid_fields() -> None:
    with pytest.raises(ReadingValidationError, match="temperature"):
        ingest({"temperature": "warm"})


def test_ingest_stamps_receive_time_and_keeps_device_clock() -> None:
    before = datetime.now(timezone.utc)
    reading = ingest(esp32_payload(timestamp=123456))
    after = datetime.now(timezone.utc)

    assert before <= reading.timestamp <= after
    assert reading.device_timestamp == 123456


@pytest.mark.parametrize("device_clock", [1714557600000, 1e20, "2024-05-01T10:00:00Z"])
def test_ingest_accepts_any_device_clock_value(device_clock: object) -> None:
    reading = ingest(sample_payload(timestamp=device_clock))

    assert reading.device_timestamp == device_clock
    assert reading.timestamp.year >= 2024


def test_ingest_keeps_explicit_device_timestamp() -> None:
    reading = ingest({"timestamp": 1, "deviceTimestamp": 42})

    assert reading.device_timestamp == 42


def test_ingest_without_device_clock_leaves_it_empty() -> None:
    assert ingest({"heartRate": 70}).device_timestamp is None


def test_ingest_rejects_structured_device_clock() -> None:
    with pytest.raises(ReadingValidationError, match="deviceTimestamp"):
        ingest({"timestamp": {"ms": 5}})


def test_history_keeps_most_recent_readings_oldest_first() -> None:
    history = VitalsHistory(size=6)
    for hr in range(60, 70):
        history.append(ingest({"heartRate": hr}))

    readings = history.list_readings()

    assert len(history) == 6
    assert [r.heart_rate for r in readings] == [64, 65, 66, 67, 68, 69]
    assert history.latest().heart_rate == 69


def test_history_latest_is_none_when_empty() -> None:
    history = VitalsHistory()

    assert history.latest() is None
    history.append(ingest({}))
    history.clear()
    assert history.list_readings() == []


def test_accept_records_broadcasts_and_submits_for_evaluation() -> None:
    broadcaster = VitalsBroadcaster(queue_size=10)
    channel = broadcaster.subscribe()
    history = VitalsHistory()
    monitor = MagicMock()
    service = VitalService(broadcaster=broadcaster, history=history, monitor=monitor)

    # Step 1: Accept a reading
    reading = service.accept(sample_payload(heartRate=90))

    # Step 2: It is in the rolling window and queued for the subscriber after the handshake
    assert history.latest() == reading
    messages = _drain(channel.queue)
    assert [m["type"] for m in messages] == ["connected", "vitals"]
    assert messages[1]["heartRate"] == 90

    # Step 3: The monitor received the same reading
    monitor.submit.assert_called_once_with(reading)


def test_accept_rejects_without_side_effects() -> None:
    broadcaster = VitalsBroadcaster(queue_size=10)
    channel = broadcaster.subscribe()
    _drain(channel.queue)
    history = VitalsHistory()
    monitor = MagicMock()
    service = VitalService(broadcaster=broadcaster, history=history, monitor=monitor)

    with pytest.raises(ReadingValidationError):
        service.accept(["not", "an", "object"])

    assert len(history) == 0
    assert channel.queue.empty()
    monitor.submit.assert_not_called()
