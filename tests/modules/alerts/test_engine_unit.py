import asyncio
from unittest.mock import MagicMock

import pytest

from app.modules.alerts.aggregator import AlertAggregator
from app.modules.alerts.config import DEFAULT_RULES
from app.modules.alerts.decision import RuleEvaluator
from app.modules.alerts.engine import VitalsMonitor
from app.modules.emergency.models import FallType
from app.modules.vitals.manager import VitalsBroadcaster
from app.modules.vitals.schemas import Reading
from tests.helpers import fall_payload, sample_payload


def _monitor(queue_size: int = 100) -> tuple[VitalsMonitor, AlertAggregator, VitalsBroadcaster, MagicMock]:
    aggregator = AlertAggregator()
    broadcaster = VitalsBroadcaster()
    workflow = MagicMock()
    monitor = VitalsMonitor(
        evaluator=RuleEvaluator(DEFAULT_RULES),
        aggregator=aggregator,
        workflow=workflow,
        broadcaster=broadcaster,
        queue_size=queue_size,
    )
    return monitor, aggregator, broadcaster, workflow


def _drain(queue: asyncio.Queue) -> list[dict]:
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


def test_process_aggregates_and_announces_alerts() -> None:
    monitor, aggregator, broadcaster, workflow = _monitor()
    channel = broadcaster.subscribe()
    _drain(channel.queue)

    alerts = monitor.process(Reading.model_validate(sample_payload(spo2=85)))

    assert aggregator.list_alerts() == alerts
    messages = _drain(channel.queue)
    assert [m["type"] for m in messages] == ["alert"]
    assert messages[0]["id"] == alerts[0].id
    assert messages[0]["sourceMetric"] == "spo2"
    workflow.start.assert_not_called()


def test_process_starts_one_escalation_per_fall() -> None:
    monitor, aggregator, _, workflow = _monitor()
    reading = Reading.model_validate(fall_payload(impact=25.0, rotation=4.0, heartRate=88))

    monitor.process(reading)
    monitor.process(reading)

    assert workflow.start.call_count == 2
    incident = workflow.start.call_args_list[0].args[0]
    assert incident.fall_type == FallType.HIGH_IMPACT
    assert incident.impact_force == 25.0
    assert incident.vitals.heart_rate == 88
    # Each qualifying reading gets its own incident
    second = workflow.start.call_args_list[1].args[0]
    assert second.id != incident.id
    assert len(aggregator) == 2


def test_quiet_reading_does_nothing() -> None:
    monitor, aggregator, _, workflow = _monitor()

    assert monitor.process(Reading.model_validate(sample_payload())) == []
    assert len(aggregator) == 0
    workflow.start.assert_not_called()


@pytest.mark.asyncio
async def test_submit_starts_worker_and_processes_in_order() -> None:
    monitor, aggregator, _, _ = _monitor()

    assert monitor.running is False
    for spo2 in (85, 86, 87):
        assert monitor.submit(Reading.model_validate(sample_payload(spo2=spo2))) is True
    assert monitor.running is True

    await asyncio.wait_for(monitor.join(), timeout=1.0)

    assert [a.message for a in aggregator.list_alerts()] == [
        "Low SpO2: 85%",
        "Low SpO2: 86%",
        "Low SpO2: 87%",
    ]
    await monitor.stop()
    assert monitor.running is False


@pytest.mark.asyncio
async def test_submit_reports_full_queue() -> None:
    monitor, _, _, _ = _monitor(queue_size=1)
    reading = Reading.model_validate(sample_payload())

    # The worker has not run yet, so the second reading finds the queue full
    assert monitor.submit(reading) is True
    assert monitor.submit(reading) is False

    await asyncio.wait_for(monitor.join(), timeout=1.0)
    await monitor.stop()


@pytest.mark.asyncio
async def test_worker_survives_a_failing_reading(monkeypatch: pytest.MonkeyPatch) -> None:
    monitor, aggregator, _, _ = _monitor()
    original = monitor.process
    calls = {"n": 0}

    def _flaky(reading: Reading):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("boom")
        return original(reading)

    monkeypatch.setattr(monitor, "process", _flaky)

    monitor.submit(Reading.model_validate(sample_payload(spo2=85)))
    monitor.submit(Reading.model_validate(sample_payload(spo2=86)))
    await asyncio.wait_for(monitor.join(), timeout=1.0)

    assert [a.message for a in aggregator.list_alerts()] == ["Low SpO2: 86%"]
    await monitor.stop()


@pytest.mark.asyncio
async def test_stop_without_start_is_harmless() -> None:
    monitor, _, _, _ = _monitor()

    await monitor.stop()

    assert monitor.running is False
