from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from app.modules.alerts.aggregator import AlertAggregator
from app.modules.alerts.decision import RuleEvaluator
from app.modules.alerts.models import SourceMetric
from app.modules.alerts.schemas import Alert
from app.modules.emergency.workflow import EscalationWorkflow, incident_from_fall
from app.modules.vitals.manager import VitalsBroadcaster
from app.modules.vitals.schemas import Reading

log = structlog.get_logger()


class VitalsMonitor:
    """
    Background consumer that evaluates each accepted reading.

    Readings are queued by the ingest path and processed one at a time in
    arrival order: evaluate → aggregate → announce → escalate. Escalations run
    as their own tasks so a slow geolocation or notification never delays the
    next reading.
    """

    def __init__(
        self,
        evaluator: RuleEvaluator,
        aggregator: AlertAggregator,
        workflow: EscalationWorkflow,
        broadcaster: VitalsBroadcaster,
        queue_size: int = 1000,
    ) -> None:
        self._evaluator = evaluator
        self._aggregator = aggregator
        self._workflow = workflow
        self._broadcaster = broadcaster
        self._queue: asyncio.Queue[Reading] = asyncio.Queue(maxsize=queue_size)
        self._worker: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def submit(self, reading: Reading) -> bool:
        """Queue a reading for evaluation; starts the worker on first use."""
        self.start()
        try:
            self._queue.put_nowait(reading)
        except asyncio.QueueFull:
            log.error("monitor queue full, reading not evaluated", timestamp=reading.timestamp.isoformat())
            return False
        return True

    def start(self) -> None:
        if self.running:
            return
        self._worker = asyncio.create_task(self._consume(), name="vitals-monitor")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None

    async def join(self) -> None:
        """Wait until every queued reading has been processed."""
        await self._queue.join()

    def process(self, reading: Reading) -> list[Alert]:
        """Evaluate one reading and act on the result; returns the alerts it raised."""
        alerts = self._aggregator.add(self._evaluator.evaluate(reading))
        for alert in alerts:
            self._broadcaster.publish_event("alert", alert.model_dump(by_alias=True, mode="json"))
            log.info(
                "alert raised",
                alert_id=alert.id,
                kind=alert.kind.value,
                metric=alert.source_metric.value,
                message=alert.message,
            )

        if any(alert.source_metric == SourceMetric.FALL for alert in alerts):
            fall = self._evaluator.classify_fall(reading)
            if fall is not None:
                self._workflow.start(incident_from_fall(reading, fall))
        return alerts

    async def _consume(self) -> None:
        while True:
            reading = await self._queue.get()
            try:
                self.process(reading)
            except Exception:
                log.exception("reading evaluation failed", timestamp=reading.timestamp.isoformat())
            finally:
                self._queue.task_done()
