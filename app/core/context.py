"""
Application state container.

Every stateful component lives on one ``AppContext`` built at startup and
attached to ``app.state``; handlers reach it through ``app.shared.deps.get_context``.
Components expose their own update methods, which are the only way to mutate them.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from app.core.config import Settings
from app.modules.alerts.aggregator import AlertAggregator
from app.modules.alerts.config import load_rules
from app.modules.alerts.decision import RuleEvaluator
from app.modules.alerts.engine import VitalsMonitor
from app.modules.emergency.facilities import load_directory
from app.modules.emergency.geolocation import Locator, ReportedLocator, build_locator
from app.modules.emergency.notifier import build_notifier
from app.modules.emergency.status import EmergencyStatusStore
from app.modules.emergency.workflow import EscalationWorkflow
from app.modules.insights.service import InsightService
from app.modules.vitals.manager import VitalsBroadcaster
from app.modules.vitals.service import VitalsHistory, VitalService


@dataclass
class AppContext:
    settings: Settings
    broadcaster: VitalsBroadcaster
    history: VitalsHistory
    alerts: AlertAggregator
    evaluator: RuleEvaluator
    status: EmergencyStatusStore
    locator: Locator
    workflow: EscalationWorkflow
    monitor: VitalsMonitor
    vitals: VitalService
    insights: InsightService

    @property
    def reported_locator(self) -> Optional[ReportedLocator]:
        """The locator dashboards report into, when that provider is selected."""
        return self.locator if isinstance(self.locator, ReportedLocator) else None

    async def shutdown(self, grace_seconds: float = 5.0) -> None:
        await self.monitor.stop()
        await self.workflow.wait_idle(timeout=grace_seconds)


def _optional_path(value: Optional[str]) -> Optional[Path]:
    return Path(value) if value else None


def build_context(settings: Settings) -> AppContext:
    broadcaster = VitalsBroadcaster(queue_size=settings.CHANNEL_QUEUE_SIZE)
    history = VitalsHistory(size=settings.HISTORY_SIZE)
    alerts = AlertAggregator(retention=settings.ALERT_RETENTION)
    evaluator = RuleEvaluator(rules=load_rules(_optional_path(settings.ALERT_RULES_PATH)))
    status = EmergencyStatusStore()
    locator = build_locator(settings)
    workflow = EscalationWorkflow(
        locator=locator,
        notifier=build_notifier(settings),
        directory=load_directory(_optional_path(settings.FACILITIES_PATH)),
        status=status,
        broadcaster=broadcaster,
        recipient=settings.NOTIFY_RECIPIENT,
        notify_timeout=settings.NOTIFY_TIMEOUT_SECONDS,
        geolocation_timeout=settings.GEOLOCATION_TIMEOUT_SECONDS,
        history_size=settings.INCIDENT_HISTORY_SIZE,
    )
    monitor = VitalsMonitor(
        evaluator=evaluator,
        aggregator=alerts,
        workflow=workflow,
        broadcaster=broadcaster,
        queue_size=settings.MONITOR_QUEUE_SIZE,
    )
    return AppContext(
        settings=settings,
        broadcaster=broadcaster,
        history=history,
        alerts=alerts,
        evaluator=evaluator,
        status=status,
        locator=locator,
        workflow=workflow,
        monitor=monitor,
        vitals=VitalService(broadcaster=broadcaster, history=history, monitor=monitor),
        insights=InsightService.from_settings(settings),
    )
