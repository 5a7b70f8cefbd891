from __future__ import annotations

from collections import deque
from typing import Deque, Iterable

import structlog

from app.modules.alerts.schemas import Alert

log = structlog.get_logger()


class AlertAggregator:
    """
    Session-wide alert list shown on the dashboard.

    Keeps arrival order and retains only the ``retention`` most recent alerts;
    the oldest are discarded first. Alerts leave the list only by dismissal or
    by being pushed out.
    """

    def __init__(self, retention: int = 10) -> None:
        self._alerts: Deque[Alert] = deque(maxlen=retention)

    def add(self, alerts: Iterable[Alert]) -> list[Alert]:
        added = list(alerts)
        self._alerts.extend(added)
        return added

    def dismiss(self, alert_id: str) -> bool:
        """Remove an alert by id; unknown ids are ignored."""
        for alert in self._alerts:
            if alert.id == alert_id:
                self._alerts.remove(alert)
                log.info("alert dismissed", alert_id=alert_id)
                return True
        return False

    def list_alerts(self) -> list[Alert]:
        return list(self._alerts)

    def clear(self) -> None:
        self._alerts.clear()

    def __len__(self) -> int:
        return len(self._alerts)
