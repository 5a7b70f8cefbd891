from datetime import datetime

from app.modules.alerts.models import AlertKind, RuleTable, SourceMetric
from app.shared.schemas import FrozenCamelModel


class Alert(FrozenCamelModel):
    """A notice that one rule matched one reading. Never modified after creation."""

    id: str
    kind: AlertKind
    message: str
    produced_at: datetime
    source_metric: SourceMetric
    rule: RuleTable
