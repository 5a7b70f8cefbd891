from __future__ import annotations

import itertools
from datetime import datetime, timezone
from typing import Callable, Iterator

from app.modules.alerts.config import AlertRulesConfig, BandRule
from app.modules.alerts.models import (
    AlertKind,
    FallClassification,
    FallSeverity,
    RuleTable,
    SourceMetric,
)
from app.modules.alerts.schemas import Alert
from app.modules.vitals.schemas import Reading


class RuleEvaluator:
    """
    Stateless per-reading rule evaluation.

    The only state kept is the alert id counter, so ids stay unique and increasing
    for the lifetime of the evaluator.
    """

    def __init__(
        self,
        rules: AlertRulesConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._rules = rules
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._ids = itertools.count(1)

    @property
    def rules(self) -> AlertRulesConfig:
        return self._rules

    def evaluate(self, reading: Reading) -> Iterator[Alert]:
        """
        Yield the alerts a reading triggers.

        A classified fall yields exactly one critical alert and nothing else.
        Otherwise the threshold table and the band table are both applied; a band
        alert is skipped when a threshold alert of the same kind already covers
        that metric.
        """
        fall = self.classify_fall(reading)
        if fall is not None:
            yield self._fall_alert(fall)
            return

        raised: set[tuple[SourceMetric, AlertKind]] = set()
        for rule in self._rules.thresholds:
            value = self._metric_value(reading, rule.metric)
            if value and rule.matches(value):
                raised.add((rule.metric, rule.kind))
                yield self._alert(rule.kind, rule.metric, RuleTable.THRESHOLD, rule.message, value)

        for band in self._rules.bands:
            value = self._metric_value(reading, band.metric)
            if not value:
                continue
            outcome = self._band_outcome(band, value)
            if outcome is None or (band.metric, outcome[0]) in raised:
                continue
            kind, template = outcome
            yield self._alert(kind, band.metric, RuleTable.BAND, template, value)

    def classify_fall(self, reading: Reading) -> FallClassification | None:
        """Refine the sensor's fall flag with the accelerometer/gyroscope pair."""
        if not reading.fall_alert:
            return None
        if reading.accelerometer is None or reading.gyroscope is None:
            return None

        thresholds = self._rules.fall
        total_accel = reading.accelerometer.magnitude
        total_gyro = reading.gyroscope.magnitude

        is_freefalling = total_accel < thresholds.freefall_below
        is_high_impact = total_accel > thresholds.impact_above
        is_rapid_rotation = total_gyro > thresholds.rotation_above

        is_fall = (is_high_impact and is_rapid_rotation) or (
            is_freefalling and total_gyro > thresholds.freefall_rotation_above
        )
        if not is_fall:
            return None

        severity = FallSeverity.HIGH_IMPACT if is_high_impact else FallSeverity.FALL
        return FallClassification(
            severity=severity, total_accel=total_accel, total_gyro=total_gyro
        )

    @staticmethod
    def _band_outcome(band: BandRule, value: float) -> tuple[AlertKind, str] | None:
        if band.min is not None and value < band.min:
            critical = band.critical_below is not None and value < band.critical_below
            return (AlertKind.CRITICAL if critical else AlertKind.LOW), band.low_message
        if band.max is not None and value > band.max:
            critical = band.critical_above is not None and value > band.critical_above
            return (AlertKind.CRITICAL if critical else AlertKind.HIGH), band.high_message
        return None

    def _fall_alert(self, fall: FallClassification) -> Alert:
        message = f"{fall.severity.value}! Impact: {fall.total_accel:.1f} m/s²"
        return Alert(
            id=self._next_id(),
            kind=AlertKind.CRITICAL,
            message=message,
            produced_at=self._clock(),
            source_metric=SourceMetric.FALL,
            rule=RuleTable.FALL,
        )

    def _alert(
        self,
        kind: AlertKind,
        metric: SourceMetric,
        table: RuleTable,
        template: str,
        value: float,
    ) -> Alert:
        return Alert(
            id=self._next_id(),
            kind=kind,
            message=template.format(value=value),
            produced_at=self._clock(),
            source_metric=metric,
            rule=table,
        )

    def _next_id(self) -> str:
        return f"alert-{next(self._ids)}"

    @staticmethod
    def _metric_value(reading: Reading, metric: SourceMetric) -> float:
        return float(getattr(reading, metric.reading_field))