import json
from pathlib import Path

import structlog
from pydantic import Field, field_validator

from app.modules.alerts.models import AlertKind, SourceMetric
from app.shared.schemas import CamelModel

log = structlog.get_logger()


def _vital_metric_only(metric: SourceMetric) -> SourceMetric:
    # Falls are classified from motion data, not compared against a value
    if metric is SourceMetric.FALL:
        raise ValueError("threshold and band rules apply to vital signs only, not 'fall'")
    return metric


class ThresholdRule(CamelModel):
    """Single-sided trigger: fire ``kind`` when the metric crosses ``above`` or ``below``."""

    metric: SourceMetric
    kind: AlertKind
    above: float | None = None
    below: float | None = None
    message: str

    @field_validator("metric")
    @classmethod
    def metric_is_a_vital(cls, value: SourceMetric) -> SourceMetric:
        return _vital_metric_only(value)

    def matches(self, value: float) -> bool:
        if self.above is not None and value > self.above:
            return True
        if self.below is not None and value < self.below:
            return True
        return False


class BandRule(CamelModel):
    """
    Normal range for a metric. Leaving the band raises LOW/HIGH, escalated to
    CRITICAL past the harder ``critical_below`` / ``critical_above`` bounds.
    """

    metric: SourceMetric
    min: float | None = None
    max: float | None = None
    critical_below: float | None = None
    critical_above: float | None = None
    low_message: str = ""
    high_message: str = ""

    @field_validator("metric")
    @classmethod
    def metric_is_a_vital(cls, value: SourceMetric) -> SourceMetric:
        return _vital_metric_only(value)


class FallRuleConfig(CamelModel):
    freefall_below: float = 6.0  # m/s², total acceleration
    impact_above: float = 20.0  # m/s², total acceleration
    rotation_above: float = 3.0  # rad/s, with high impact
    freefall_rotation_above: float = 1.0  # rad/s, with freefall


class AlertRulesConfig(CamelModel):
    version: str = "default-v1"
    # Both tables are expressed in the unit the sensor reports.
    temperature_unit: str = "celsius"
    thresholds: list[ThresholdRule] = Field(default_factory=list)
    bands: list[BandRule] = Field(default_factory=list)
    fall: FallRuleConfig = Field(default_factory=FallRuleConfig)


def fahrenheit_to_celsius(value: float) -> float:
    return round((value - 32.0) * 5.0 / 9.0, 1)


DEFAULT_RULES = AlertRulesConfig(
    thresholds=[
        ThresholdRule(
            metric=SourceMetric.HEART_RATE,
            kind=AlertKind.HIGH,
            above=120,
            message="High heart rate: {value:g} bpm",
        ),
        ThresholdRule(
            metric=SourceMetric.SPO2,
            kind=AlertKind.CRITICAL,
            below=90,
            message="Low SpO2: {value:g}%",
        ),
        ThresholdRule(
            metric=SourceMetric.TEMPERATURE,
            kind=AlertKind.HIGH,
            above=38,
            message="High temperature: {value:g}°C",
        ),
    ],
    bands=[
        BandRule(
            metric=SourceMetric.HEART_RATE,
            min=60,
            max=100,
            critical_below=50,
            critical_above=130,
            low_message="Low heart rate: {value:g} bpm",
            high_message="High heart rate: {value:g} bpm",
        ),
        BandRule(
            metric=SourceMetric.SPO2,
            min=92,
            max=100,
            critical_below=90,
            low_message="Low oxygen level: {value:g}%",
            high_message="Oxygen level out of range: {value:g}%",
        ),
        # 97 °F – 100.4 °F with a 102 °F critical bound, converted to °C
        BandRule(
            metric=SourceMetric.TEMPERATURE,
            min=fahrenheit_to_celsius(97.0),
            max=fahrenheit_to_celsius(100.4),
            critical_above=fahrenheit_to_celsius(102.0),
            low_message="Low body temperature: {value:g}°C",
            high_message="High fever: {value:g}°C",
        ),
    ],
)


def load_rules(path: Path | None) -> AlertRulesConfig:
    if path is None:
        return DEFAULT_RULES
    try:
        payload = json.loads(path.read_text())
        return AlertRulesConfig.model_validate(payload)
    except FileNotFoundError:
        log.info("alert rules file not found, using defaults", path=str(path))
        return DEFAULT_RULES
    except Exception as exc:
        log.warning("alert rules load failed, using defaults", path=str(path), error=str(exc))
        return DEFAULT_RULES
