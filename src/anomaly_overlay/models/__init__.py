"""Pydantic models shared by reconciliation, statistics and the service layer."""

from .anomaly import Anomaly, AnomalyFeedback, AnomalyProperties, formatted_modified_by, formatted_rule
from .chart import ChartSeries, OverlayChannels
from .rule import Rule, rule_options
from .timeseries import PredictionSeries, PreviewResult, TimeSeries

__all__ = [
    "Anomaly",
    "AnomalyFeedback",
    "AnomalyProperties",
    "ChartSeries",
    "OverlayChannels",
    "PredictionSeries",
    "PreviewResult",
    "Rule",
    "TimeSeries",
    "formatted_modified_by",
    "formatted_rule",
    "rule_options",
]
