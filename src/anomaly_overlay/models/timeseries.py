"""Time series, prediction and preview payload models."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .anomaly import Anomaly

TIMESTAMP_KEY = "timestamp"


class TimeSeries(BaseModel):
    """Sample grid plus any number of parallel value channels.

    The wire format is flat (``{"timestamp": [...], "value": [...], "upper_bound": [...]}``);
    every list-valued key other than ``timestamp`` becomes a named channel.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: List[int] = Field(default_factory=list)
    channels: Dict[str, List[Optional[float]]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _collect_channels(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "channels" in data:
            return data
        channels = {
            str(key): value
            for key, value in data.items()
            if key != TIMESTAMP_KEY and isinstance(value, (list, tuple))
        }
        return {TIMESTAMP_KEY: data.get(TIMESTAMP_KEY, []), "channels": channels}

    @model_validator(mode="after")
    def _check_grid(self) -> "TimeSeries":
        for prev, cur in zip(self.timestamp, self.timestamp[1:]):
            if cur <= prev:
                raise ValueError(f"timestamps must be strictly increasing ({prev} >= {cur})")
        for name, values in self.channels.items():
            if len(values) != len(self.timestamp):
                raise ValueError(
                    f"channel '{name}' has {len(values)} values for {len(self.timestamp)} timestamps"
                )
        return self

    def channel(self, name: str) -> Optional[Tuple[Optional[float], ...]]:
        values = self.channels.get(name)
        if values is None:
            return None
        return tuple(values)

    def has_channel(self, name: str) -> bool:
        """True when the channel exists and is non-empty."""
        return bool(self.channels.get(name))

    def as_dict(self) -> Dict[str, Any]:
        return {TIMESTAMP_KEY: list(self.timestamp), **{k: list(v) for k, v in self.channels.items()}}


class PredictionSeries(BaseModel):
    """Predictions of one detector rule for one metric slice."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    detector_name: str = Field(alias="detectorName")
    metric_urn: str = Field(alias="metricUrn")
    predicted_time_series: TimeSeries = Field(default_factory=TimeSeries, alias="predictedTimeSeries")


class PreviewResult(BaseModel):
    """Result of evaluating a detection configuration (draft or saved)."""

    model_config = ConfigDict(extra="allow", frozen=True)

    anomalies: List[Anomaly] = Field(default_factory=list)
    predictions: List[PredictionSeries] = Field(default_factory=list)
    diagnostics: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    def slice_urns(self) -> List[str]:
        """Metric URNs listed by the first diagnostics entry, in payload order."""
        return list(self.diagnostics.get("0", {}).keys())
