"""Collaborator contract for retrieving anomalies, predictions and time series."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Mapping

from ..models import Anomaly, PreviewResult, TimeSeries


class AnomalyDataSource(ABC):
    """Abstract async data source; the transport is up to the implementation."""

    @abstractmethod
    async def fetch_anomalies_by_alert(self, alert_id: int, start: int, end: int) -> List[Anomaly]:
        """Anomalies persisted for a saved alert."""

    @abstractmethod
    async def fetch_yaml_preview_anomalies(
        self,
        config_yaml: str | None,
        start: int,
        end: int,
        alert_id: int | None,
    ) -> PreviewResult:
        """Evaluate a detection configuration that is not saved yet."""

    @abstractmethod
    async def fetch_bounds(self, alert_id: int, start: int, end: int) -> PreviewResult:
        """Evaluate the saved configuration of a daily-granularity alert."""

    @abstractmethod
    async def fetch_metric_timeseries(
        self,
        urn: str,
        start: int,
        end: int,
        offset: str,
        timezone: str,
    ) -> TimeSeries:
        ...

    @abstractmethod
    async def report_anomaly(self, alert_id: int, metric_urn: str, payload: Mapping[str, Any]) -> bool:
        """Record a missing anomaly; returns False when the backend rejects it."""

    async def close(self) -> None:
        ...
