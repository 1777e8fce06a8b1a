"""Data source backed by a YAML/JSON fixture document."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from pydantic import ValidationError

from ..config import load_document
from ..errors import FetchFailure
from ..models import Anomaly, PreviewResult, TimeSeries
from ..ranges import validate_offset
from .base import AnomalyDataSource

logger = logging.getLogger(__name__)

DEFAULT_SERIES_KEY = "default"


class FixtureDataSource(AnomalyDataSource):
    """Serves anomalies, previews and series from an in-memory document.

    Document layout::

        anomalies: [...]                      # persisted anomalies of the alert
        preview: {anomalies, predictions, diagnostics} | [ ... ]
        bounds:  {anomalies, predictions, diagnostics} | [ ... ]
        timeseries:
          <metric urn or "default">:
            <offset>: {timestamp: [...], value: [...]}
        report: {accept: true}
        fail: [fetch_bounds, ...]             # operations that raise

    ``preview`` and ``bounds`` may be lists; successive calls walk the list and
    repeat its last entry. Every call is appended to ``calls``.
    """

    def __init__(self, document: Mapping[str, Any]) -> None:
        self.document = dict(document)
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.reports: List[Dict[str, Any]] = []
        self._cursors: Dict[str, int] = {}
        self._failing = set(self.document.get("fail") or ())

    @classmethod
    def from_path(cls, path: str | Path) -> "FixtureDataSource":
        return cls(load_document(path))

    def _enter(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if operation in self._failing:
            raise FetchFailure(f"{operation} failed (fixture)")

    def _next_entry(self, key: str) -> Mapping[str, Any]:
        entries = self.document.get(key) or {}
        if isinstance(entries, Mapping):
            return entries
        entries = list(entries)
        if not entries:
            return {}
        cursor = self._cursors.get(key, 0)
        self._cursors[key] = cursor + 1
        return entries[min(cursor, len(entries) - 1)]

    @staticmethod
    def _in_window(anomalies: Sequence[Anomaly], start: int, end: int) -> List[Anomaly]:
        return [a for a in anomalies if a.end_time > start and a.start_time < end]

    def _preview(self, key: str, start: int, end: int) -> PreviewResult:
        try:
            result = PreviewResult.model_validate(self._next_entry(key))
        except ValidationError as exc:
            raise FetchFailure(f"malformed {key} payload: {exc}") from exc
        return result.model_copy(update={"anomalies": self._in_window(result.anomalies, start, end)})

    async def fetch_anomalies_by_alert(self, alert_id: int, start: int, end: int) -> List[Anomaly]:
        self._enter("fetch_anomalies_by_alert", alert_id, start, end)
        try:
            anomalies = [Anomaly.model_validate(item) for item in self.document.get("anomalies") or ()]
        except ValidationError as exc:
            raise FetchFailure(f"malformed anomalies payload: {exc}") from exc
        return self._in_window(anomalies, start, end)

    async def fetch_yaml_preview_anomalies(
        self,
        config_yaml: str | None,
        start: int,
        end: int,
        alert_id: int | None,
    ) -> PreviewResult:
        self._enter("fetch_yaml_preview_anomalies", config_yaml, start, end, alert_id)
        return self._preview("preview", start, end)

    async def fetch_bounds(self, alert_id: int, start: int, end: int) -> PreviewResult:
        self._enter("fetch_bounds", alert_id, start, end)
        return self._preview("bounds", start, end)

    async def fetch_metric_timeseries(
        self,
        urn: str,
        start: int,
        end: int,
        offset: str,
        timezone: str,
    ) -> TimeSeries:
        self._enter("fetch_metric_timeseries", urn, start, end, offset, timezone)
        validate_offset(offset)
        by_urn = self.document.get("timeseries") or {}
        series_set = by_urn.get(urn) or by_urn.get(DEFAULT_SERIES_KEY) or {}
        payload = series_set.get(offset)
        if payload is None:
            raise FetchFailure(f"no '{offset}' series for {urn}")
        try:
            return TimeSeries.model_validate(payload)
        except ValidationError as exc:
            raise FetchFailure(f"malformed time series for {urn}: {exc}") from exc

    async def report_anomaly(self, alert_id: int, metric_urn: str, payload: Mapping[str, Any]) -> bool:
        self._enter("report_anomaly", alert_id, metric_urn)
        accepted = bool((self.document.get("report") or {}).get("accept", True))
        if accepted:
            self.reports.append({"alert_id": alert_id, "metric_urn": metric_urn, **payload})
        logger.debug("Fixture report for %s accepted=%s", metric_urn, accepted)
        return accepted
