"""Derived rows and columns for the anomaly table."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict

from .models import Anomaly, formatted_modified_by, formatted_rule
from .modes import ViewState
from .ranges import DEFAULT_TIMEZONE

TABLE_DATE_FORMAT = "%b %d, %I:%M %p"
NO_FEEDBACK = "NO_FEEDBACK"


class TableRow(BaseModel):
    """Presentation fields derived from one anomaly; the anomaly itself is untouched."""

    model_config = ConfigDict(frozen=True)

    id: int
    settings: str
    metric_urn: str
    start: int
    end: int
    start_date_str: str
    dimension_str: str
    current: Optional[float] = None
    baseline: Optional[float] = None
    rule: str
    modified_by: str
    feedback: Optional[str] = None


def _dimension_str(dimensions: Dict[str, str]) -> str:
    keys = list(dimensions)
    return ",".join([*keys, *(dimensions[k] for k in keys)])


def _feedback_label(anomaly: Anomaly) -> Optional[str]:
    label = anomaly.feedback.feedback_type if anomaly.feedback else anomaly.status_classification
    if label == "NONE":
        return NO_FEEDBACK
    return label


def _start_date_str(start_time: int, timezone: str) -> str:
    return datetime.fromtimestamp(start_time / 1000, tz=ZoneInfo(timezone)).strftime(TABLE_DATE_FORMAT)


def _row(anomaly: Anomaly, row_id: int, settings: str, timezone: str) -> TableRow:
    return TableRow(
        id=row_id,
        settings=settings,
        metric_urn=anomaly.metric_urn,
        start=anomaly.start_time,
        end=anomaly.end_time,
        start_date_str=_start_date_str(anomaly.start_time, timezone),
        dimension_str=_dimension_str(anomaly.dimensions),
        current=anomaly.avg_current_val,
        baseline=anomaly.avg_baseline_val,
        rule=formatted_rule(anomaly.properties),
        modified_by=formatted_modified_by(anomaly.feedback),
        feedback=_feedback_label(anomaly),
    )


def build_table_rows(
    anomalies_old: Iterable[Anomaly] | None,
    anomalies_new: Iterable[Anomaly] | None,
    *,
    state: ViewState,
    is_edit_mode: bool = False,
    timezone: str = DEFAULT_TIMEZONE,
) -> List[TableRow]:
    """Old rows first, then new rows.

    Old anomalies keep their persisted id; new ones are previews without ids
    and always receive the running row counter.
    """

    rows: List[TableRow] = []
    counter = 0
    old_settings = "Current" if state is ViewState.REPLACE and is_edit_mode else "Old"
    for anomaly in anomalies_old or ():
        # an id of 0 is kept as is
        row_id = anomaly.id if anomaly.id is not None else counter
        rows.append(_row(anomaly, row_id, old_settings, timezone))
        counter += 1
    for anomaly in anomalies_new or ():
        rows.append(_row(anomaly, counter, "New", timezone))
        counter += 1
    return rows


def table_columns(
    *,
    state: ViewState,
    is_preview_mode: bool,
    is_edit_mode: bool,
    alert_has_dimensions: bool,
) -> List[Dict[str, Any]]:
    """Visible table columns as ``{"title", "property"}`` pairs."""

    columns: List[Dict[str, Any]] = []
    if (is_edit_mode and state is ViewState.REPLACE) or state is ViewState.SHUFFLE:
        columns.append({"title": "Detection Settings", "property": "settings"})
    columns.append({"title": "Start / Duration", "property": "start_date_str"})
    if alert_has_dimensions:
        columns.append({"title": "Dimensions", "property": "dimension_str"})
    columns.append({"title": "Current / Predicted", "property": "current"})
    columns.append({"title": "Rule", "property": "rule"})
    if not is_preview_mode:
        columns.extend(
            [
                {"title": "Feedback", "property": "feedback"},
                {"title": "Modified", "property": "modified_by"},
                {"title": "RCA", "property": "id"},
            ]
        )
    return columns
