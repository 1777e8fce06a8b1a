"""Reconciliation of anomaly sets against the sample grid into chart series.

Each anomaly set is walked once over the canonical timestamp grid of the
primary series. Samples inside an anomaly range are copied into an overlay
line; samples outside become ``None`` so the line breaks. The first and last
in-range sample of every range is also emitted as an edge marker.

An anomaly's ``end_time`` is the first sample *after* the range. When another
anomaly starts on that same sample the range continues without a gap and a
single start edge is recorded for the shared index.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import numpy as np

from .models import Anomaly, ChartSeries, OverlayChannels, TimeSeries
from .modes import ViewState

CURRENT_LABEL = "Current"
BASELINE_LABEL = "Baseline"
UPPER_BOUND_LABEL = "Upper and lower bound"
LOWER_BOUND_LABEL = "lowerBound"
OLD_EDGES_LABEL = "old-anomaly-edges"
NEW_LABEL = "New Settings Anomalies"
NEW_EDGES_LABEL = "new-anomaly-edges"

NEW_CHANNEL_SENTINEL = 1.0
SECONDARY_AXIS = "y2"


def strip_non_finite(values: Sequence[Optional[float]]) -> List[Optional[float]]:
    """Replace NaN/inf (and missing values) with ``None``."""

    arr = np.asarray([np.nan if v is None else v for v in values], dtype=float)
    return [float(v) if np.isfinite(v) else None for v in arr]


def _starting_at(anomalies: Sequence[Anomaly], timestamp: int) -> Optional[Anomaly]:
    return next((a for a in anomalies if a.start_time == timestamp), None)


def reconcile_anomalies(
    anomalies: Sequence[Anomaly],
    timestamps: Sequence[int],
    values: Sequence[Optional[float]],
    *,
    sentinel: Optional[float] = None,
    continuation: Optional[Sequence[Anomaly]] = None,
    color: str = "red",
    axis: Optional[str] = None,
) -> Optional[OverlayChannels]:
    """Walk ``timestamps`` and build the overlay line and edge markers.

    ``sentinel`` replaces every emitted sample value (the new-settings band).
    ``continuation`` is the list searched for a back-to-back start when a range
    ends; it defaults to ``anomalies``. Returns ``None`` for an empty anomaly
    list or an empty grid.
    """

    if not anomalies or not timestamps:
        return None
    lookup = anomalies if continuation is None else continuation

    def point(index: int) -> Optional[float]:
        return sentinel if sentinel is not None else values[index]

    # anomalies may start before the visible window
    current = next((a for a in anomalies if a.start_time <= timestamps[0]), None)
    in_range = current is not None

    overlay: List[Optional[float]] = []
    edge_timestamps: List[int] = []
    edge_values: List[Optional[float]] = []

    for i, ts in enumerate(timestamps):
        if not in_range:
            current = _starting_at(anomalies, ts)
            if current is not None:
                in_range = True
                overlay.append(point(i))
                edge_values.append(point(i))
                edge_timestamps.append(ts)
            else:
                overlay.append(None)
        elif current is not None and current.end_time == ts:
            # end_time is the sample after the range
            in_range = False
            current = _starting_at(lookup, ts)
            if current is not None:
                in_range = True
                overlay.append(point(i))
                edge_values.append(point(i))
                edge_timestamps.append(ts)
            else:
                if i > 0:
                    edge_values.append(point(i - 1))
                    edge_timestamps.append(timestamps[i - 1])
                overlay.append(None)
        else:
            overlay.append(point(i))

    return OverlayChannels(
        overlay=ChartSeries(
            timestamps=list(timestamps), values=overlay, type="line", color=color, axis=axis
        ),
        edges=ChartSeries(
            timestamps=edge_timestamps, values=edge_values, type="scatter", color=color, axis=axis
        ),
    )


def old_anomalies_label(state: ViewState, is_preview_mode: bool, is_edit_mode: bool) -> str:
    if is_preview_mode and state is ViewState.SHUFFLE:
        return "Old Settings Anomalies"
    if not is_preview_mode or is_edit_mode:
        # anomalies persisted for the saved alert
        return "Current Anomalies"
    return "Current Settings Anomalies"


def primary_channel_name(show_rules: bool) -> str:
    """Prediction payloads carry the metric as ``current``; plain series as ``value``."""
    return "current" if show_rules else "value"


def build_chart_series(
    filtered_old: Sequence[Anomaly],
    filtered_new: Sequence[Anomaly],
    timeseries: Optional[TimeSeries],
    baseline: Optional[TimeSeries],
    *,
    show_rules: bool,
    state: ViewState,
    is_preview_mode: bool = False,
    is_edit_mode: bool = False,
) -> Dict[str, ChartSeries]:
    """Assemble every chart series for the current view."""

    series: Dict[str, ChartSeries] = {}

    primary = primary_channel_name(show_rules)
    if timeseries is not None and timeseries.has_channel(primary):
        series[CURRENT_LABEL] = ChartSeries(
            timestamps=list(timeseries.timestamp),
            values=strip_non_finite(timeseries.channels[primary]),
            color="screenshot-current",
        )

    if baseline is not None:
        for channel, label, color in (
            ("value", BASELINE_LABEL, "screenshot-predicted"),
            ("upper_bound", UPPER_BOUND_LABEL, "screenshot-bounds"),
            ("lower_bound", LOWER_BOUND_LABEL, "screenshot-bounds"),
        ):
            if baseline.has_channel(channel):
                series[label] = ChartSeries(
                    timestamps=list(baseline.timestamp),
                    values=strip_non_finite(baseline.channels[channel]),
                    color=color,
                )

    current = series.get(CURRENT_LABEL)
    if current is None:
        return series

    old_channels = reconcile_anomalies(filtered_old, current.timestamps, current.values, color="red")
    if old_channels is not None:
        series[old_anomalies_label(state, is_preview_mode, is_edit_mode)] = old_channels.overlay
        series[OLD_EDGES_LABEL] = old_channels.edges

    # the new band looks up back-to-back continuations in the old list
    new_channels = reconcile_anomalies(
        filtered_new,
        current.timestamps,
        current.values,
        sentinel=NEW_CHANNEL_SENTINEL,
        continuation=filtered_old,
        color="grey",
        axis=SECONDARY_AXIS,
    )
    if new_channels is not None:
        series[NEW_LABEL] = new_channels.overlay
        series[NEW_EDGES_LABEL] = new_channels.edges

    return series
