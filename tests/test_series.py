from __future__ import annotations

import math

from anomaly_overlay.filtering import filter_anomalies, rules_visible
from anomaly_overlay.models import Anomaly, Rule, TimeSeries
from anomaly_overlay.modes import ViewState
from anomaly_overlay.series import build_chart_series, reconcile_anomalies, strip_non_finite

URN = "thirdeye:metric:1"


def _anomaly(start: int, end: int, urn: str = URN, detector: str | None = None) -> Anomaly:
    payload = {"metricUrn": urn, "startTime": start, "endTime": end}
    if detector:
        payload["properties"] = {"detectorComponentName": detector}
    return Anomaly.model_validate(payload)


def _runs(values: list) -> list[int]:
    runs, current = [], 0
    for value in values:
        if value is None:
            if current:
                runs.append(current)
            current = 0
        else:
            current += 1
    if current:
        runs.append(current)
    return runs


def test_single_anomaly_overlay_and_edges() -> None:
    channels = reconcile_anomalies([_anomaly(5, 15)], [0, 5, 10, 15, 20], [1, 2, 3, 4, 5])

    assert channels is not None
    assert channels.overlay.values == [None, 2, 3, None, None]
    assert channels.edges.timestamps == [5, 10]
    assert channels.edges.values == [2, 3]
    assert channels.overlay.type == "line" and channels.edges.type == "scatter"


def test_empty_anomaly_list_produces_no_channels() -> None:
    assert reconcile_anomalies([], [0, 5, 10], [1, 2, 3]) is None
    assert reconcile_anomalies([_anomaly(0, 5)], [], []) is None


def test_anomaly_starting_before_window_covers_first_sample() -> None:
    channels = reconcile_anomalies([_anomaly(-5, 10)], [0, 5, 10, 15], [1, 2, 3, 4])

    assert channels.overlay.values == [1, 2, None, None]
    # no start edge inside the window, only the end edge
    assert channels.edges.timestamps == [5]


def test_anomaly_ending_on_first_sample_emits_no_edge() -> None:
    channels = reconcile_anomalies([_anomaly(-10, 0)], [0, 5], [1, 2])

    assert channels.overlay.values == [None, None]
    assert channels.edges.timestamps == []


def test_back_to_back_anomalies_have_no_gap() -> None:
    timestamps = [0, 5, 10, 15, 20, 25]
    channels = reconcile_anomalies([_anomaly(5, 10), _anomaly(10, 20)], timestamps, [1, 2, 3, 4, 5, 6])

    assert channels.overlay.values == [None, 2, 3, 4, None, None]
    assert channels.edges.timestamps.count(10) == 1
    assert channels.edges.timestamps == [5, 10, 15]


def test_run_lengths_match_anomaly_durations() -> None:
    step = 60_000
    timestamps = [i * step for i in range(40)]
    values = [float(i) for i in range(40)]
    anomalies = [_anomaly(2 * step, 5 * step), _anomaly(10 * step, 11 * step), _anomaly(20 * step, 32 * step)]

    channels = reconcile_anomalies(anomalies, timestamps, values)

    assert _runs(channels.overlay.values) == [3, 1, 12]


def test_sentinel_replaces_values() -> None:
    channels = reconcile_anomalies([_anomaly(5, 15)], [0, 5, 10, 15], [7, 8, 9, 10], sentinel=1.0, axis="y2")

    assert channels.overlay.values == [None, 1.0, 1.0, None]
    assert channels.edges.values == [1.0, 1.0]
    assert channels.overlay.axis == "y2"


def test_continuation_lookup_uses_the_given_list() -> None:
    new = [_anomaly(5, 10)]
    old = [_anomaly(10, 20)]
    timestamps = [0, 5, 10, 15, 20, 25]

    channels = reconcile_anomalies(new, timestamps, [0] * 6, sentinel=1.0, continuation=old)

    # the old anomaly starting where the new one ends keeps the band open
    assert channels.overlay.values == [None, 1.0, 1.0, 1.0, None, None]
    assert channels.edges.timestamps == [5, 10, 15]

    alone = reconcile_anomalies(new, timestamps, [0] * 6, sentinel=1.0)
    assert alone.overlay.values == [None, 1.0, None, None, None, None]


def test_strip_non_finite() -> None:
    assert strip_non_finite([1.0, math.nan, None, math.inf, 2]) == [1.0, None, None, None, 2.0]


def test_filter_narrows_to_slice_and_rule() -> None:
    anomalies = [
        _anomaly(0, 5, detector="rule1:THRESHOLD"),
        _anomaly(5, 10, detector="rule2:PERCENTAGE"),
        _anomaly(10, 15, urn=URN + ":country%3Dus", detector="rule1:THRESHOLD"),
    ]
    rule = Rule.from_detector_name("rule1:THRESHOLD")

    kept = filter_anomalies(anomalies, URN, rule, show_rules=True)
    assert kept == (anomalies[0],)
    assert filter_anomalies(kept, URN, rule, show_rules=True) == kept

    assert filter_anomalies(anomalies, URN, rule, show_rules=False) == tuple(anomalies[:2])
    assert filter_anomalies(None, URN, rule, show_rules=True) == ()


def test_filter_with_rules_shown_needs_a_selected_rule() -> None:
    tagged = _anomaly(0, 5, detector="r1:THRESHOLD")
    untagged = _anomaly(5, 10)

    assert filter_anomalies([tagged, untagged], URN, None, show_rules=True) == ()
    assert filter_anomalies([tagged, untagged], URN, None, show_rules=False) == (tagged, untagged)

    rule = Rule.from_detector_name("r1:THRESHOLD")
    assert filter_anomalies([tagged, untagged], URN, rule, show_rules=True) == (tagged,)


def test_rules_visibility() -> None:
    assert rules_visible(True, "5_MINUTES", True)
    assert rules_visible(False, "1_DAYS", False)
    assert not rules_visible(False, "1_DAYS", True)
    assert not rules_visible(False, "1_HOURS", False)


def test_build_chart_series_for_preview_with_both_sets() -> None:
    timestamps = [0, 5, 10, 15, 20]
    timeseries = TimeSeries.model_validate({"timestamp": timestamps, "current": [1, 2, 3, 4, 5]})
    baseline = TimeSeries.model_validate(
        {
            "timestamp": timestamps,
            "value": [1, 1, 1, 1, 1],
            "upper_bound": [2, 2, 2, 2, 2],
            "lower_bound": [0, 0, 0, 0, None],
        }
    )

    series = build_chart_series(
        [_anomaly(5, 15)],
        [_anomaly(10, 20)],
        timeseries,
        baseline,
        show_rules=True,
        state=ViewState.SHUFFLE,
        is_preview_mode=True,
    )

    assert set(series) == {
        "Current",
        "Baseline",
        "Upper and lower bound",
        "lowerBound",
        "Old Settings Anomalies",
        "old-anomaly-edges",
        "New Settings Anomalies",
        "new-anomaly-edges",
    }
    assert series["Old Settings Anomalies"].values == [None, 2.0, 3.0, None, None]
    assert series["New Settings Anomalies"].values == [None, None, 1.0, 1.0, None]
    assert series["New Settings Anomalies"].axis == "y2"
    assert series["lowerBound"].values[-1] is None


def test_build_chart_series_without_current_channel_has_no_overlays() -> None:
    timeseries = TimeSeries.model_validate({"timestamp": [0, 5], "value": [1, 2]})

    series = build_chart_series(
        [_anomaly(0, 5)], [], timeseries, None, show_rules=True, state=ViewState.BASELINE, is_preview_mode=True
    )

    assert series == {}


def test_overview_labels_old_set_as_current_anomalies() -> None:
    timeseries = TimeSeries.model_validate({"timestamp": [0, 5, 10], "value": [1, 2, 3]})

    series = build_chart_series([_anomaly(0, 5)], [], timeseries, None, show_rules=False, state=ViewState.BASELINE)

    assert series["Current Anomalies"].values == [1.0, None, None]
    assert "New Settings Anomalies" not in series
