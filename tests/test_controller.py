from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest

from anomaly_overlay.config import ViewConfig
from anomaly_overlay.controller import ViewController
from anomaly_overlay.models import Anomaly, PreviewResult, TimeSeries
from anomaly_overlay.modes import ViewState
from anomaly_overlay.notifications import RecordingNotifier
from anomaly_overlay.sources import AnomalyDataSource, FixtureDataSource

NOW = 1_700_000_000_000
GRID_START = 1_699_800_000_000
STEP = 300_000
URN_US = "thirdeye:metric:1:country%3Dus"
URN_CA = "thirdeye:metric:1:country%3Dca"
RULE = "rule1:THRESHOLD"


def _ts(k: int) -> int:
    return GRID_START + k * STEP


def _anomaly(k_start: int, k_end: int, urn: str = URN_US, **extra: Any) -> Dict[str, Any]:
    return {"metricUrn": urn, "startTime": _ts(k_start), "endTime": _ts(k_end), **extra}


def _series(*channels: str, n: int = 8) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"timestamp": [_ts(k) for k in range(n)]}
    for channel in channels:
        payload[channel] = [float(k) for k in range(n)]
    return payload


def _preview(*anomalies: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "anomalies": [dict(a, properties={"detectorComponentName": RULE}) for a in anomalies],
        "predictions": [
            {
                "detectorName": RULE,
                "metricUrn": URN_US,
                "predictedTimeSeries": _series("current", "value", "upper_bound", "lower_bound"),
            }
        ],
        "diagnostics": {"0": {URN_US: {}}},
    }


def _overview_document(**extra: Any) -> Dict[str, Any]:
    document = {
        "anomalies": [
            _anomaly(1, 3, id=11, statusClassification="TRUE_POSITIVE"),
            _anomaly(5, 7, id=12, statusClassification="FALSE_POSITIVE"),
            _anomaly(2, 4, urn=URN_CA, id=13, statusClassification="NONE"),
        ],
        "timeseries": {"default": {"current": _series("value"), "wo1w": _series("value")}},
    }
    document.update(extra)
    return document


def _controller(document: Dict[str, Any], **config: Any) -> ViewController:
    settings = {"alert_id": 7, "granularity": "5_MINUTES", "timezone": "UTC", **config}
    return ViewController(
        FixtureDataSource(document),
        ViewConfig(**settings),
        notifier=RecordingNotifier(),
        clock=lambda: NOW,
    )


def _calls(controller: ViewController, operation: str) -> List[tuple]:
    return [args for name, args in controller.source.calls if name == operation]


def test_overview_load_fills_old_slot_and_series() -> None:
    controller = _controller(_overview_document())

    assert asyncio.run(controller.load())

    assert controller.state is ViewState.BASELINE
    assert [a.id for a in controller.model.slots.old] == [11, 12, 13]
    assert controller.model.metric_urn == URN_US
    assert controller.model.selected_dimension == "country=us"
    assert controller.dimension_options == ["country=us", "country=ca"]
    assert controller.alert_has_dimensions
    assert [args[3] for args in _calls(controller, "fetch_metric_timeseries")] == ["current", "wo1w"]

    series = controller.chart_series
    assert series["Current Anomalies"].values == [None, 1.0, 2.0, None, None, 5.0, 6.0, None]
    assert series["old-anomaly-edges"].timestamps == [_ts(1), _ts(2), _ts(5), _ts(6)]
    assert "Baseline" in series

    stats = controller.stats
    assert stats.total == 3
    assert stats.precision == 0.5
    assert not controller.model.is_loading


def test_derived_values_are_memoized_until_inputs_change() -> None:
    controller = _controller(_overview_document())
    asyncio.run(controller.load())

    first = controller.chart_series
    assert controller.chart_series is first

    asyncio.run(controller.select_dimension("country=ca"))

    assert controller.model.metric_urn == URN_CA
    assert [a.id for a in controller.filtered_anomalies_old] == [13]
    assert controller.chart_series is not first


def test_unknown_dimension_is_rejected() -> None:
    controller = _controller(_overview_document())
    asyncio.run(controller.load())

    with pytest.raises(ValueError):
        asyncio.run(controller.select_dimension("country=fr"))


def test_failure_marks_errored_and_suppresses_automatic_fetches() -> None:
    controller = _controller(_overview_document(fail=["fetch_anomalies_by_alert"]))
    notifier = controller.notifier

    assert asyncio.run(controller.load())

    assert controller.state is ViewState.ERRORED
    assert len(notifier.messages) == 1
    assert "fetch_anomalies_by_alert failed" in notifier.messages[0]

    assert not asyncio.run(controller.fetch_anomalies())
    assert len(_calls(controller, "fetch_anomalies_by_alert")) == 1

    controller.source._failing.clear()
    assert asyncio.run(controller.fetch_anomalies(user_initiated=True))
    assert controller.state is ViewState.BASELINE
    assert len(controller.model.slots.old) == 3


def test_failed_refetch_keeps_slice_and_overlay() -> None:
    controller = _controller(_overview_document())
    asyncio.run(controller.load())
    overlay = controller.chart_series["Current Anomalies"].values

    controller.source._failing.add("fetch_anomalies_by_alert")
    assert asyncio.run(controller.fetch_anomalies(user_initiated=True))

    assert controller.state is ViewState.ERRORED
    assert controller.model.metric_urn == URN_US
    assert controller.model.selected_dimension == "country=us"
    assert [a.id for a in controller.filtered_anomalies_old] == [11, 12]
    assert controller.chart_series["Current Anomalies"].values == overlay


def test_empty_refetch_keeps_previous_slice() -> None:
    controller = _controller(_overview_document())
    asyncio.run(controller.load())

    controller.source.document["anomalies"] = []
    asyncio.run(controller.fetch_anomalies(user_initiated=True))

    assert controller.model.fetch_errored
    assert "Unable to get MetricUrn from response" in controller.notifier.messages[-1]
    assert controller.model.metric_urn == URN_US


def test_missing_slice_is_reported() -> None:
    controller = _controller(_overview_document(anomalies=[]))

    asyncio.run(controller.load())

    assert controller.model.fetch_errored
    assert "Unable to get MetricUrn from response" in controller.notifier.messages[0]
    assert _calls(controller, "fetch_metric_timeseries") == []


def test_create_preview_moves_through_baseline_replace_and_shuffle() -> None:
    document = {
        "preview": [
            _preview(_anomaly(1, 3)),
            _preview(_anomaly(4, 6)),
            _preview(_anomaly(2, 5)),
        ]
    }
    controller = _controller(document, alert_id=None, is_preview_mode=True, alert_yaml="detection: v1")

    assert not asyncio.run(controller.load())
    assert controller.model.slots.old == ()

    asyncio.run(controller.get_preview())
    assert controller.state is ViewState.REPLACE
    assert controller.model.selected_rule.name == "rule1"
    assert [rule.name for rule in controller.rule_options] == ["rule1"]
    assert controller.baseline_options[0] == "predicted"
    assert controller.model.selected_baseline == "predicted"
    assert not controller.is_preview_loading
    assert _calls(controller, "fetch_metric_timeseries") == []

    asyncio.run(controller.get_preview())
    assert controller.state is ViewState.SHUFFLE
    previous_new = controller.model.slots.new

    asyncio.run(controller.get_preview())
    assert controller.model.slots.old == previous_new
    assert [a.start_time for a in controller.model.slots.new] == [_ts(2)]

    series = controller.chart_series
    assert series["Old Settings Anomalies"].values[4:6] == [4.0, 5.0]
    assert series["New Settings Anomalies"].values == [None, None, 1.0, 1.0, 1.0, None, None, None]
    assert [card.title for card in controller.stats.cards()] == ["Anomalies"]
    assert [args[0] for args in _calls(controller, "fetch_yaml_preview_anomalies")] == ["detection: v1"] * 3


def test_edit_preview_bootstraps_from_saved_configuration() -> None:
    document = {
        "anomalies": [_anomaly(1, 3, id=21, statusClassification="TRUE_POSITIVE")],
        "preview": [_preview(_anomaly(1, 3)), _preview(_anomaly(4, 6))],
    }
    controller = _controller(
        document,
        is_preview_mode=True,
        is_edit_mode=True,
        alert_yaml="edited",
        original_yaml="saved",
    )

    asyncio.run(controller.get_preview())

    assert [args[0] for args in _calls(controller, "fetch_yaml_preview_anomalies")] == ["saved", "edited"]
    assert [a.id for a in controller.model.slots.old] == [21]
    assert [a.start_time for a in controller.model.slots.new] == [_ts(4)]
    assert controller.state is ViewState.REPLACE
    assert not controller.model.is_loading
    assert [row.settings for row in controller.table_rows] == ["Current", "New"]
    assert controller.stats.precision == 1.0


def test_bootstrap_without_saved_anomalies_terminates() -> None:
    document = {"anomalies": [], "preview": [_preview(), _preview(_anomaly(4, 6))]}
    controller = _controller(
        document,
        is_preview_mode=True,
        is_edit_mode=True,
        alert_yaml="edited",
        original_yaml="saved",
    )

    asyncio.run(controller.get_preview())

    assert len(_calls(controller, "fetch_yaml_preview_anomalies")) == 2
    assert controller.model.slots.old == ()
    assert len(controller.model.slots.new) == 1
    assert not controller.model.fetch_errored


def test_select_range_refetches_only_when_details_are_current() -> None:
    controller = _controller({"preview": _preview(_anomaly(1, 3))}, is_preview_mode=True, alert_yaml="a: 1")
    start, end = GRID_START - 86_400_000, GRID_START + 86_400_000

    assert not asyncio.run(controller.select_range(start, end))
    assert _calls(controller, "fetch_yaml_preview_anomalies") == []

    asyncio.run(controller.get_preview())
    asyncio.run(controller.get_preview())
    assert controller.state is ViewState.SHUFFLE

    assert asyncio.run(controller.select_range(start, end))
    assert controller.model.analysis_range.as_list() == [start, end]
    # comparison sets are cleared, so the refetch fills the old slot again
    assert controller.model.slots.new == ()
    assert controller.state is ViewState.REPLACE


def test_daily_overview_uses_bounds_and_predicted_baseline() -> None:
    document = {
        "anomalies": [_anomaly(1, 3, id=31, properties={"detectorComponentName": RULE})],
        "bounds": _preview(_anomaly(1, 3)),
    }
    controller = _controller(document, granularity="1_DAYS")

    asyncio.run(controller.load())

    assert controller.show_rules
    assert len(_calls(controller, "fetch_bounds")) == 1
    assert [a.id for a in controller.model.slots.old] == [31]
    assert controller.model.selected_baseline == "predicted"
    assert not controller.is_preview_loading
    assert set(controller.chart_series) >= {"Current", "Baseline", "Upper and lower bound", "Current Anomalies"}

    controller.source.document["timeseries"] = {"default": {"wo2w": _series("value")}}
    asyncio.run(controller.select_baseline("wo2w"))
    assert controller.model.baseline.channel("value")[1] == 1.0
    assert [args[3] for args in _calls(controller, "fetch_metric_timeseries")] == ["wo2w"]


class SlowSource(AnomalyDataSource):
    """Blocks every anomaly fetch until released."""

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.fetches = 0

    async def fetch_anomalies_by_alert(self, alert_id, start, end):
        self.fetches += 1
        await self.release.wait()
        return [Anomaly.model_validate(_anomaly(1, 3))]

    async def fetch_yaml_preview_anomalies(self, config_yaml, start, end, alert_id):
        return PreviewResult()

    async def fetch_bounds(self, alert_id, start, end):
        return PreviewResult()

    async def fetch_metric_timeseries(self, urn, start, end, offset, timezone):
        return TimeSeries.model_validate(_series("value"))

    async def report_anomaly(self, alert_id, metric_urn, payload):
        return True


def test_triggers_while_a_fetch_is_pending_are_dropped() -> None:
    source = SlowSource()
    controller = ViewController(source, ViewConfig(alert_id=7, timezone="UTC"), clock=lambda: NOW)

    async def scenario():
        first = controller.trigger_fetch()
        await asyncio.sleep(0)
        dropped = [controller.trigger_fetch(), controller.trigger_fetch(user_initiated=True)]
        source.release.set()
        await first
        return first, dropped

    first, dropped = asyncio.run(scenario())

    assert first is not None
    assert dropped == [None, None]
    assert source.fetches == 1
    assert controller.fetch_count == 1
    assert not controller.is_busy


def test_report_validation_never_reaches_the_source() -> None:
    controller = _controller(_overview_document())
    asyncio.run(controller.load())

    controller.input_missing_anomaly({"startTime": _ts(1), "feedbackType": "ANOMALY"})
    outcome = asyncio.run(controller.save_report())

    assert not outcome.success
    assert controller.model.is_report_failure
    assert controller.model.missing_anomaly_props == {}
    assert _calls(controller, "report_anomaly") == []


def test_report_success_records_range() -> None:
    controller = _controller(_overview_document())
    asyncio.run(controller.load())

    controller.input_missing_anomaly({"startTime": _ts(1), "endTime": _ts(3), "feedbackType": "ANOMALY"})
    outcome = asyncio.run(controller.save_report())

    assert outcome.success
    assert controller.model.is_report_success
    assert controller.model.reported_range == "2023-11-12 14:45 - 2023-11-12 14:55"
    assert controller.source.reports[0]["metric_urn"] == URN_US

    controller.reset_report()
    assert not controller.model.is_report_success


def test_rejected_report_clears_pending_input() -> None:
    controller = _controller(_overview_document(report={"accept": False}))
    asyncio.run(controller.load())

    controller.input_missing_anomaly({"startTime": _ts(1), "endTime": _ts(3), "feedbackType": "ANOMALY"})
    outcome = asyncio.run(controller.save_report())

    assert not outcome.success
    assert controller.model.is_report_failure
    assert controller.model.missing_anomaly_props == {}
