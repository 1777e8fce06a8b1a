"""Single-flight fetch orchestration and the view state it owns."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .config import ViewConfig
from .errors import FetchFailure, MissingSliceFailure, ValidationFailure
from .feedback import ReportOutcome, report_anomaly
from .filtering import filter_anomalies, is_daily, rules_visible
from .logging_utils import log_event
from .memo import Memo
from .merger import AnomalySlots, FetchResult, apply_fetch_result
from .models import Anomaly, ChartSeries, PredictionSeries, Rule, TimeSeries, rule_options
from .modes import ModeInputs, ViewState, resolve_view_state
from .notifications import LoggingNotifier, Notifier
from .ranges import (
    CURRENT,
    PREDICTED,
    TimeRange,
    anomalies_range,
    baseline_options,
    default_analysis_range,
    default_baseline,
)
from .series import build_chart_series
from .slices import dimension_label, dimension_options, find_urn_for_label, unique_metric_urns
from .sources import AnomalyDataSource, FixtureDataSource
from .stats import QualityStats, compute_quality_stats
from .table import TableRow, build_table_rows, table_columns

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(datetime.now(dt_timezone.utc).timestamp() * 1000)


@dataclass
class ViewModel:
    """All mutable state of one alert-details view.

    Only ``ViewController`` writes to it; derived values are computed from it
    and never stored back.
    """

    config: ViewConfig
    analysis_range: TimeRange
    selected_baseline: str
    slots: AnomalySlots = field(default_factory=AnomalySlots)
    metric_urn: Optional[str] = None
    metric_urn_list: Tuple[str, ...] = ()
    selected_dimension: Optional[str] = None
    selected_rule: Optional[Rule] = None
    timeseries: Optional[TimeSeries] = None
    baseline: Optional[TimeSeries] = None
    is_loading: bool = False
    is_loading_timeseries: bool = False
    fetch_errored: bool = False
    last_error: Optional[str] = None
    show_details: bool = False
    data_is_current: bool = False
    missing_anomaly_props: Dict[str, Any] = field(default_factory=dict)
    is_report_success: bool = False
    is_report_failure: bool = False
    reported_range: Optional[str] = None


class ViewController:
    """Coordinates fetches for one view and exposes its derived values.

    At most one anomaly pipeline runs at a time: a trigger that arrives while
    one is pending is dropped, not queued. After a failure automatic triggers
    are dropped as well until a user action clears the error.
    """

    def __init__(
        self,
        source: AnomalyDataSource,
        config: ViewConfig,
        *,
        notifier: Notifier | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.source = source
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock or _now_ms
        now = datetime.fromtimestamp(self.clock() / 1000, tz=dt_timezone.utc)
        self.model = ViewModel(
            config=config,
            analysis_range=default_analysis_range(config.time_window_size_ms, timezone=config.timezone, now=now),
            selected_baseline=config.selected_baseline
            or default_baseline(config.is_preview_mode, config.granularity, config.dimension_exploration),
        )
        self._memo = Memo()
        self._inflight: asyncio.Task | None = None
        self.fetch_count = 0

    # --- derived values -------------------------------------------------------

    @property
    def config(self) -> ViewConfig:
        return self.model.config

    @property
    def state(self) -> ViewState:
        return resolve_view_state(
            ModeInputs(
                is_preview_mode=self.config.is_preview_mode,
                is_edit_mode=self.config.is_edit_mode,
                has_old_anomalies=bool(self.model.slots.old),
                has_new_anomalies=bool(self.model.slots.new),
                fetch_errored=self.model.fetch_errored,
            )
        )

    @property
    def show_rules(self) -> bool:
        return rules_visible(self.config.is_preview_mode, self.config.granularity, self.config.dimension_exploration)

    @property
    def anomalies_range(self) -> TimeRange:
        return anomalies_range(self.model.analysis_range, now_ms=self.clock())

    @property
    def is_busy(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    @property
    def is_preview_loading(self) -> bool:
        return self.config.is_preview_mode and self.model.is_loading

    @property
    def alert_has_dimensions(self) -> bool:
        return len(self.model.metric_urn_list) > 1

    @property
    def rule_options(self) -> List[Rule]:
        return rule_options(self.model.slots.unique_time_series)

    @property
    def dimension_options(self) -> List[str]:
        return dimension_options(self.model.metric_urn_list)

    @property
    def baseline_options(self) -> List[str]:
        return baseline_options(self.show_rules)

    @property
    def filtered_anomalies_old(self) -> Tuple[Anomaly, ...]:
        m = self.model
        return self._memo.get(
            "filtered_old",
            (m.slots.old, m.metric_urn, m.selected_rule, self.show_rules),
            lambda: filter_anomalies(m.slots.old, m.metric_urn, m.selected_rule, self.show_rules),
        )

    @property
    def filtered_anomalies_new(self) -> Tuple[Anomaly, ...]:
        m = self.model
        return self._memo.get(
            "filtered_new",
            (m.slots.new, m.metric_urn, m.selected_rule, self.show_rules),
            lambda: filter_anomalies(m.slots.new, m.metric_urn, m.selected_rule, self.show_rules),
        )

    @property
    def chart_series(self) -> Dict[str, ChartSeries]:
        m = self.model
        old, new, state = self.filtered_anomalies_old, self.filtered_anomalies_new, self.state
        return self._memo.get(
            "chart_series",
            (old, new, m.timeseries, m.baseline, self.show_rules, state, self.config.is_preview_mode, self.config.is_edit_mode),
            lambda: build_chart_series(
                old,
                new,
                m.timeseries,
                m.baseline,
                show_rules=self.show_rules,
                state=state,
                is_preview_mode=self.config.is_preview_mode,
                is_edit_mode=self.config.is_edit_mode,
            ),
        )

    @property
    def stats(self) -> QualityStats:
        m = self.model
        return self._memo.get(
            "stats",
            (m.slots.old, self.config.is_preview_mode, self.config.is_edit_mode),
            lambda: compute_quality_stats(
                m.slots.old,
                is_preview_mode=self.config.is_preview_mode,
                is_edit_mode=self.config.is_edit_mode,
            ),
        )

    @property
    def table_rows(self) -> List[TableRow]:
        m = self.model
        state = self.state
        return self._memo.get(
            "table_rows",
            (m.slots.old, m.slots.new, state, self.config.is_edit_mode),
            lambda: build_table_rows(
                m.slots.old,
                m.slots.new,
                state=state,
                is_edit_mode=self.config.is_edit_mode,
                timezone=self.config.timezone,
            ),
        )

    @property
    def table_columns(self) -> List[Dict[str, Any]]:
        return table_columns(
            state=self.state,
            is_preview_mode=self.config.is_preview_mode,
            is_edit_mode=self.config.is_edit_mode,
            alert_has_dimensions=self.alert_has_dimensions,
        )

    # --- fetch pipeline -------------------------------------------------------

    def trigger_fetch(self, *, user_initiated: bool = False) -> Optional[asyncio.Task]:
        """Schedule the anomaly pipeline unless one is pending.

        Must be called from a running event loop. Returns the scheduled task,
        or ``None`` when the trigger was dropped.
        """

        if self.is_busy:
            log_event(logger, "fetch_dropped", reason="in_flight")
            return None
        if user_initiated:
            self.model.fetch_errored = False
            self.model.last_error = None
        elif self.model.fetch_errored:
            log_event(logger, "fetch_dropped", reason="errored")
            return None

        self.model.is_loading = True
        self._inflight = asyncio.get_running_loop().create_task(self._run_pipeline())
        return self._inflight

    async def fetch_anomalies(self, *, user_initiated: bool = False) -> bool:
        """Run the pipeline to completion; False when the trigger was dropped."""

        task = self.trigger_fetch(user_initiated=user_initiated)
        if task is None:
            return False
        await task
        return True

    async def load(self) -> bool:
        """Initial load: overview pages fetch immediately, previews wait for ``get_preview``."""

        if self.config.is_preview_mode:
            return False
        return await self.fetch_anomalies()

    async def _run_pipeline(self) -> None:
        bootstrapped = False
        slice_urns: List[str] = []
        try:
            while True:
                state = self.state
                if state is ViewState.ERRORED:
                    return
                if state is ViewState.BOOTSTRAP and bootstrapped:
                    # the reference configuration produced nothing; keep the edited result as new
                    state = ViewState.REPLACE
                content = self._config_yaml(bootstrapped)
                log_event(logger, "fetch_started", state=state.value, alert_id=self.config.alert_id)
                result, slice_urns, rule = await self._get_anomalies(state, content)
                if slice_urns:
                    self._select_slice(slice_urns, rule)
                outcome = apply_fetch_result(state, self.model.slots, result)
                self.model.slots = outcome.slots
                if outcome.loading_done:
                    self.model.is_loading = False
                if not outcome.refetch:
                    break
                bootstrapped = True

            if not slice_urns:
                raise MissingSliceFailure()
            await self._fetch_timeseries()
        except Exception as exc:
            self._fail(exc)
        finally:
            self.fetch_count += 1

    def _config_yaml(self, bootstrapped: bool) -> Optional[str]:
        # edit preview compares against the saved configuration first
        if self.config.is_edit_mode and not self.model.slots.old and not bootstrapped:
            return self.config.original_yaml
        return self.config.alert_yaml

    def _fail(self, exc: BaseException) -> None:
        error = exc if isinstance(exc, FetchFailure) else FetchFailure(str(exc))
        self.model.fetch_errored = True
        self.model.is_loading = False
        self.model.is_loading_timeseries = False
        self.model.last_error = str(error)
        log_event(logger, "fetch_failed", level=logging.ERROR, error=str(error), kind=type(exc).__name__)
        self.notifier.error(f"Fetching anomalies failed: {error}")

    def _select_slice(self, metric_urn_list: List[str], rule: Optional[Rule]) -> None:
        self.model.metric_urn_list = tuple(metric_urn_list)
        self.model.metric_urn = metric_urn_list[0]
        self.model.selected_dimension = dimension_label(metric_urn_list[0])
        if rule is not None:
            self.model.selected_rule = rule

    async def _get_anomalies(
        self, state: ViewState, content: Optional[str]
    ) -> Tuple[FetchResult, List[str], Optional[Rule]]:
        """Fetch one anomaly set along with its slices and leading rule.

        Nothing on the model is touched here, so a failed fetch leaves the
        active slice and rule as they were.
        """

        alert_id = self.config.alert_id
        analysis = self.model.analysis_range

        if not self.show_rules:
            anomalies = await self.source.fetch_anomalies_by_alert(alert_id, analysis.start, analysis.end)
            anomalies = tuple(anomalies or ())
            return FetchResult(anomalies=anomalies), unique_metric_urns(a.metric_urn for a in anomalies), None

        window = self.anomalies_range
        if is_daily(self.config.granularity):
            application = await self.source.fetch_bounds(alert_id, window.start, window.end)
        else:
            application = await self.source.fetch_yaml_preview_anomalies(content, window.start, window.end, alert_id)

        metric_urn_list = list(application.slice_urns())
        rule = None
        if application.predictions:
            rule = Rule.from_detector_name(application.predictions[0].detector_name)

        if state in (ViewState.BASELINE, ViewState.BOOTSTRAP) and (
            not self.config.is_preview_mode or state is ViewState.BOOTSTRAP
        ):
            # saved anomalies with real ids and feedback
            anomalies = await self.source.fetch_anomalies_by_alert(alert_id, analysis.start, analysis.end)
        else:
            anomalies = application.anomalies
        result = FetchResult(
            anomalies=tuple(anomalies or ()),
            unique_time_series=tuple(application.predictions),
        )
        return result, metric_urn_list, rule

    def _prediction_for_selection(self) -> Optional[PredictionSeries]:
        rule = self.model.selected_rule
        if rule is None:
            return None
        return next(
            (
                series
                for series in self.model.slots.unique_time_series
                if series.detector_name == rule.detector_name and series.metric_urn == self.model.metric_urn
            ),
            None,
        )

    async def _fetch_timeseries(self) -> None:
        m = self.model
        urn, window, offset, tz = m.metric_urn, m.analysis_range, m.selected_baseline, self.config.timezone
        m.is_loading_timeseries = True

        if self.show_rules:
            series_set = self._prediction_for_selection()
            if series_set is None:
                logger.warning("No predictions for rule %s on %s", m.selected_rule, urn)
                m.timeseries = None
                m.baseline = None
            elif offset == PREDICTED:
                m.timeseries = series_set.predicted_time_series
                m.baseline = series_set.predicted_time_series
            else:
                baseline = await self.source.fetch_metric_timeseries(urn, window.start, window.end, offset, tz)
                m.timeseries = series_set.predicted_time_series
                m.baseline = baseline
        else:
            current, baseline = await asyncio.gather(
                self.source.fetch_metric_timeseries(urn, window.start, window.end, CURRENT, tz),
                self.source.fetch_metric_timeseries(urn, window.start, window.end, offset, tz),
            )
            m.timeseries = current
            m.baseline = baseline

        m.is_loading_timeseries = False
        log_event(
            logger,
            "timeseries_loaded",
            metric_urn=urn,
            offset=offset,
            samples=len(m.timeseries.timestamp) if m.timeseries else 0,
        )

    async def _refresh_timeseries(self) -> None:
        try:
            await self._fetch_timeseries()
        except Exception as exc:
            self._fail(exc)

    # --- user actions ---------------------------------------------------------

    async def get_preview(self) -> bool:
        self.model.show_details = True
        self.model.data_is_current = True
        return await self.fetch_anomalies(user_initiated=True)

    async def select_rule(self, rule: Rule | None) -> None:
        self.model.selected_rule = rule
        await self._refresh_timeseries()

    async def select_dimension(self, label: str) -> None:
        urn = find_urn_for_label(self.model.metric_urn_list, label)
        if urn is None:
            raise ValueError(f"Unknown dimension '{label}'. Options: {self.dimension_options}")
        self.model.metric_urn = urn
        self.model.selected_dimension = dimension_label(urn)
        await self._refresh_timeseries()

    async def select_baseline(self, name: str) -> None:
        if name not in self.baseline_options:
            raise ValueError(f"Unknown baseline '{name}'. Options: {self.baseline_options}")
        if name == self.model.selected_baseline:
            return
        self.model.selected_baseline = name
        await self._refresh_timeseries()

    async def select_range(self, start: int, end: int) -> bool:
        """Change the analysis window; refetches only when the details are shown and current."""

        self.model.analysis_range = TimeRange(int(start), int(end))
        if not (self.model.show_details and self.model.data_is_current):
            return False
        if self.config.is_preview_mode:
            # comparisons are only meaningful within one window
            self.model.slots = AnomalySlots()
        return await self.fetch_anomalies(user_initiated=True)

    def input_missing_anomaly(self, props: Mapping[str, Any]) -> None:
        self.model.missing_anomaly_props = dict(props)

    def reset_report(self) -> None:
        self.model.is_report_success = False
        self.model.is_report_failure = False

    async def save_report(self) -> ReportOutcome:
        m = self.model
        try:
            outcome = await report_anomaly(
                self.source,
                self.config.alert_id,
                m.metric_urn,
                m.missing_anomaly_props,
                timezone=self.config.timezone,
            )
        except ValidationFailure as exc:
            logger.info("Report not sent: %s", exc)
            outcome = ReportOutcome(success=False)

        if outcome.success:
            m.is_report_success, m.is_report_failure = True, False
            m.reported_range = outcome.reported_range
        else:
            m.missing_anomaly_props = {}
            m.is_report_success, m.is_report_failure = False, True
        return outcome

    # --- summaries ------------------------------------------------------------

    def summary(self) -> Dict[str, Any]:
        m = self.model
        return {
            "state": self.state.value,
            "mode": self.config.mode,
            "analysis_range": m.analysis_range.as_list(),
            "metric_urn": m.metric_urn,
            "metric_urn_list": list(m.metric_urn_list),
            "selected_dimension": m.selected_dimension,
            "selected_rule": m.selected_rule.model_dump(by_alias=True) if m.selected_rule else None,
            "selected_baseline": m.selected_baseline,
            "anomalies": {"old": len(m.slots.old), "new": len(m.slots.new)},
            "errored": m.fetch_errored,
            "error": m.last_error,
            "series": {name: s.as_dict() for name, s in self.chart_series.items()},
            "stats": self.stats.as_dict(),
        }


async def open_view(
    source,
    config: ViewConfig,
    *,
    notifier: Notifier | None = None,
    clock: Callable[[], int] | None = None,
) -> ViewController:
    """Build a controller and drive it to its first settled state.

    Overview pages load immediately; previews are opened as if the user
    pressed the preview button.
    """

    controller = ViewController(source, config, notifier=notifier, clock=clock)
    if config.is_preview_mode:
        await controller.get_preview()
    else:
        await controller.load()
    return controller


async def open_fixture_view(path, *, notifier: Notifier | None = None) -> ViewController:
    """Open a view from a fixture document holding ``view`` settings and source data.

    An optional top-level ``now`` (epoch milliseconds) pins the clock so the
    default analysis window covers the fixture data.
    """

    source = FixtureDataSource.from_path(path)
    config = ViewConfig.model_validate(source.document.get("view") or {})
    now = source.document.get("now")
    clock = (lambda: int(now)) if now is not None else None
    return await open_view(source, config, notifier=notifier, clock=clock)
