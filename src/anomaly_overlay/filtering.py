"""Narrowing of anomaly sets to the active detector rule and metric slice."""

from __future__ import annotations

from typing import Iterable, Optional, Tuple

from .models import Anomaly, Rule

DAILY_GRANULARITY = "DAYS"


def is_daily(granularity: Optional[str]) -> bool:
    return DAILY_GRANULARITY in (granularity or "")


def rules_visible(
    is_preview_mode: bool,
    granularity: Optional[str],
    dimension_exploration: Optional[bool],
) -> bool:
    """Whether predictions, bounds and the rule selector are shown."""

    return bool(is_preview_mode or (not dimension_exploration and is_daily(granularity)))


def matches_rule(anomaly: Anomaly, rule: Optional[Rule], show_rules: bool) -> bool:
    if not show_rules:
        return True
    if rule is None or anomaly.properties is None:
        return False
    return rule.detector_name in anomaly.detector_component_name


def filter_anomalies(
    anomalies: Iterable[Anomaly] | None,
    metric_urn: Optional[str],
    rule: Optional[Rule],
    show_rules: bool,
) -> Tuple[Anomaly, ...]:
    """Anomalies on ``metric_urn`` that belong to ``rule`` when rules are shown.

    Order is preserved. With rules hidden every anomaly on the slice passes;
    with rules shown and no rule selected nothing does.
    """

    if not anomalies:
        return ()
    return tuple(
        anomaly
        for anomaly in anomalies
        if anomaly.metric_urn == metric_urn and matches_rule(anomaly, rule, show_rules)
    )
