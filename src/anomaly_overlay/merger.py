"""Assignment of fetch results into the stored old/new anomaly slots."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Tuple

from .logging_utils import log_event
from .models import Anomaly, PredictionSeries
from .modes import ViewState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnomalySlots:
    """The two independent anomaly sets plus the prediction series that came with them."""

    old: Tuple[Anomaly, ...] = ()
    new: Tuple[Anomaly, ...] = ()
    unique_time_series: Tuple[PredictionSeries, ...] = ()


@dataclass(frozen=True)
class FetchResult:
    anomalies: Tuple[Anomaly, ...] = ()
    unique_time_series: Tuple[PredictionSeries, ...] = ()


@dataclass(frozen=True)
class MergeOutcome:
    slots: AnomalySlots
    refetch: bool = False
    loading_done: bool = True
    assigned: bool = True


def apply_fetch_result(state: ViewState, slots: AnomalySlots, result: FetchResult) -> MergeOutcome:
    """Apply the assignment belonging to ``state``; never mutates ``slots``."""

    if state is ViewState.BASELINE:
        updated = replace(slots, old=result.anomalies, unique_time_series=result.unique_time_series)
        outcome = MergeOutcome(slots=updated)
    elif state is ViewState.REPLACE:
        updated = replace(slots, new=result.anomalies, unique_time_series=result.unique_time_series)
        outcome = MergeOutcome(slots=updated)
    elif state is ViewState.SHUFFLE:
        updated = AnomalySlots(
            old=slots.new,
            new=result.anomalies,
            unique_time_series=result.unique_time_series,
        )
        outcome = MergeOutcome(slots=updated)
    elif state is ViewState.BOOTSTRAP:
        # predictions from the reference configuration are not kept
        updated = replace(slots, old=result.anomalies, new=())
        outcome = MergeOutcome(slots=updated, refetch=True, loading_done=False)
    else:
        outcome = MergeOutcome(slots=slots, loading_done=False, assigned=False)

    log_event(
        logger,
        "anomalies_merged",
        state=state.value,
        old=len(outcome.slots.old),
        new=len(outcome.slots.new),
        refetch=outcome.refetch,
    )
    return outcome
