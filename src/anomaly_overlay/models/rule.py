"""Detector rule model."""

from __future__ import annotations

from typing import Iterable, List

from pydantic import BaseModel, ConfigDict, Field

from .timeseries import PredictionSeries

RULE_SEPARATOR = ":"


class Rule(BaseModel):
    """One detection configuration evaluated for a metric."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    detector_name: str = Field(alias="detectorName")
    name: str

    @classmethod
    def from_detector_name(cls, detector_name: str) -> "Rule":
        return cls(detector_name=detector_name, name=detector_name.split(RULE_SEPARATOR)[0])


def rule_options(predictions: Iterable[PredictionSeries] | None) -> List[Rule]:
    """Distinct rules among prediction series, in first-seen order."""

    if not predictions:
        return []
    seen: dict[str, Rule] = {}
    for series in predictions:
        if series.detector_name not in seen:
            seen[series.detector_name] = Rule.from_detector_name(series.detector_name)
    return list(seen.values())
