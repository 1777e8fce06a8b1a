"""Anomaly representations as returned by the detection backend."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

NO_VALUE = "--"
NO_AUTH_USER = "no-auth-user"


class AnomalyProperties(BaseModel):
    """Detector context attached to an anomaly."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    detector_component_name: Optional[str] = Field(default=None, alias="detectorComponentName")


class AnomalyFeedback(BaseModel):
    """User feedback recorded against an anomaly."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    feedback_type: Optional[str] = Field(default=None, alias="feedbackType")
    updated_by: Optional[str] = Field(default=None, alias="updatedBy")


class Anomaly(BaseModel):
    """A detected anomaly on one metric slice.

    ``start_time`` and ``end_time`` are epoch milliseconds. ``end_time`` is the
    first sample after the anomalous range when it falls on the sample grid.
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    id: Optional[int] = None
    metric_urn: str = Field(alias="metricUrn")
    start_time: int = Field(alias="startTime")
    end_time: int = Field(alias="endTime")
    avg_current_val: Optional[float] = Field(default=None, alias="avgCurrentVal")
    avg_baseline_val: Optional[float] = Field(default=None, alias="avgBaselineVal")
    dimensions: Dict[str, str] = Field(default_factory=dict)
    properties: Optional[AnomalyProperties] = None
    feedback: Optional[AnomalyFeedback] = None
    status_classification: Optional[str] = Field(default=None, alias="statusClassification")

    @property
    def detector_component_name(self) -> str:
        if self.properties is None:
            return ""
        return self.properties.detector_component_name or ""


def formatted_rule(properties: AnomalyProperties | None) -> str:
    """Rule name (detector name before ``:``) or a placeholder."""

    if properties is None or not properties.detector_component_name:
        return NO_VALUE
    return properties.detector_component_name.split(":")[0]


def formatted_modified_by(feedback: AnomalyFeedback | None) -> str:
    """User name portion of ``updatedBy`` or a placeholder."""

    if feedback is None or not feedback.updated_by or feedback.updated_by == NO_AUTH_USER:
        return NO_VALUE
    return feedback.updated_by.split("@")[0]
