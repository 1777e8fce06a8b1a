"""Error taxonomy for the anomaly view pipeline."""

from __future__ import annotations

from typing import Sequence


class OverlayError(RuntimeError):
    """Base class for pipeline failures."""


class FetchFailure(OverlayError):
    """A collaborator call failed or returned a malformed payload."""


class MissingSliceFailure(FetchFailure):
    """Anomalies were fetched but no metric-URN slice could be derived."""

    def __init__(self, message: str = "Unable to get MetricUrn from response") -> None:
        super().__init__(message)


class ValidationFailure(ValueError):
    """A report-anomaly submission is missing required fields."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"missing data: {', '.join(self.missing)}")
