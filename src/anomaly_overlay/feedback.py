"""Reporting of anomalies the detector missed."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional
from zoneinfo import ZoneInfo

from .errors import ValidationFailure
from .logging_utils import log_event
from .ranges import DEFAULT_TIMEZONE
from .sources.base import AnomalyDataSource

logger = logging.getLogger(__name__)

REQUIRED_REPORT_FIELDS = ("startTime", "endTime", "feedbackType")
RANGE_FORMAT = "%Y-%m-%d %H:%M"


@dataclass(frozen=True)
class ReportOutcome:
    success: bool
    reported_range: Optional[str] = None


def validate_report(data: Mapping[str, Any]) -> None:
    """Raise ``ValidationFailure`` listing every missing required field."""

    # epoch 0 is a real start time; only absent or blank fields are missing
    missing = [name for name in REQUIRED_REPORT_FIELDS if data.get(name) in (None, "")]
    if missing:
        raise ValidationFailure(missing)


def format_reported_range(start_time: int, end_time: int, timezone: str = DEFAULT_TIMEZONE) -> str:
    tz = ZoneInfo(timezone)
    start = datetime.fromtimestamp(int(start_time) / 1000, tz=tz).strftime(RANGE_FORMAT)
    end = datetime.fromtimestamp(int(end_time) / 1000, tz=tz).strftime(RANGE_FORMAT)
    return f"{start} - {end}"


async def report_anomaly(
    source: AnomalyDataSource,
    alert_id: int,
    metric_urn: str,
    data: Mapping[str, Any],
    *,
    timezone: str = DEFAULT_TIMEZONE,
) -> ReportOutcome:
    """Validate locally, then submit; validation failures never reach ``source``."""

    validate_report(data)
    try:
        accepted = await source.report_anomaly(alert_id, metric_urn, dict(data))
    except Exception:
        logger.exception("Reporting anomaly for alert %s failed", alert_id)
        accepted = False

    if not accepted:
        log_event(logger, "anomaly_report_failed", level=logging.WARNING, alert_id=alert_id, metric_urn=metric_urn)
        return ReportOutcome(success=False)

    reported_range = format_reported_range(data["startTime"], data["endTime"], timezone)
    log_event(logger, "anomaly_reported", alert_id=alert_id, metric_urn=metric_urn, range=reported_range)
    return ReportOutcome(success=True, reported_range=reported_range)
