"""Analysis windows and baseline offsets."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from zoneinfo import ZoneInfo

from .filtering import is_daily

DEFAULT_TIME_WINDOW_MS = 172_800_000  # 48 hours
DEFAULT_TIMEZONE = "America/Los_Angeles"

PREDICTED = "predicted"
CURRENT = "current"
COMPARISON_OFFSETS = ("wo1w", "wo2w", "wo3w", "wo4w", "mean4w", "median4w", "min4w", "max4w", "none")
TIMESERIES_OFFSETS = frozenset((CURRENT, PREDICTED, *COMPARISON_OFFSETS))


def _now_ms() -> int:
    return int(datetime.now().timestamp() * 1000)


@dataclass(frozen=True)
class TimeRange:
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"range start must precede end ({self.start} >= {self.end})")

    def as_list(self) -> List[int]:
        return [self.start, self.end]


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def default_analysis_range(
    time_window_size_ms: Optional[int] = None,
    *,
    timezone: str = DEFAULT_TIMEZONE,
    now: Optional[datetime] = None,
) -> TimeRange:
    """From the start of the day ``window`` ago to the start of tomorrow."""

    window = time_window_size_ms or DEFAULT_TIME_WINDOW_MS
    tz = ZoneInfo(timezone)
    now = now.astimezone(tz) if now else datetime.now(tz)
    start = _start_of_day(now - timedelta(milliseconds=window))
    end = _start_of_day(now + timedelta(days=1))
    return TimeRange(int(start.timestamp() * 1000), int(end.timestamp() * 1000))


def anomalies_range(analysis_range: TimeRange, now_ms: Optional[int] = None) -> TimeRange:
    """Anomaly fetch window; the end never lies in the future.

    A window entirely in the future collapses to one millisecond at its start.
    """

    now_ms = _now_ms() if now_ms is None else now_ms
    end = max(analysis_range.start + 1, min(now_ms, analysis_range.end))
    return TimeRange(analysis_range.start, end)


def baseline_options(show_rules: bool) -> List[str]:
    if show_rules:
        return [PREDICTED, *COMPARISON_OFFSETS]
    return list(COMPARISON_OFFSETS)


def default_baseline(
    is_preview_mode: bool,
    granularity: Optional[str],
    dimension_exploration: Optional[bool],
) -> str:
    if is_preview_mode:
        return PREDICTED
    # predictions and bounds are only shown for daily metrics without dimension exploration
    return PREDICTED if is_daily(granularity) and not dimension_exploration else "wo1w"


def validate_offset(offset: str) -> str:
    if offset not in TIMESERIES_OFFSETS:
        raise ValueError(f"Unknown time series offset '{offset}'. Expected one of {sorted(TIMESERIES_OFFSETS)}")
    return offset
