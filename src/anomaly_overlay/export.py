"""Tabular export of chart series and anomaly table rows."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping, Sequence

import pandas as pd

from .models import ChartSeries
from .table import TableRow

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("csv", "json")


def series_frame(chart_series: Mapping[str, ChartSeries]) -> pd.DataFrame:
    """Long-format frame with one row per (series, sample); gaps stay as NaN."""

    frames = [
        pd.DataFrame(
            {
                "series": name,
                "timestamp": list(series.timestamps),
                "value": pd.array(list(series.values), dtype="Float64"),
                "type": series.type,
                "axis": series.axis or "y",
            }
        )
        for name, series in chart_series.items()
        if series.timestamps
    ]
    if not frames:
        return pd.DataFrame(columns=["series", "timestamp", "value", "type", "axis"])
    return pd.concat(frames, ignore_index=True)


def table_frame(rows: Iterable[TableRow]) -> pd.DataFrame:
    return pd.DataFrame([row.model_dump() for row in rows])


def _resolve_format(path: Path, fmt: str | None) -> str:
    fmt = (fmt or path.suffix.lstrip(".") or "csv").lower()
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported export format '{fmt}'. Expected one of {list(SUPPORTED_FORMATS)}")
    return fmt


def write_frame(frame: pd.DataFrame, output_path: str | Path, fmt: str | None = None) -> Path:
    output_path = Path(output_path)
    fmt = _resolve_format(output_path, fmt)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "csv":
        frame.to_csv(output_path, index=False)
    else:
        frame.to_json(output_path, orient="records", indent=2)
    logger.info("Exported %s rows to %s", len(frame), output_path)
    return output_path


def export_view(
    chart_series: Mapping[str, ChartSeries],
    rows: Sequence[TableRow],
    output_dir: str | Path,
    formats: Sequence[str] | None = None,
) -> list[Path]:
    """Write ``series.<fmt>`` and ``anomalies.<fmt>`` for every requested format."""

    output_dir = Path(output_dir)
    written: list[Path] = []
    for fmt in formats or ("csv",):
        written.append(write_frame(series_frame(chart_series), output_dir / f"series.{fmt}", fmt))
        written.append(write_frame(table_frame(rows), output_dir / f"anomalies.{fmt}", fmt))
    return written
