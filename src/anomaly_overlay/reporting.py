"""Markdown summaries of a settled view."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping

from .stats import NOT_AVAILABLE


def _section(lines: List[str], title: str, entries: List[str], empty: str) -> None:
    lines.append("")
    lines.append(f"## {title}")
    if entries:
        lines.extend(entries)
    else:
        lines.append(empty)


def _row_line(row: Mapping[str, Any]) -> str:
    parts = [f"[{row.get('settings')}]", str(row.get("start_date_str") or "")]
    if row.get("dimension_str"):
        parts.append(row["dimension_str"])
    parts.append(f"rule={row.get('rule')}")
    parts.append(f"feedback={row.get('feedback') or NOT_AVAILABLE}")
    return "- " + " ".join(parts)


def render_view_report(summary: Mapping[str, Any], rows: List[Mapping[str, Any]] | None = None) -> str:
    """Render the dict produced by ``ViewController.summary`` as Markdown.

    ``rows`` are optional table rows (``TableRow.model_dump()``) appended as
    an anomaly list.
    """

    anomalies = summary.get("anomalies") or {}
    lines = [
        "# Anomaly Overlay Report",
        "",
        f"Mode: {summary.get('mode', 'unknown')}",
        f"State: {summary.get('state', 'unknown')}",
        f"Metric: {summary.get('metric_urn') or 'unresolved'}",
        f"Dimension: {summary.get('selected_dimension') or 'n/a'}",
        f"Baseline: {summary.get('selected_baseline', 'n/a')}",
        f"Anomalies: old={anomalies.get('old', 0)} new={anomalies.get('new', 0)}",
    ]
    if summary.get("errored"):
        lines.append(f"Error: {summary.get('error') or 'fetch failed'}")

    stats: Dict[str, Any] = summary.get("stats") or {}
    _section(
        lines,
        "Quality",
        [f"- {card['title']}: {card['value']}" for card in stats.get("cards", [])],
        "(no statistics)",
    )

    series: Dict[str, Any] = summary.get("series") or {}
    entries = []
    for name, payload in series.items():
        values = payload.get("values") or []
        present = sum(1 for v in values if v is not None)
        entries.append(f"- {name}: {payload.get('type', 'line')}, {present}/{len(values)} points")
    _section(lines, "Chart Series", entries, "(no series)")

    if rows is not None:
        _section(lines, "Anomalies", [_row_line(row) for row in rows], "(no anomalies)")

    return "\n".join(lines) + "\n"


def write_view_report(
    summary: Mapping[str, Any],
    output_path: str | Path,
    rows: List[Mapping[str, Any]] | None = None,
) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_view_report(summary, rows), encoding="utf-8")
    return output_path
