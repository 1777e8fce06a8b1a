"""Chart-ready series produced by reconciliation."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict


class ChartSeries(BaseModel):
    """A named chart series: a line with nullable gaps or discrete markers."""

    model_config = ConfigDict(frozen=True)

    timestamps: List[int]
    values: List[Optional[float]]
    type: Literal["line", "scatter"] = "line"
    color: str = "screenshot-current"
    axis: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "timestamps": list(self.timestamps),
            "values": list(self.values),
            "type": self.type,
            "color": self.color,
        }
        if self.axis:
            payload["axis"] = self.axis
        return payload


class OverlayChannels(BaseModel):
    """Gapped overlay line plus the start/end edge markers of one anomaly set."""

    model_config = ConfigDict(frozen=True)

    overlay: ChartSeries
    edges: ChartSeries
