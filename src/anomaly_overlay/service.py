"""FastAPI service exposing view resolution, filtering, reconciliation and statistics."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ValidationError

from . import __version__
from .config import validate_view_config
from .controller import open_fixture_view
from .filtering import filter_anomalies
from .models import Anomaly, Rule, TimeSeries
from .modes import ModeInputs, ViewState, resolve_view_state
from .notifications import RecordingNotifier
from .series import build_chart_series
from .stats import compute_quality_stats


class StateRequest(BaseModel):
    is_preview_mode: bool = False
    is_edit_mode: bool = False
    has_old_anomalies: bool = False
    has_new_anomalies: bool = False
    fetch_errored: bool = False


class FilterRequest(BaseModel):
    anomalies: List[Anomaly] = []
    metric_urn: Optional[str] = None
    rule: Optional[Rule] = None
    show_rules: bool = True


class SeriesRequest(BaseModel):
    old: List[Anomaly] = []
    new: List[Anomaly] = []
    timeseries: Optional[TimeSeries] = None
    baseline: Optional[TimeSeries] = None
    show_rules: bool = False
    state: ViewState = ViewState.BASELINE
    is_preview_mode: bool = False
    is_edit_mode: bool = False


class StatsRequest(BaseModel):
    anomalies: List[Anomaly] = []
    is_preview_mode: bool = False
    is_edit_mode: bool = False


class ViewRequest(BaseModel):
    fixture: str
    include_rows: bool = False


def create_app(fixture_dir: str | Path | None = None) -> FastAPI:
    """Build the app; ``fixture_dir`` anchors relative fixture paths for ``/view``."""

    app = FastAPI(title="Anomaly Overlay API", version=__version__)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/version")
    def version() -> Dict[str, str]:
        return {"version": __version__}

    @app.post("/validate")
    def validate(config: Dict[str, Any]) -> Dict[str, Any]:
        return validate_view_config(config).as_dict()

    @app.post("/state")
    def state(request: StateRequest) -> Dict[str, str]:
        return {"state": resolve_view_state(ModeInputs(**request.model_dump())).value}

    @app.post("/filter")
    def filter_(request: FilterRequest) -> Dict[str, Any]:
        kept = filter_anomalies(request.anomalies, request.metric_urn, request.rule, request.show_rules)
        return {"anomalies": [a.model_dump(by_alias=True, exclude_none=True) for a in kept]}

    @app.post("/series")
    def series(request: SeriesRequest) -> Dict[str, Any]:
        built = build_chart_series(
            request.old,
            request.new,
            request.timeseries,
            request.baseline,
            show_rules=request.show_rules,
            state=request.state,
            is_preview_mode=request.is_preview_mode,
            is_edit_mode=request.is_edit_mode,
        )
        return {"series": {name: s.as_dict() for name, s in built.items()}}

    @app.post("/stats")
    def stats(request: StatsRequest) -> Dict[str, Any]:
        return compute_quality_stats(
            request.anomalies,
            is_preview_mode=request.is_preview_mode,
            is_edit_mode=request.is_edit_mode,
        ).as_dict()

    @app.post("/view")
    async def view(request: ViewRequest) -> Dict[str, Any]:
        path = Path(request.fixture)
        if fixture_dir and not path.is_absolute():
            path = Path(fixture_dir) / path
        notifier = RecordingNotifier()
        try:
            controller = await open_fixture_view(path, notifier=notifier)
        except FileNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except (ValueError, ValidationError) as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        payload = controller.summary()
        payload["notifications"] = notifier.messages
        if request.include_rows:
            payload["rows"] = [row.model_dump() for row in controller.table_rows]
        return payload

    return app
