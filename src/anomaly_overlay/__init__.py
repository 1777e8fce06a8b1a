"""Anomaly overlay core package."""

from importlib import metadata

from .config import ViewConfig, load_view_config, validate_view_config, validate_view_config_file
from .controller import ViewController, ViewModel, open_fixture_view, open_view
from .errors import FetchFailure, MissingSliceFailure, OverlayError, ValidationFailure
from .filtering import filter_anomalies, rules_visible
from .merger import AnomalySlots, FetchResult, apply_fetch_result
from .modes import ModeInputs, ViewState, resolve_view_state
from .series import build_chart_series, reconcile_anomalies
from .sources import AnomalyDataSource, FixtureDataSource
from .stats import QualityStats, compute_quality_stats

try:
    __version__ = metadata.version("anomaly-overlay")
except metadata.PackageNotFoundError:  # pragma: no cover - fallback for editable installs
    __version__ = "0.1.0"

__all__ = [
    "AnomalyDataSource",
    "AnomalySlots",
    "FetchFailure",
    "FetchResult",
    "FixtureDataSource",
    "MissingSliceFailure",
    "ModeInputs",
    "OverlayError",
    "QualityStats",
    "ValidationFailure",
    "ViewConfig",
    "ViewController",
    "ViewModel",
    "ViewState",
    "apply_fetch_result",
    "build_chart_series",
    "compute_quality_stats",
    "filter_anomalies",
    "load_view_config",
    "open_fixture_view",
    "open_view",
    "reconcile_anomalies",
    "resolve_view_state",
    "rules_visible",
    "validate_view_config",
    "validate_view_config_file",
    "__version__",
]
