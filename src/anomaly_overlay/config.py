"""View configuration loading and validation."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .ranges import DEFAULT_TIME_WINDOW_MS, DEFAULT_TIMEZONE, TIMESERIES_OFFSETS

KNOWN_GRANULARITIES = ("MINUTES", "HOURS", "DAYS", "WEEKS", "MONTHS")


class ViewConfig(BaseModel):
    """Settings for one alert-details view (overview, create preview or edit preview)."""

    model_config = ConfigDict(extra="allow")

    alert_id: Optional[int] = None
    granularity: Optional[str] = None
    is_preview_mode: bool = False
    is_edit_mode: bool = False
    dimension_exploration: bool = False
    time_window_size_ms: int = Field(default=DEFAULT_TIME_WINDOW_MS, gt=0)
    timezone: str = DEFAULT_TIMEZONE
    alert_yaml: Optional[str] = None
    original_yaml: Optional[str] = None
    selected_baseline: Optional[str] = None

    @property
    def mode(self) -> str:
        if not self.is_preview_mode:
            return "overview"
        return "edit-preview" if self.is_edit_mode else "create-preview"


@dataclass
class ValidationResult:
    mode: str
    errors: list[str]
    warnings: list[str]
    normalized: Dict[str, Any]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "errors": self.errors,
            "warnings": self.warnings,
            "normalized": self.normalized,
        }


def validate_view_config(config: Mapping[str, Any]) -> ValidationResult:
    """Validate a view configuration mapping.

    Validation does not mutate the original mapping. Type problems and
    settings that make a fetch impossible are errors; suspicious but usable
    settings are warnings.
    """

    errors: list[str] = []
    warnings: list[str] = []
    try:
        view = ViewConfig.model_validate(dict(config))
    except ValidationError as exc:
        for err in exc.errors():
            field = ".".join(str(part) for part in err["loc"]) or "config"
            errors.append(f"Field '{field}': {err['msg']}")
        return ValidationResult(mode="unknown", errors=errors, warnings=warnings, normalized=dict(config))

    if not view.is_preview_mode and view.alert_id is None:
        errors.append("Missing required field 'alert_id' for mode 'overview'")
    if view.is_preview_mode and not view.alert_yaml and not view.granularity:
        warnings.append("Preview without 'alert_yaml' relies on saved bounds")
    if view.is_edit_mode:
        if view.alert_id is None:
            errors.append("Missing required field 'alert_id' for mode 'edit-preview'")
        if not view.original_yaml:
            errors.append("Missing required field 'original_yaml' for mode 'edit-preview'")
        if not view.is_preview_mode:
            warnings.append("'is_edit_mode' has no effect outside preview mode")

    try:
        ZoneInfo(view.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"Unknown timezone '{view.timezone}'")

    if view.selected_baseline and view.selected_baseline not in TIMESERIES_OFFSETS:
        errors.append(f"Unknown baseline offset '{view.selected_baseline}'")

    if view.granularity and not any(g in view.granularity.upper() for g in KNOWN_GRANULARITIES):
        warnings.append(f"Unrecognized granularity '{view.granularity}'")

    return ValidationResult(
        mode=view.mode,
        errors=errors,
        warnings=warnings,
        normalized=view.model_dump(),
    )


def load_document(path: str | Path) -> Dict[str, Any]:
    """Load a YAML or JSON mapping from disk."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        loaded = json.loads(text)
    else:
        loaded = yaml.safe_load(text)
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"{path} must contain a mapping/object")
    return loaded


def load_view_config(path: str | Path) -> ViewConfig:
    """Load a view configuration; the ``view`` key is used when present."""

    document = load_document(path)
    return ViewConfig.model_validate(document.get("view", document))


def validate_view_config_file(path: str | Path) -> ValidationResult:
    document = load_document(path)
    return validate_view_config(document.get("view", document))
