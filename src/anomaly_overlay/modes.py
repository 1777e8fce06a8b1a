"""Resolution of the view state governing anomaly-set handling."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ViewState(str, Enum):
    """How the next fetch result is assigned to the old/new anomaly slots.

    BASELINE  - overview (or first preview): results fill the old slot.
    REPLACE   - preview with old loaded, edit mode or no new set: replace new.
    SHUFFLE   - create preview with both sets: promote new to old, replace new.
    BOOTSTRAP - edit preview with nothing loaded: load old from the saved
                configuration, then re-run with the edited one.
    ERRORED   - the last fetch failed; slots are left untouched.
    """

    BASELINE = "baseline"
    REPLACE = "replace"
    SHUFFLE = "shuffle"
    BOOTSTRAP = "bootstrap"
    ERRORED = "errored"


@dataclass(frozen=True)
class ModeInputs:
    is_preview_mode: bool = False
    is_edit_mode: bool = False
    has_old_anomalies: bool = False
    has_new_anomalies: bool = False
    fetch_errored: bool = False


def resolve_view_state(inputs: ModeInputs) -> ViewState:
    """Derive the view state; ERRORED wins over every other condition."""

    if inputs.fetch_errored:
        return ViewState.ERRORED
    if not inputs.is_preview_mode:
        return ViewState.BASELINE
    if inputs.has_old_anomalies:
        if inputs.is_edit_mode or not inputs.has_new_anomalies:
            return ViewState.REPLACE
        return ViewState.SHUFFLE
    if inputs.is_edit_mode:
        return ViewState.BOOTSTRAP
    # create-alert preview with nothing loaded yet fills the old slot
    return ViewState.BASELINE
