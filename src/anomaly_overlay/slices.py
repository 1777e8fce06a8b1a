"""Metric-URN slice decoding and dimension labels."""

from __future__ import annotations

from typing import Iterable, List, Optional
from urllib.parse import unquote

ALL_DIMENSIONS = "All Dimensions"
URN_PREFIX_PARTS = 3  # thirdeye:metric:<id>


def extract_tail(urn: str) -> List[str]:
    """Dimension filters following ``<namespace>:metric:<id>`` in a decoded URN."""

    parts = urn.split(":")
    return [part for part in parts[URN_PREFIX_PARTS:] if part]


def dimension_label(urn: str) -> str:
    """Human label for a slice; the unfiltered slice is ``All Dimensions``."""

    label = ", ".join(extract_tail(unquote(urn)))
    return label or ALL_DIMENSIONS


def dimension_options(metric_urn_list: Iterable[str]) -> List[str]:
    return [dimension_label(urn) for urn in metric_urn_list]


def find_urn_for_label(metric_urn_list: Iterable[str], label: str) -> Optional[str]:
    """First slice whose label matches ``label``."""

    for urn in metric_urn_list:
        if dimension_label(urn) == label:
            return urn
    return None


def unique_metric_urns(urns: Iterable[str]) -> List[str]:
    """Distinct URNs in first-seen order."""

    return list(dict.fromkeys(urns))
