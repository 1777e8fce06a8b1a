"""Quality statistics derived from feedback-classified anomalies."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .models import Anomaly

NOT_AVAILABLE = "N/A"

NO_CLASSIFICATION = "NONE"
TRUE_POSITIVE = "TRUE_POSITIVE"
FALSE_POSITIVE = "FALSE_POSITIVE"
FALSE_NEGATIVE = "FALSE_NEGATIVE"

TOTAL_DESCRIPTION = "Total number of anomalies that occured over a period of time"
RESPONSE_RATE_DESCRIPTION = "% of anomalies that are reviewed"
PRECISION_DESCRIPTION = "% of all anomalies detected by the system that are true"
RECALL_DESCRIPTION = "% of all anomalies detected by the system"


def _ratio(numerator: int, denominator: int) -> Optional[float]:
    if denominator <= 0:
        return None
    return numerator / denominator


def format_percent(value: Optional[float]) -> str:
    if value is None:
        return NOT_AVAILABLE
    return f"{value * 100:.1f}%"


@dataclass(frozen=True)
class StatCard:
    title: str
    description: str
    value: Any
    kind: str

    def as_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "description": self.description, "value": self.value, "kind": self.kind}


@dataclass(frozen=True)
class QualityStats:
    """Counts and ratios; a ratio is ``None`` when its denominator is zero."""

    total: int
    responded: int = 0
    true_positives: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    feedback_computed: bool = True

    @property
    def response_rate(self) -> Optional[float]:
        return _ratio(self.responded, self.total) if self.feedback_computed else None

    @property
    def precision(self) -> Optional[float]:
        if not self.feedback_computed:
            return None
        return _ratio(self.true_positives, self.true_positives + self.false_positives)

    @property
    def recall(self) -> Optional[float]:
        if not self.feedback_computed:
            return None
        return _ratio(self.true_positives, self.true_positives + self.false_negatives)

    def cards(self) -> List[StatCard]:
        cards = [StatCard("Anomalies", TOTAL_DESCRIPTION, self.total, "digit")]
        if self.feedback_computed:
            cards.extend(
                [
                    StatCard("Response Rate", RESPONSE_RATE_DESCRIPTION, format_percent(self.response_rate), "percent"),
                    StatCard("Precision", PRECISION_DESCRIPTION, format_percent(self.precision), "percent"),
                    StatCard("Recall", RECALL_DESCRIPTION, format_percent(self.recall), "percent"),
                ]
            )
        return cards

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "responded": self.responded,
            "true_positives": self.true_positives,
            "false_positives": self.false_positives,
            "false_negatives": self.false_negatives,
            "response_rate": self.response_rate,
            "precision": self.precision,
            "recall": self.recall,
            "cards": [card.as_dict() for card in self.cards()],
        }


def compute_quality_stats(
    anomalies: Iterable[Anomaly] | None,
    *,
    is_preview_mode: bool = False,
    is_edit_mode: bool = False,
) -> QualityStats:
    """Count classifications over the unfiltered old anomaly set.

    Without real feedback (preview of a new alert) only the total is reported.
    """

    anomalies = list(anomalies or ())
    feedback_computed = not is_preview_mode or is_edit_mode
    if not feedback_computed:
        return QualityStats(total=len(anomalies), feedback_computed=False)

    responded = tp = fp = fn = 0
    for anomaly in anomalies:
        classification = anomaly.status_classification
        if not classification or classification == NO_CLASSIFICATION:
            continue
        responded += 1
        if classification == TRUE_POSITIVE:
            tp += 1
        elif classification == FALSE_POSITIVE:
            fp += 1
        elif classification == FALSE_NEGATIVE:
            fn += 1

    return QualityStats(
        total=len(anomalies),
        responded=responded,
        true_positives=tp,
        false_positives=fp,
        false_negatives=fn,
    )
