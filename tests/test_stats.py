from __future__ import annotations

from anomaly_overlay.models import Anomaly
from anomaly_overlay.stats import NOT_AVAILABLE, QualityStats, compute_quality_stats, format_percent


def _classified(*labels: str | None) -> list[Anomaly]:
    return [
        Anomaly(metric_urn="thirdeye:metric:1", start_time=i, end_time=i + 1, status_classification=label)
        for i, label in enumerate(labels)
    ]


def test_response_rate_precision_and_recall() -> None:
    anomalies = _classified(
        "TRUE_POSITIVE",
        "TRUE_POSITIVE",
        "TRUE_POSITIVE",
        "FALSE_POSITIVE",
        "FALSE_NEGATIVE",
        "NONE",
        None,
        "NONE",
        None,
        "NONE",
    )

    stats = compute_quality_stats(anomalies)

    assert stats.total == 10
    assert stats.responded == 5
    assert stats.response_rate == 0.5
    assert stats.precision == 0.75
    assert stats.recall == 0.75
    assert [card.value for card in stats.cards()] == [10, "50.0%", "75.0%", "75.0%"]


def test_degenerate_denominators_are_not_available() -> None:
    stats = compute_quality_stats([])

    assert stats.response_rate is None
    assert stats.precision is None
    assert stats.recall is None
    assert [card.value for card in stats.cards()][1:] == [NOT_AVAILABLE] * 3

    unreviewed = compute_quality_stats(_classified("NONE", None))
    assert unreviewed.response_rate == 0.0
    assert unreviewed.precision is None


def test_create_preview_reports_only_the_total() -> None:
    stats = compute_quality_stats(_classified("TRUE_POSITIVE"), is_preview_mode=True)

    assert not stats.feedback_computed
    assert [card.title for card in stats.cards()] == ["Anomalies"]
    assert stats.as_dict()["precision"] is None

    edit = compute_quality_stats(_classified("TRUE_POSITIVE"), is_preview_mode=True, is_edit_mode=True)
    assert edit.precision == 1.0


def test_ratios_stay_within_unit_interval() -> None:
    stats = QualityStats(total=4, responded=4, true_positives=2, false_positives=2, false_negatives=0)

    for value in (stats.response_rate, stats.precision, stats.recall):
        assert 0.0 <= value <= 1.0
    assert format_percent(2 / 3) == "66.7%"
    assert format_percent(None) == NOT_AVAILABLE
