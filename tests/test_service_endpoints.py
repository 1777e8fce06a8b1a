from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from anomaly_overlay.service import create_app

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures"
URN = "thirdeye:metric:1"


def _anomaly(start: int, end: int, **extra) -> dict:
    return {"metricUrn": URN, "startTime": start, "endTime": end, **extra}


def test_service_health_and_validate() -> None:
    client = TestClient(create_app())

    assert client.get("/health").json() == {"status": "ok"}
    assert "version" in client.get("/version").json()

    resp = client.post("/validate", json={"is_preview_mode": True})
    assert resp.status_code == 200
    assert resp.json()["mode"] == "create-preview"
    assert resp.json()["errors"] == []


def test_service_state_endpoint() -> None:
    client = TestClient(create_app())

    resp = client.post("/state", json={"is_preview_mode": True, "is_edit_mode": True})
    assert resp.json() == {"state": "bootstrap"}

    resp = client.post("/state", json={"is_preview_mode": True, "fetch_errored": True, "has_old_anomalies": True})
    assert resp.json() == {"state": "errored"}


def test_service_filter_endpoint() -> None:
    client = TestClient(create_app())

    resp = client.post(
        "/filter",
        json={
            "anomalies": [
                _anomaly(0, 5, properties={"detectorComponentName": "rule1:THRESHOLD"}),
                _anomaly(5, 10, properties={"detectorComponentName": "rule2:MEAN"}),
                {"metricUrn": URN + ":country%3Dus", "startTime": 0, "endTime": 5},
            ],
            "metric_urn": URN,
            "rule": {"detectorName": "rule1:THRESHOLD", "name": "rule1"},
        },
    )

    assert resp.status_code == 200
    kept = resp.json()["anomalies"]
    assert [a["startTime"] for a in kept] == [0]
    assert kept[0]["metricUrn"] == URN


def test_service_series_endpoint() -> None:
    client = TestClient(create_app())

    resp = client.post(
        "/series",
        json={
            "old": [_anomaly(5, 15)],
            "timeseries": {"timestamp": [0, 5, 10, 15, 20], "value": [1, 2, 3, 4, 5]},
            "state": "baseline",
        },
    )

    assert resp.status_code == 200
    series = resp.json()["series"]
    assert series["Current Anomalies"]["values"] == [None, 2.0, 3.0, None, None]
    assert series["old-anomaly-edges"] == {"timestamps": [5, 10], "values": [2.0, 3.0], "type": "scatter", "color": "red"}


def test_service_series_rejects_unsorted_grid() -> None:
    client = TestClient(create_app())

    resp = client.post("/series", json={"timeseries": {"timestamp": [10, 0], "value": [1, 2]}})

    assert resp.status_code == 422


def test_service_stats_endpoint() -> None:
    client = TestClient(create_app())

    resp = client.post(
        "/stats",
        json={
            "anomalies": [
                _anomaly(0, 5, statusClassification="TRUE_POSITIVE"),
                _anomaly(5, 10, statusClassification="FALSE_NEGATIVE"),
            ]
        },
    )

    stats = resp.json()
    assert stats["recall"] == 0.5
    assert stats["precision"] == 1.0
    assert stats["cards"][3]["value"] == "50.0%"


def test_service_view_endpoint_runs_fixture() -> None:
    client = TestClient(create_app(fixture_dir=FIXTURES))

    resp = client.post("/view", json={"fixture": "overview.yml", "include_rows": True})

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["state"] == "baseline"
    assert payload["notifications"] == []
    assert len(payload["rows"]) == 3
    assert payload["stats"]["total"] == 3

    missing = client.post("/view", json={"fixture": "nope.yml"})
    assert missing.status_code == 404


def test_service_view_rejects_invalid_fixture(tmp_path: Path) -> None:
    (tmp_path / "bad.yml").write_text("view:\n  alert_id: not-a-number\n", encoding="utf-8")
    client = TestClient(create_app(fixture_dir=tmp_path))

    resp = client.post("/view", json={"fixture": "bad.yml"})

    assert resp.status_code == 400
