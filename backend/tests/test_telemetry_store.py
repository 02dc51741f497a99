from __future__ import annotations

import pytest

from geo.aoi import BBox
from telemetry.monitor import PerformanceMonitor, measure_performance
from telemetry.singleton import get_store, reset_store


@pytest.fixture
def store(tmp_path, monkeypatch):
    db_path = tmp_path / "telemetry.duckdb"
    monkeypatch.setenv("FRA_TELEMETRY_PATH", str(db_path))
    monkeypatch.setenv("FRA_TELEMETRY", "1")
    s = get_store()
    assert s is not None
    yield s
    reset_store()


def test_telemetry_store_writes_rows(store):
    store.record(
        endpoint="/gis/features",
        atlas_id="fra_priority_states",
        layer_id="settlements",
        view_zoom=11.0,
        bbox=BBox(82.5, 19.5, 83.5, 20.5),
        stats={"featureCount": 3, "cacheHit": False, "timingsMs": {"total": 4.2}},
    )
    store.flush(timeout_s=2.0)

    n = int(store.conn.execute("select count(*) from layer_events").fetchone()[0])
    assert n == 1

    row = store.conn.execute("select endpoint, layer_id, bbox_min_lon from layer_events limit 1").fetchone()
    assert row == ("/gis/features", "settlements", 82.5)


def test_summary_aggregates_per_layer(store):
    for hit, total in ((False, 10.0), (True, 2.0)):
        store.record(
            endpoint="/gis/features",
            atlas_id="fra_priority_states",
            layer_id="state_boundaries",
            view_zoom=5.0,
            bbox=None,
            stats={"featureCount": 4, "cacheHit": hit, "timingsMs": {"total": total}},
        )
    store.flush(timeout_s=2.0)

    (row,) = store.summary(layer_id="state_boundaries")
    assert row["n"] == 2
    assert row["avgTotalMs"] == pytest.approx(6.0)
    assert row["avgFeatureCount"] == pytest.approx(4.0)
    assert row["cacheHitRate"] == pytest.approx(0.5)


def test_telemetry_reset_deletes_db(tmp_path, monkeypatch):
    db_path = tmp_path / "telemetry.duckdb"
    monkeypatch.setenv("FRA_TELEMETRY_PATH", str(db_path))
    monkeypatch.setenv("FRA_TELEMETRY", "1")

    store = get_store()
    assert store is not None
    store.record(endpoint="/gis/features", atlas_id=None, layer_id="x", view_zoom=3.0, bbox=None, stats={})
    assert store.path.resolve() == db_path.resolve()

    reset_store()
    assert not db_path.exists()


def test_disabled_telemetry_returns_no_store():
    # conftest switches telemetry off by default.
    assert get_store() is None


def test_monitor_keeps_recent_samples():
    m = PerformanceMonitor()
    for i in range(101):
        m.record_processing_time(float(i))
    assert m.get_metrics()["samples"] == 50
    m.record_cache_hit()
    m.record_cache_miss()
    assert m.get_metrics()["cacheHitRate"] == 0.5


def test_measure_performance_logs_slow_operations(monkeypatch, log_messages):
    monkeypatch.setenv("FRA_SLOW_OP_MS", "-1")
    m = PerformanceMonitor()
    result, ms = measure_performance(lambda: 42, "getOptimizedLayerData:x", monitor=m)
    assert result == 42
    assert ms >= 0.0
    assert m.get_metrics()["samples"] == 1
    assert any(level == "WARNING" and "getOptimizedLayerData:x" in msg for level, msg in log_messages)
