from __future__ import annotations

import json
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb
from loguru import logger

from geo.aoi import BBox
from telemetry.sql import CREATE_EVENTS_TABLE_SQL, INSERT_EVENTS_SQL, SUMMARY_SQL_TEMPLATE

_SUMMARY_FIELDS = ("layerId", "endpoint", "n", "avgTotalMs", "p95TotalMs", "avgFeatureCount", "cacheHitRate")


def _num(v: Any) -> float | None:
    return None if v is None else float(v)


@dataclass
class TelemetryStore:
    """
    DuckDB log of layer feature requests.

    Request handlers only enqueue rows. One daemon thread owns all inserts and writes
    them in batches of `batch_size`, or every `flush_interval_s`, whichever comes first.
    """

    path: Path
    conn: duckdb.DuckDBPyConnection
    batch_size: int = 250
    flush_interval_s: float = 0.5
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _q: "queue.Queue[tuple]" = field(default_factory=queue.Queue, repr=False)
    _stop: threading.Event = field(default_factory=threading.Event, repr=False)
    _worker: threading.Thread | None = field(default=None, repr=False)

    def ensure_schema(self) -> None:
        with self._lock:
            self.conn.execute(CREATE_EVENTS_TABLE_SQL)

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stop.clear()
        self._worker = threading.Thread(target=self._writer_loop, name="fra-telemetry", daemon=True)
        self._worker.start()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        self._stop.set()
        worker, self._worker = self._worker, None
        if worker is not None and worker.is_alive():
            worker.join(timeout=timeout_s)

    def close(self) -> None:
        self.stop()
        with self._lock:
            self.conn.close()

    def reset(self) -> None:
        self.close()
        self.path.unlink(missing_ok=True)

    def record(
        self,
        *,
        endpoint: str,
        atlas_id: str | None,
        layer_id: str,
        view_zoom: float,
        bbox: BBox | None,
        stats: dict[str, Any],
    ) -> None:
        self.start()
        corners: tuple[float | None, ...] = (None, None, None, None)
        if bbox is not None:
            b = bbox.normalized()
            corners = (b.min_lon, b.min_lat, b.max_lon, b.max_lat)
        self._q.put_nowait(
            (
                int(time.time() * 1000),
                endpoint,
                atlas_id,
                layer_id,
                float(view_zoom),
                *corners,
                json.dumps(stats, ensure_ascii=False, default=str),
            )
        )

    def flush(self, *, timeout_s: float = 2.0) -> bool:
        """
        Block until every queued event has been written. Returns False on timeout.
        """
        if self._worker is None:
            return self._q.unfinished_tasks == 0
        deadline = time.monotonic() + timeout_s
        while self._q.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        # DuckDB keeps the file locked while open; other processes go through the API.
        with self._lock:
            return self.conn.execute(sql, params or []).fetchall()

    def summary(
        self,
        *,
        layer_id: str | None = None,
        endpoint: str | None = None,
        since_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        filters = {"layer_id = ?": layer_id, "endpoint = ?": endpoint, "ts_ms >= ?": since_ms}
        active = {clause: value for clause, value in filters.items() if value is not None and value != ""}
        where_sql = f"WHERE {' AND '.join(active)}" if active else ""

        rows = self.query(SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), list(active.values()))
        out = []
        for layer_v, endpoint_v, n, *metrics in rows:
            out.append(dict(zip(_SUMMARY_FIELDS, (layer_v, endpoint_v, int(n), *(_num(m) for m in metrics)))))
        return out

    def _write(self, batch: list[tuple]) -> None:
        if not batch:
            return
        try:
            with self._lock:
                self.conn.executemany(INSERT_EVENTS_SQL, batch)
        except duckdb.Error as e:
            logger.warning(f"Dropping {len(batch)} telemetry events: {e}")
        finally:
            for _ in batch:
                self._q.task_done()

    def _drain(self) -> list[tuple]:
        rows = []
        while True:
            try:
                rows.append(self._q.get_nowait())
            except queue.Empty:
                return rows

    def _writer_loop(self) -> None:
        self.ensure_schema()
        batch: list[tuple] = []
        last_write = time.monotonic()

        while not self._stop.is_set():
            try:
                batch.append(self._q.get(timeout=0.1))
            except queue.Empty:
                pass

            due = (time.monotonic() - last_write) >= self.flush_interval_s
            if batch and (len(batch) >= self.batch_size or due or self._q.empty()):
                self._write(batch)
                batch = []
                last_write = time.monotonic()

        self._write(batch + self._drain())
