from __future__ import annotations

CREATE_EVENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS layer_events (
  ts_ms BIGINT,
  endpoint TEXT,
  atlas_id TEXT,
  layer_id TEXT,
  view_zoom DOUBLE,
  bbox_min_lon DOUBLE,
  bbox_min_lat DOUBLE,
  bbox_max_lon DOUBLE,
  bbox_max_lat DOUBLE,
  stats_json TEXT
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  layer_id,
  endpoint,
  COUNT(*) AS n,
  AVG(try_cast(json_extract(stats_json, '$.timingsMs.total') AS DOUBLE)) AS avg_total_ms,
  quantile_cont(try_cast(json_extract(stats_json, '$.timingsMs.total') AS DOUBLE), 0.95) AS p95_total_ms,
  AVG(try_cast(json_extract(stats_json, '$.featureCount') AS DOUBLE)) AS avg_features,
  AVG(CASE WHEN try_cast(json_extract(stats_json, '$.cacheHit') AS BOOLEAN) THEN 1 ELSE 0 END) AS cache_hit_rate
FROM layer_events
{where_sql}
GROUP BY layer_id, endpoint
ORDER BY layer_id, endpoint
"""

INSERT_EVENTS_SQL = """
INSERT INTO layer_events
  (ts_ms, endpoint, atlas_id, layer_id, view_zoom, bbox_min_lon, bbox_min_lat, bbox_max_lon, bbox_max_lat, stats_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""
