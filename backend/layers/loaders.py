from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Iterable

from loguru import logger
from pyproj import Transformer

from geo.coords import BoundsPair, LonLat, bounds_pair
from layers.types import (
    GeoFeature,
    LineFeature,
    MultiLineFeature,
    MultiPointFeature,
    MultiPolygonFeature,
    PointFeature,
    PolygonFeature,
    feature_vertices,
)

_WGS84 = "EPSG:4326"

Reproject = Callable[[float, float], tuple[float, float]]


@lru_cache(maxsize=8)
def _transformer_to_4326(crs: str) -> Transformer:
    return Transformer.from_crs(crs, _WGS84, always_xy=True)


def _reprojector(crs: str) -> Reproject | None:
    c = (crs or _WGS84).strip().upper()
    if c in {_WGS84, "WGS84", "CRS84", "OGC:CRS84"}:
        return None
    t = _transformer_to_4326(c)
    return lambda x, y: t.transform(x, y)


def load_geojson_features(path: Path, *, crs: str = _WGS84) -> list[GeoFeature]:
    """
    Load a GeoJSON FeatureCollection into GeoFeatures (EPSG:4326, lon/lat order).

    Features without usable geometry are skipped with a warning.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    reproject = _reprojector(crs)

    out: list[GeoFeature] = []
    for i, raw in enumerate(data.get("features") or []):
        feature = feature_from_geojson(raw, fallback_id=f"{path.stem}-{i}", reproject=reproject)
        if feature is None:
            logger.warning(f"{path.name}: skipping feature #{i} without usable geometry")
            continue
        out.append(feature)
    return out


def feature_from_geojson(
    raw: Any,
    *,
    fallback_id: str,
    reproject: Reproject | None = None,
) -> GeoFeature | None:
    feature = raw if isinstance(raw, dict) else {}
    geom = feature.get("geometry") or {}
    props = dict(feature.get("properties") or {})
    gtype = geom.get("type")
    coords = geom.get("coordinates")
    if not coords:
        return None

    fid = str(feature.get("id") or props.get("id") or fallback_id)

    def pt(p: Any) -> LonLat:
        x, y = float(p[0]), float(p[1])
        if reproject is not None:
            x, y = reproject(x, y)
        return LonLat(lon=float(x), lat=float(y))

    def line(ps: Any) -> list[LonLat]:
        return [pt(p) for p in ps or [] if p and len(p) >= 2]

    if gtype == "Point":
        p = pt(coords)
        return PointFeature(id=fid, lon=p.lon, lat=p.lat, props=props)
    if gtype == "MultiPoint":
        return MultiPointFeature(id=fid, points=line(coords), props=props)
    if gtype == "LineString":
        return LineFeature(id=fid, coords=line(coords), props=props)
    if gtype == "MultiLineString":
        return MultiLineFeature(id=fid, lines=[line(ls) for ls in coords], props=props)
    if gtype == "Polygon":
        return PolygonFeature(id=fid, rings=[line(r) for r in coords], props=props)
    if gtype == "MultiPolygon":
        return MultiPolygonFeature(
            id=fid, polygons=[[line(r) for r in poly] for poly in coords], props=props
        )
    return None


def feature_to_geojson(f: GeoFeature) -> dict[str, Any]:
    def line(ps: Iterable[tuple[float, float]]) -> list[list[float]]:
        return [[float(lon), float(lat)] for lon, lat in ps]

    if isinstance(f, PointFeature):
        coords: Any = [float(f.lon), float(f.lat)]
    elif isinstance(f, MultiPointFeature):
        coords = line(f.points)
    elif isinstance(f, LineFeature):
        coords = line(f.coords)
    elif isinstance(f, MultiLineFeature):
        coords = [line(ls) for ls in f.lines]
    elif isinstance(f, PolygonFeature):
        coords = [line(r) for r in f.rings]
    elif isinstance(f, MultiPolygonFeature):
        coords = [[line(r) for r in poly] for poly in f.polygons]
    else:
        raise TypeError(f"Unsupported feature type: {type(f).__name__}")

    return {
        "type": "Feature",
        "id": f.id,
        "geometry": {"type": f.geometry_type, "coordinates": coords},
        "properties": dict(f.props),
    }


def features_bounds(features: Iterable[GeoFeature]) -> BoundsPair | None:
    """
    Bounds of all vertices as ((south, west), (north, east)); None when there are none.
    """
    min_lon = min_lat = float("inf")
    max_lon = max_lat = float("-inf")
    for f in features:
        try:
            for lon, lat in feature_vertices(f):
                min_lon = min(min_lon, float(lon))
                max_lon = max(max_lon, float(lon))
                min_lat = min(min_lat, float(lat))
                max_lat = max(max_lat, float(lat))
        except Exception as e:
            logger.warning(f"Failed to read bounds of feature {getattr(f, 'id', None)!r}: {e}")
    if min_lon == float("inf"):
        return None
    return bounds_pair(south=min_lat, west=min_lon, north=max_lat, east=max_lon)


def tribal_population_color(tribal_percentage: float) -> str:
    """
    Fill colour for a tribal-population share (percent).
    """
    p = float(tribal_percentage)
    if p >= 80:
        return "#7f1d1d"  # very high
    if p >= 25:
        return "#dc2626"
    if p >= 15:
        return "#ef4444"
    if p >= 10:
        return "#f59e0b"
    if p >= 5:
        return "#eab308"
    return "#22c55e"
