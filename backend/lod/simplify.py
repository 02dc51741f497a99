from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Iterable

from loguru import logger
from shapely.geometry import LineString

from geo.coords import LonLat
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


class ZoomThreshold(IntEnum):
    STATE_LEVEL = 6
    DISTRICT_LEVEL = 7
    VILLAGE_LEVEL = 10
    DETAILED_LEVEL = 12


@dataclass(frozen=True)
class Simplification:
    tolerance: float  # degrees
    high_quality: bool


_SIMPLIFICATION_BY_BAND: dict[ZoomThreshold, Simplification] = {
    ZoomThreshold.STATE_LEVEL: Simplification(tolerance=0.01, high_quality=False),
    ZoomThreshold.DISTRICT_LEVEL: Simplification(tolerance=0.005, high_quality=False),
    ZoomThreshold.VILLAGE_LEVEL: Simplification(tolerance=0.002, high_quality=True),
    ZoomThreshold.DETAILED_LEVEL: Simplification(tolerance=0.001, high_quality=True),
}


def simplification_for_zoom(zoom: float) -> Simplification:
    z = float(zoom)
    if z <= ZoomThreshold.STATE_LEVEL:
        return _SIMPLIFICATION_BY_BAND[ZoomThreshold.STATE_LEVEL]
    if z <= ZoomThreshold.DISTRICT_LEVEL:
        return _SIMPLIFICATION_BY_BAND[ZoomThreshold.DISTRICT_LEVEL]
    if z <= ZoomThreshold.VILLAGE_LEVEL:
        return _SIMPLIFICATION_BY_BAND[ZoomThreshold.VILLAGE_LEVEL]
    return _SIMPLIFICATION_BY_BAND[ZoomThreshold.DETAILED_LEVEL]


def count_vertices(features: Iterable[GeoFeature]) -> int:
    return sum(1 for f in features for _ in feature_vertices(f))


def simplify_features(features: Iterable[GeoFeature], zoom: float) -> list[GeoFeature]:
    return [simplify_feature(f, zoom) for f in features]


def simplify_feature(feature: GeoFeature, zoom: float) -> GeoFeature:
    """
    Zoom-aware Douglas-Peucker simplification of a single feature.

    Points pass through untouched. The geometry kind never changes and the vertex
    count never grows. Malformed or unsimplifiable input comes back as the very same
    object, with a warning.
    """
    if isinstance(feature, (PointFeature, MultiPointFeature)):
        return feature

    cfg = simplification_for_zoom(zoom)
    try:
        if _is_malformed(feature):
            logger.warning(f"Skipping simplification of malformed feature {getattr(feature, 'id', None)!r}")
            return feature
        return _simplify(feature, cfg)
    except Exception as e:
        logger.warning(f"Failed to simplify geometry for feature {getattr(feature, 'id', None)!r}: {e}")
        return feature


def _is_malformed(f: GeoFeature) -> bool:
    if isinstance(f, LineFeature):
        return not f.coords
    if isinstance(f, MultiLineFeature):
        return not f.lines or not any(f.lines)
    if isinstance(f, PolygonFeature):
        return not f.rings or not f.rings[0]
    if isinstance(f, MultiPolygonFeature):
        return not f.polygons or not any(p and p[0] for p in f.polygons)
    return True


def _simplify(f: GeoFeature, cfg: Simplification) -> GeoFeature:
    if isinstance(f, LineFeature):
        return replace(f, coords=_simplify_line(f.coords, cfg))
    if isinstance(f, MultiLineFeature):
        return replace(f, lines=[_simplify_line(line, cfg) for line in f.lines])
    if isinstance(f, PolygonFeature):
        return replace(f, rings=[_simplify_ring(r, cfg) for r in f.rings])
    if isinstance(f, MultiPolygonFeature):
        return replace(
            f,
            polygons=[[_simplify_ring(r, cfg) for r in poly] for poly in f.polygons],
        )
    raise TypeError(f"Unsupported feature type: {type(f).__name__}")


def _simplify_line(coords: list[LonLat], cfg: Simplification) -> list[LonLat]:
    if len(coords) < 3:
        return list(coords)
    ls = LineString([(float(lon), float(lat)) for lon, lat in coords])
    simp = ls.simplify(cfg.tolerance, preserve_topology=cfg.high_quality)
    if simp.is_empty or simp.geom_type != "LineString":
        return list(coords)
    out = [LonLat(float(x), float(y)) for x, y in simp.coords]
    if len(out) < 2 or len(out) > len(coords):
        return list(coords)
    return out


def _simplify_ring(ring: list[LonLat], cfg: Simplification) -> list[LonLat]:
    if len(ring) < 4:
        return list(ring)
    closed = list(ring)
    was_open = closed[0] != closed[-1]
    if was_open:
        closed = [*closed, closed[0]]

    ls = LineString([(float(lon), float(lat)) for lon, lat in closed])
    simp = ls.simplify(cfg.tolerance, preserve_topology=cfg.high_quality)
    if simp.is_empty or simp.geom_type != "LineString":
        return list(ring)
    out = [LonLat(float(x), float(y)) for x, y in simp.coords]
    # A ring that collapses below a triangle keeps its original vertices.
    if len(out) < 4 or out[0] != out[-1]:
        return list(ring)
    if was_open:
        out = out[:-1]
    if len(out) > len(ring):
        return list(ring)
    return out
