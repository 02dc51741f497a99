from __future__ import annotations

from typing import Iterable

from loguru import logger

from geo.aoi import BBox
from geo.coords import BoundsPair
from layers.types import GeoFeature, PointFeature, feature_vertices


def filter_by_bounds(features: Iterable[GeoFeature], bounds: BoundsPair) -> list[GeoFeature]:
    """
    Keep features that touch the viewport.

    Points must lie inside the bounds (edges inclusive). Every other geometry kind is
    kept when *any* of its vertices lies inside. That is a known approximation, not an
    exact polygon/rectangle intersection: a polygon that merely spans the viewport
    without a vertex in it is dropped, and one passing near a corner may be kept.

    A feature whose coordinates cannot be evaluated is kept (fail-open).
    """
    bbox = BBox.from_bounds_pair(bounds).normalized()
    out: list[GeoFeature] = []
    for f in features:
        try:
            if _touches(f, bbox):
                out.append(f)
        except Exception as e:
            logger.warning(f"Error filtering feature {getattr(f, 'id', None)!r} by bounds: {e}")
            out.append(f)
    return out


def _touches(f: GeoFeature, bbox: BBox) -> bool:
    if isinstance(f, PointFeature):
        return bbox.contains(float(f.lon), float(f.lat))
    for lon, lat in feature_vertices(f):
        if bbox.contains(float(lon), float(lat)):
            return True
    return False
