from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterator, Literal, TypeAlias, Union

from geo.coords import LonLat


GeometryType = Literal[
    "Point", "MultiPoint", "LineString", "MultiLineString", "Polygon", "MultiPolygon"
]
LayerCategory = Literal["base", "fra", "satellite", "analysis"]
LayerType = Literal["raster", "vector"]


@dataclass(frozen=True)
class PointFeature:
    geometry_type: ClassVar[GeometryType] = "Point"

    id: str
    lon: float
    lat: float
    props: dict[str, Any]


@dataclass(frozen=True)
class MultiPointFeature:
    geometry_type: ClassVar[GeometryType] = "MultiPoint"

    id: str
    points: list[LonLat]
    props: dict[str, Any]


@dataclass(frozen=True)
class LineFeature:
    geometry_type: ClassVar[GeometryType] = "LineString"

    id: str
    coords: list[LonLat]  # [(lon, lat), ...]
    props: dict[str, Any]


@dataclass(frozen=True)
class MultiLineFeature:
    geometry_type: ClassVar[GeometryType] = "MultiLineString"

    id: str
    lines: list[list[LonLat]]
    props: dict[str, Any]


@dataclass(frozen=True)
class PolygonFeature:
    geometry_type: ClassVar[GeometryType] = "Polygon"

    id: str
    rings: list[list[LonLat]]  # [outer_ring, *holes]; each ring is [(lon, lat), ...]
    props: dict[str, Any]


@dataclass(frozen=True)
class MultiPolygonFeature:
    geometry_type: ClassVar[GeometryType] = "MultiPolygon"

    id: str
    polygons: list[list[list[LonLat]]]  # [[outer_ring, *holes], ...]
    props: dict[str, Any]


GeoFeature: TypeAlias = Union[
    PointFeature,
    MultiPointFeature,
    LineFeature,
    MultiLineFeature,
    PolygonFeature,
    MultiPolygonFeature,
]


def feature_vertices(f: GeoFeature) -> Iterator[tuple[float, float]]:
    """
    Every (lon, lat) vertex of a feature, whatever its geometry kind.

    Malformed payloads (e.g. `rings=None`) raise TypeError from here; callers decide
    whether that means "keep" or "skip".
    """
    if isinstance(f, PointFeature):
        yield (f.lon, f.lat)
    elif isinstance(f, MultiPointFeature):
        yield from f.points
    elif isinstance(f, LineFeature):
        yield from f.coords
    elif isinstance(f, MultiLineFeature):
        for line in f.lines:
            yield from line
    elif isinstance(f, PolygonFeature):
        for ring in f.rings:
            yield from ring
    elif isinstance(f, MultiPolygonFeature):
        for poly in f.polygons:
            for ring in poly:
                yield from ring
    else:
        raise TypeError(f"Unsupported feature type: {type(f).__name__}")


@dataclass(frozen=True)
class MapLayer:
    """
    One togglable layer of the atlas map.

    Identity and zoom thresholds are fixed for the lifetime of the process; only
    `visible` and `opacity` are replaced at runtime (see `layers.visibility.LayerPanel`).
    """

    id: str
    name: str
    category: LayerCategory
    type: LayerType = "vector"
    visible: bool = True
    opacity: int = 100  # 0..100
    color: str = "#6b7280"
    description: str | None = None
    min_zoom: float | None = None
    max_zoom: float | None = None
    # Below this zoom the layer's feature list is empty regardless of viewport.
    data_min_zoom: float | None = None
    # Free-form style hints (fill/stroke) passed through to the map client.
    style: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LayerBundle:
    layers: list[MapLayer]
    features: dict[str, list[GeoFeature]] = field(default_factory=dict)

    def get(self, layer_id: str) -> MapLayer | None:
        lid = (layer_id or "").strip()
        for layer in self.layers:
            if layer.id == lid:
                return layer
        return None

    def features_for(self, layer_id: str) -> list[GeoFeature]:
        return self.features.get((layer_id or "").strip(), [])

    def of_category(self, category: LayerCategory) -> list[MapLayer]:
        return [layer for layer in self.layers if layer.category == category]
