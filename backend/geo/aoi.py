from __future__ import annotations

from dataclasses import dataclass

from geo.coords import BoundsPair, LatLon


@dataclass(frozen=True)
class BBox:
    """
    WGS84 bounding box in lon/lat degrees.

    Convention used throughout this repo:
    - minLon, minLat, maxLon, maxLat

    The map view speaks in `BoundsPair` (south-west / north-east `LatLon` corners);
    use `from_bounds_pair` / `to_bounds_pair` to cross between the two.
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def normalized(self) -> "BBox":
        min_lon = min(self.min_lon, self.max_lon)
        max_lon = max(self.min_lon, self.max_lon)
        min_lat = min(self.min_lat, self.max_lat)
        max_lat = max(self.min_lat, self.max_lat)
        return BBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat)

    def rounded_key(self, decimals: int = 4) -> tuple[float, float, float, float]:
        """
        A stable, hashable key for caching viewport-derived computations.
        """
        b = self.normalized()
        return (
            round(b.min_lon, decimals),
            round(b.min_lat, decimals),
            round(b.max_lon, decimals),
            round(b.max_lat, decimals),
        )

    def contains(self, lon: float, lat: float) -> bool:
        # Edges are inclusive.
        return self.min_lon <= lon <= self.max_lon and self.min_lat <= lat <= self.max_lat

    def area(self) -> float:
        # Square degrees; only used as a density denominator.
        return abs((self.max_lat - self.min_lat) * (self.max_lon - self.min_lon))

    @classmethod
    def from_bounds_pair(cls, bounds: BoundsPair) -> "BBox":
        sw, ne = bounds
        return cls(
            min_lon=float(sw[1]),
            min_lat=float(sw[0]),
            max_lon=float(ne[1]),
            max_lat=float(ne[0]),
        )

    def to_bounds_pair(self) -> BoundsPair:
        return (
            LatLon(lat=self.min_lat, lon=self.min_lon),
            LatLon(lat=self.max_lat, lon=self.max_lon),
        )


def parse_bbox_param(raw: str) -> BBox:
    """
    Parse the `bbox` query parameter: "minLng,minLat,maxLng,maxLat".
    """
    parts = [p.strip() for p in (raw or "").split(",")]
    if len(parts) != 4 or any(not p for p in parts):
        raise ValueError(f"bbox must be 'minLng,minLat,maxLng,maxLat', got {raw!r}")
    try:
        min_lon, min_lat, max_lon, max_lat = (float(p) for p in parts)
    except ValueError as e:
        raise ValueError(f"bbox contains a non-numeric value: {raw!r}") from e
    return BBox(min_lon=min_lon, min_lat=min_lat, max_lon=max_lon, max_lat=max_lat).normalized()
