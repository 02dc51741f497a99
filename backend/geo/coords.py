from __future__ import annotations

from typing import NamedTuple, TypeAlias


class LonLat(NamedTuple):
    """
    GeoJSON-ordered coordinate pair. Every feature geometry in this repo uses it.
    """

    lon: float
    lat: float

    def to_latlon(self) -> "LatLon":
        return LatLon(lat=self.lat, lon=self.lon)


class LatLon(NamedTuple):
    """
    Map-library-ordered coordinate pair (viewport corners, map centres).
    """

    lat: float
    lon: float

    def to_lonlat(self) -> LonLat:
        return LonLat(lon=self.lon, lat=self.lat)


# ((south, west), (north, east))
BoundsPair: TypeAlias = tuple[LatLon, LatLon]


def as_lonlat(p) -> LonLat:
    # Accepts raw [lon, lat] sequences coming straight from GeoJSON.
    return LonLat(lon=float(p[0]), lat=float(p[1]))


def bounds_pair(south: float, west: float, north: float, east: float) -> BoundsPair:
    return (LatLon(lat=float(south), lon=float(west)), LatLon(lat=float(north), lon=float(east)))
