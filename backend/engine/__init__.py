"""
Backend data engines.

An engine turns a request (atlas, layer, zoom, viewport) into the feature list the map
should draw. Today there is a single in-memory engine over fixture GeoJSON.
"""
