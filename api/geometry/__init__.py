"""
Geometry codec: WKT / GeoJSON / lat-lng parsing into GeoJSON geometry dicts.
"""
