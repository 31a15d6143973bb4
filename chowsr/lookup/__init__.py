"""
Nearby restaurant lookup.

Responsibilities:
- Geocode a free-text location with Nominatim.
- Query Overpass mirrors for restaurants around it, falling back across mirrors.
- Clean, deduplicate and rank results by distance.
- Cache geocodes and result lists to spare the public OSM services.
"""
