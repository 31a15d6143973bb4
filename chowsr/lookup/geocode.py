from __future__ import annotations

from dataclasses import dataclass

import httpx

from ..httpclient import http_client
from .cache import TTLCache
from .config import DEFAULT_LOOKUP_CONFIG, LookupConfig
from .errors import NoResults, UpstreamError


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float


_geocode_cache = TTLCache(ttl=DEFAULT_LOOKUP_CONFIG.geocode_ttl)


def get_geocode_cache() -> TTLCache:
    return _geocode_cache


async def geocode_location(
    location: str,
    *,
    client: httpx.AsyncClient | None = None,
    config: LookupConfig = DEFAULT_LOOKUP_CONFIG,
) -> GeoPoint:
    """Resolve free text to a point with Nominatim.

    Raises ``NoResults`` when Nominatim answers but has no match (or answers
    with an error status), and ``UpstreamError`` when it cannot be reached.
    """
    trimmed = location.strip()
    cache_key = trimmed.lower()
    cached = _geocode_cache.get(cache_key)
    if cached is not None:
        return cached

    params = {"format": "json", "limit": "1", "q": trimmed}
    headers = {"User-Agent": config.user_agent, "Accept-Language": "en"}

    try:
        async with http_client(client, config.http_timeout) as http:
            response = await http.get(config.nominatim_url, params=params, headers=headers)
    except httpx.HTTPError as exc:
        raise UpstreamError(f"Geocoding request failed: {exc}") from exc

    if response.is_error:
        detail = response.text[:200].strip()
        message = f"Unable to find that location (geocode {response.status_code})."
        raise NoResults(f"{message} {detail}" if detail else message)

    try:
        data = response.json()
    except ValueError as exc:
        raise UpstreamError("Geocoder returned invalid JSON.", response.status_code) from exc

    if not isinstance(data, list) or not data:
        raise NoResults("No results for that location.")

    try:
        point = GeoPoint(lat=float(data[0]["lat"]), lon=float(data[0]["lon"]))
    except (KeyError, TypeError, ValueError) as exc:
        raise UpstreamError("Geocoder returned an unreadable result.") from exc
    _geocode_cache.set(cache_key, point)
    return point
