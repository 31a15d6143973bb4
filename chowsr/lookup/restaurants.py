"""
Restaurant lookup pipeline.

geocode -> Overpass query (first healthy mirror wins) -> normalize ->
deduplicate -> rank by distance -> cache.

Elements without a usable name or without coordinates are dropped. Names
are deduplicated case- and whitespace-insensitively, keeping the first one
Overpass returned. The 12 closest survivors are kept.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from ..httpclient import http_client
from .cache import TTLCache
from .config import DEFAULT_LOOKUP_CONFIG, LookupConfig
from .errors import FetchFailure, LookupTimeout, NoResults, UpstreamError
from .geo import format_distance, haversine_miles, miles_to_meters
from .geocode import GeoPoint, geocode_location, get_geocode_cache

logger = logging.getLogger(__name__)

DEFAULT_CUISINE = "Restaurant"


@dataclass(frozen=True)
class NearbyRestaurant:
    id: str
    name: str
    cuisine: str
    distance_miles: float
    distance: str


_restaurant_cache = TTLCache(ttl=DEFAULT_LOOKUP_CONFIG.restaurant_ttl)


def clear_caches() -> None:
    _restaurant_cache.clear()
    get_geocode_cache().clear()


def get_cache_stats() -> dict:
    return {
        "geocode": get_geocode_cache().stats(),
        "restaurants": _restaurant_cache.stats(),
    }


def build_overpass_query(center: GeoPoint, radius_meters: int, limit: int) -> str:
    around = f"around:{radius_meters},{center.lat},{center.lon}"
    return (
        "[out:json][timeout:25];\n"
        "(\n"
        f'  node["amenity"="restaurant"]({around});\n'
        f'  way["amenity"="restaurant"]({around});\n'
        f'  relation["amenity"="restaurant"]({around});\n'
        ");\n"
        f"out center {limit};"
    )


def build_cuisine_label(tags: dict[str, Any]) -> str:
    raw = tags.get("cuisine")
    if not raw:
        return DEFAULT_CUISINE
    parts = [part.strip() for part in str(raw).split(";") if part.strip()]
    return ", ".join(parts[:2]) if parts else DEFAULT_CUISINE


def _coordinates(element: dict[str, Any]) -> tuple[float, float] | None:
    lat, lon = element.get("lat"), element.get("lon")
    if lat is None or lon is None:
        # ways and relations only carry a computed center
        center = element.get("center") or {}
        lat, lon = center.get("lat"), center.get("lon")
    if lat is None or lon is None:
        return None
    return float(lat), float(lon)


def normalize_elements(
    elements: Iterable[dict[str, Any]],
    center: GeoPoint,
    limit: int = DEFAULT_LOOKUP_CONFIG.max_results,
) -> list[NearbyRestaurant]:
    seen: set[str] = set()
    restaurants: list[NearbyRestaurant] = []

    for element in elements:
        tags = element.get("tags") or {}
        name = (tags.get("name") or tags.get("brand") or "").strip()
        if not name:
            continue
        coords = _coordinates(element)
        if coords is None:
            continue
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)

        miles = haversine_miles(center.lat, center.lon, *coords)
        restaurants.append(
            NearbyRestaurant(
                id=f"{element.get('type')}-{element.get('id')}",
                name=name,
                cuisine=build_cuisine_label(tags),
                distance_miles=miles,
                distance=format_distance(miles),
            )
        )

    restaurants.sort(key=lambda r: r.distance_miles)
    return restaurants[:limit]


async def query_overpass(
    query: str,
    urls: Sequence[str],
    *,
    client: httpx.AsyncClient | None = None,
    config: LookupConfig = DEFAULT_LOOKUP_CONFIG,
) -> dict[str, Any]:
    """POST the query to each backend in turn and return the first good payload."""
    last_error: Exception | None = None
    headers = {"User-Agent": config.user_agent}

    async with http_client(client, config.http_timeout) as http:
        for url in urls:
            try:
                response = await http.post(url, data={"data": query}, headers=headers)
                if response.is_error:
                    detail = response.text[:200].strip()
                    message = f"Overpass error ({response.status_code}) from {url}."
                    raise UpstreamError(
                        f"{message} {detail}" if detail else message, response.status_code
                    )
                return response.json()
            except (httpx.HTTPError, UpstreamError, ValueError) as exc:
                logger.warning("overpass backend %s failed: %s", url, exc)
                last_error = exc

    if last_error is None:
        raise FetchFailure("Unable to load nearby restaurants (no overpass backends).")
    raise FetchFailure(str(last_error) or "Fetch failed.", last_error)


async def fetch_restaurants(
    location: str,
    radius_miles: float,
    *,
    client: httpx.AsyncClient | None = None,
    config: LookupConfig = DEFAULT_LOOKUP_CONFIG,
) -> list[NearbyRestaurant]:
    """Return up to ``config.max_results`` restaurants around ``location``, nearest first.

    Raises ``NoResults`` if there is nothing to show, ``UpstreamError`` if the
    geocoder is unreachable and ``FetchFailure`` if every Overpass mirror fails.
    """
    cache_key = (location.strip().lower(), float(radius_miles))
    cached = _restaurant_cache.get(cache_key)
    if cached is not None:
        return cached

    center = await geocode_location(location, client=client, config=config)
    query = build_overpass_query(center, miles_to_meters(radius_miles), config.max_elements)
    payload = await query_overpass(query, config.overpass_urls, client=client, config=config)

    elements = payload.get("elements") if isinstance(payload, dict) else None
    restaurants = normalize_elements(elements or [], center, config.max_results)
    if not restaurants:
        raise NoResults("No restaurants found within that radius.")

    _restaurant_cache.set(cache_key, restaurants)
    return restaurants


async def lookup_restaurants(
    location: str,
    radius_miles: float,
    timeout: float,
    **kwargs: Any,
) -> list[NearbyRestaurant]:
    """Run ``fetch_restaurants`` under a deadline; in-flight requests are cancelled on expiry."""
    try:
        return await asyncio.wait_for(fetch_restaurants(location, radius_miles, **kwargs), timeout)
    except asyncio.TimeoutError as exc:
        raise LookupTimeout("Restaurant lookup timed out.") from exc
