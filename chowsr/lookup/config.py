from __future__ import annotations

import os
from dataclasses import dataclass

from ..config import env_list

DEFAULT_OVERPASS_URLS: tuple[str, ...] = (
    "https://overpass-api.de/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
    "https://overpass.nchc.org.tw/api/interpreter",
)


@dataclass(frozen=True)
class LookupConfig:
    user_agent: str = os.getenv("OSM_USER_AGENT", "chowsr/1.0 (support@chowsr.app)")
    nominatim_url: str = os.getenv(
        "NOMINATIM_URL", "https://nominatim.openstreetmap.org/search"
    )
    overpass_urls: tuple[str, ...] = env_list("OVERPASS_URLS") or DEFAULT_OVERPASS_URLS
    geocode_ttl: float = 6 * 60 * 60
    restaurant_ttl: float = 10 * 60
    max_elements: int = 40
    max_results: int = 12
    http_timeout: float = 20.0


DEFAULT_LOOKUP_CONFIG = LookupConfig()
