"""Resolve free-text locations to coordinates with the Open-Meteo geocoding API."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import requests
import requests_cache

from weatherpane.config import settings
from weatherpane.data_sources.http import get_json
from weatherpane.errors import LocationNotFound, ProviderError
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="geocoding_client")


def _has_match(response: requests.Response) -> bool:
    """Cache only responses that carry at least one candidate."""
    try:
        return bool(response.json().get("results"))
    except (ValueError, AttributeError):
        return False


# A location string always resolves to the same place, so matches are kept in
# memory for the lifetime of the process. Failures are never cached.
session = requests_cache.CachedSession(
    "weatherpane_geocode",
    backend="memory",
    expire_after=settings.geocode_cache_expire_seconds,
    allowable_codes=(200,),
    filter_fn=_has_match,
)


@dataclass(frozen=True)
class GeoCoordinate:
    """A geocoding match reduced to what the panel needs."""
    latitude: float
    longitude: float
    resolved_name: str
    country: Optional[str] = None
    timezone: Optional[str] = None


def normalize_query(query: str) -> str:
    """
    Turn a configured location into the provider's search term.

    Timezone-style values ("Europe/Vienna", "America/New_York") search for
    their last segment; dashes and underscores become spaces. A query made
    only of separators cannot match anything and raises LocationNotFound.
    """
    if not isinstance(query, str) or not query.strip():
        raise ValueError("location query must be a non-empty string")
    segments = [s for s in query.split("/") if s.strip()]
    if not segments:
        raise LocationNotFound(query)
    term = " ".join(segments[-1].replace("-", " ").replace("_", " ").split())
    if not term:
        raise LocationNotFound(query)
    return term


def _number(candidate: dict, key: str) -> float:
    value = candidate.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProviderError(f"Geocoding candidate has invalid {key}: {value!r}")
    return float(value)


def parse_first_candidate(data: Any, query: str) -> GeoCoordinate:
    """Validate a geocoding payload and return its first candidate."""
    if not isinstance(data, dict):
        raise ProviderError("Geocoding payload is not an object")
    results = data.get("results")
    if results is None or results == []:
        raise LocationNotFound(query)
    if not isinstance(results, list) or not isinstance(results[0], dict):
        raise ProviderError("Geocoding results are not a list of objects")

    first = results[0]
    name = first.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ProviderError(f"Geocoding candidate has invalid name: {name!r}")
    country = first.get("country")
    country = country.strip() if isinstance(country, str) and country.strip() else None
    timezone = first.get("timezone") if isinstance(first.get("timezone"), str) else None

    return GeoCoordinate(
        latitude=_number(first, "latitude"),
        longitude=_number(first, "longitude"),
        resolved_name=f"{name.strip()}, {country}" if country else name.strip(),
        country=country,
        timezone=timezone,
    )


class GeocodeClient:
    """Looks up a location string and returns the provider's first match."""

    def __init__(self,
                 http_session: requests.Session | None = None,
                 *,
                 base_url: str | None = None,
                 language: str | None = None,
                 timeout: float | None = None):
        """Initialize from settings; every argument can be overridden."""
        self.session = http_session or session
        self.base_url = base_url or settings.geocoding_base_url
        self.language = language or settings.geocode_language
        self.timeout = timeout or settings.http_timeout_seconds

    def resolve(self, query: str) -> GeoCoordinate:
        """Resolve `query`, raising LocationNotFound, NetworkFailure or ProviderError."""
        term = normalize_query(query)
        params = {
            "name": term,
            "count": 1,
            "language": self.language,
            "format": "json",
        }
        logger.debug("Geocoding request", extra={"query": query, "term": term})
        data = get_json(self.session, self.base_url, params, timeout=self.timeout)
        coordinate = parse_first_candidate(data, query)
        logger.info(
            "Resolved location",
            extra={
                "query": query,
                "resolved_name": coordinate.resolved_name,
                "latitude": coordinate.latitude,
                "longitude": coordinate.longitude,
            },
        )
        return coordinate
