"""Google Maps API integration — meeting location enrichment.

Resolves the free-text location a user typed for a meeting ("Blue Bottle
on Market") into a concrete place via the Places API (New) Text Search
endpoint, so emergency alerts can point trusted contacts at a map pin
instead of a vague description.

Gracefully degrades: returns None on any failure (no API key, timeout,
invalid response, etc.).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable
from urllib.parse import quote_plus

import httpx

logger = logging.getLogger(__name__)

_PLACES_TEXT_SEARCH_URL = "https://places.googleapis.com/v1/places:searchText"
_FIELD_MASK = ",".join((
    "places.displayName",
    "places.formattedAddress",
    "places.location",
    "places.googleMapsUri",
))
_TIMEOUT_SECONDS = 5


@dataclass
class EnrichedLocation:
    """A meeting location resolved to a single place."""

    display_name: str
    formatted_address: str
    maps_url: str
    latitude: float | None = None
    longitude: float | None = None

    @property
    def coordinates(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return self.latitude, self.longitude


def maps_search_url(query: str) -> str:
    """Google Maps search link for free text or a "lat,lng" pair."""
    return f"https://www.google.com/maps/search/?api=1&query={quote_plus(query)}"


def _parse_place(place: dict, raw_location: str) -> EnrichedLocation:
    display_name = place.get("displayName", {}).get("text", raw_location)
    formatted_address = place.get("formattedAddress", "")
    location = place.get("location") or {}
    lat, lng = location.get("latitude"), location.get("longitude")

    # Prefer the place's own link, then a pin at its coordinates
    maps_url = place.get("googleMapsUri")
    if not maps_url and lat is not None and lng is not None:
        maps_url = maps_search_url(f"{lat},{lng}")
    if not maps_url:
        maps_url = maps_search_url(formatted_address or display_name)

    return EnrichedLocation(
        display_name=display_name,
        formatted_address=formatted_address,
        maps_url=maps_url,
        latitude=lat,
        longitude=lng,
    )


async def enrich_location(
    raw_location: str,
    api_key: str,
) -> EnrichedLocation | None:
    """Resolve a meeting location string to the best-matching place.

    Returns None when there is nothing to look up, nothing matched, or the
    API call failed.
    """
    query = raw_location.strip() if raw_location else ""
    if not query or not api_key:
        return None

    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            resp = await client.post(
                _PLACES_TEXT_SEARCH_URL,
                json={"textQuery": query, "pageSize": 1},
                headers={"X-Goog-Api-Key": api_key, "X-Goog-FieldMask": _FIELD_MASK},
            )
            resp.raise_for_status()
            places = resp.json().get("places", [])
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Places lookup failed for meeting location '%s': %s", query, exc)
        return None

    if not places:
        logger.info("No place matched meeting location '%s'", query)
        return None
    return _parse_place(places[0], query)


def make_maps_link_enricher(api_key: str) -> Callable[[str], Awaitable[str | None]]:
    """Return an async location -> maps URL callable for the check-in monitor.

    Without an API key (or when the lookup fails) the raw location is still
    turned into a search link, so alerts always carry a map.
    """

    async def _maps_link(raw_location: str) -> str | None:
        if not raw_location.strip():
            return None
        enriched = await enrich_location(raw_location, api_key)
        if enriched is None:
            return maps_search_url(raw_location.strip())
        return enriched.maps_url

    return _maps_link
