# paypals/services/maps.py
# Thin Google Maps / Places client (sync httpx).

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from paypals import config

log = logging.getLogger(__name__)

BASE_URL = "https://maps.googleapis.com/maps/api"
DEFAULT_RADIUS = 1000
DEFAULT_PLACE_TYPE = "restaurant"


class MapsNotConfigured(RuntimeError):
    pass


class MapsError(RuntimeError):
    pass


def _get(path: str, params: Dict[str, Any]) -> Dict[str, Any]:
    if not config.GOOGLE_MAPS_API_KEY:
        raise MapsNotConfigured("GOOGLE_MAPS_API_KEY is not set")
    params = {**params, "key": config.GOOGLE_MAPS_API_KEY}
    try:
        resp = httpx.get(f"{BASE_URL}{path}", params=params, timeout=config.GOOGLE_MAPS_TIMEOUT_SECONDS)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        raise MapsError(f"Google Maps request failed: {e}") from e

    try:
        data = resp.json()
    except ValueError as e:
        raise MapsError(f"Google Maps returned a non-JSON body: {e}") from e
    if not isinstance(data, dict):
        raise MapsError("Google Maps returned an unexpected body")
    api_status = data.get("status")
    if api_status not in (None, "OK", "ZERO_RESULTS"):
        raise MapsError(f"Google Maps returned {api_status}: {data.get('error_message', '')}".strip())
    return data


def get_place_details(place_id: str) -> Optional[Dict[str, Any]]:
    data = _get("/place/details/json", {
        "place_id": place_id,
        "fields": "name,formatted_address,geometry,place_id,rating",
    })
    return data.get("result")


def reverse_geocode(lat: float, lng: float) -> Optional[Dict[str, Any]]:
    data = _get("/geocode/json", {"latlng": f"{lat},{lng}"})
    results = data.get("results") or []
    return results[0] if results else None


def search_nearby(lat: float, lng: float, *, place_type: str = DEFAULT_PLACE_TYPE, radius: int = DEFAULT_RADIUS) -> List[Dict[str, Any]]:
    data = _get("/place/nearbysearch/json", {
        "location": f"{lat},{lng}",
        "radius": radius,
        "type": place_type,
    })
    return data.get("results") or []


def text_search(query: str, *, radius: int = DEFAULT_RADIUS) -> List[Dict[str, Any]]:
    data = _get("/place/textsearch/json", {"query": query, "radius": radius})
    return data.get("results") or []


def resolve_location(
    *,
    place_id: Optional[str],
    lat: Optional[float],
    lng: Optional[float],
    location_name: Optional[str],
) -> Dict[str, Any]:
    """
    Fills transaction location fields. place_id wins over bare coordinates.
    Lookup failures are logged and the caller's values are kept.
    """
    out: Dict[str, Any] = {
        "location_name": location_name,
        "location_lat": lat,
        "location_lng": lng,
        "place_id": place_id,
        "formatted_address": None,
    }
    if not place_id and (lat is None or lng is None):
        return out

    try:
        if place_id:
            place = get_place_details(place_id)
            if place:
                loc = (place.get("geometry") or {}).get("location") or {}
                out["location_name"] = place.get("name") or location_name
                out["formatted_address"] = place.get("formatted_address")
                out["location_lat"] = loc.get("lat", lat)
                out["location_lng"] = loc.get("lng", lng)
        else:
            geo = reverse_geocode(lat, lng)
            if geo:
                out["formatted_address"] = geo.get("formatted_address")
                out["place_id"] = geo.get("place_id")
                if not location_name:
                    out["location_name"] = geo.get("formatted_address")
    except (MapsNotConfigured, MapsError) as e:
        log.warning("location lookup skipped: %s", e)

    return out
