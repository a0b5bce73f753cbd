# paypals/routers/maps.py
# Place search for the transaction location picker.

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from paypals.models.user import User
from paypals.services import maps
from paypals.utils.responses import ok
from paypals.utils.security import get_current_user

log = logging.getLogger(__name__)

router = APIRouter()


def _place_out(p: dict) -> dict:
    loc = (p.get("geometry") or {}).get("location") or {}
    return {
        "place_id": p.get("place_id"),
        "name": p.get("name"),
        "formatted_address": p.get("formatted_address") or p.get("vicinity"),
        "lat": loc.get("lat"),
        "lng": loc.get("lng"),
        "rating": p.get("rating"),
    }


@router.get("/search")
def search_places(
    query: Optional[str] = Query(None),
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    radius: int = Query(maps.DEFAULT_RADIUS, ge=1, le=50000),
    type: str = Query(maps.DEFAULT_PLACE_TYPE),
    current_user: User = Depends(get_current_user),
):
    query = (query or "").strip()
    has_coords = lat is not None and lng is not None
    if not query and not has_coords:
        raise HTTPException(status_code=400, detail="Either query or lat/lng is required")

    try:
        if query:
            results = maps.text_search(query, radius=radius)
        else:
            results = maps.search_nearby(lat, lng, place_type=type, radius=radius)
    except maps.MapsNotConfigured:
        raise HTTPException(status_code=503, detail="Maps service is not configured")
    except maps.MapsError as e:
        log.warning("maps search failed: %s", e)
        raise HTTPException(status_code=502, detail="Maps service request failed")

    places = [_place_out(p) for p in results]
    return ok("Places retrieved successfully", {"places": places, "count": len(places)})
