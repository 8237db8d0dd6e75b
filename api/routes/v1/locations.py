"""
api/routes/v1/locations.py -- Location lookups.

Routes:
  GET /api/v1/locations         -- all location names, sorted (requires session)
  GET /api/v1/locations/{name}  -- one location by exact name (requires session)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import LocationResponse
from auth.dependencies import get_current_user, get_store
from auth.errors import NotFound
from auth.models import User

router = APIRouter()


@router.get("/locations", response_model=list[str])
def list_locations(request: Request, current_user: User = Depends(get_current_user)) -> list[str]:
    return [loc.name for loc in get_store(request).list_locations()]


@router.get("/locations/{name}", response_model=LocationResponse)
def get_location(request: Request, name: str, current_user: User = Depends(get_current_user)) -> LocationResponse:
    location = get_store(request).get_location_by_name(name)
    if location is None:
        raise NotFound("Unknown location.")
    return LocationResponse(id=location.id, name=location.name)
