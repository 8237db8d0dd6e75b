"""
api/routes/v1/groups.py -- Group-scoped authorization queries.

Routes:
  GET /api/v1/groups/available-locations?prefix=...        -- locations the caller may act on
  GET /api/v1/groups/admin-groups-by-location?location=... -- groups of a location the caller manages
  GET /api/v1/groups/{group_id}/members                    -- members of a group

All three require a valid session. An empty result is a normal 200 answer:
"no qualifying access" is not an error.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import GroupMemberResponse, GroupResponse, GroupsResponse, LocationsResponse
from auth.dependencies import get_authorizer, get_current_user, get_store
from auth.errors import NotFound
from auth.models import User

router = APIRouter()


@router.get("/groups/available-locations", response_model=LocationsResponse)
def available_locations(request: Request, prefix: str = "") -> LocationsResponse:
    """Locations reachable through the caller's memberships under prefix.

    Under "Gestion.Groupes." only admin memberships count.
    """
    locations = get_authorizer(request).authorized_locations(request.cookies, prefix)
    return LocationsResponse(locations=locations)


@router.get("/groups/admin-groups-by-location", response_model=GroupsResponse)
def admin_groups_by_location(request: Request, location: Optional[str] = None) -> GroupsResponse:
    groups = get_authorizer(request).manageable_groups(request.cookies, location)
    return GroupsResponse(
        groups=[
            GroupResponse(
                id=g.id,
                group_name=g.group_name,
                description=g.description,
                location_id=g.location_id,
                owner_id=g.owner_id,
            )
            for g in groups
        ]
    )


@router.get("/groups/{group_id}/members", response_model=list[GroupMemberResponse])
def group_members(
    request: Request,
    group_id: int,
    current_user: User = Depends(get_current_user),
) -> list[GroupMemberResponse]:
    store = get_store(request)
    if store.get_group(group_id) is None:
        raise NotFound("Unknown group.")
    return [
        GroupMemberResponse(id=u.id, first_name=u.first_name, last_name=u.last_name, is_admin=is_admin)
        for u, is_admin in store.list_group_members(group_id)
    ]
