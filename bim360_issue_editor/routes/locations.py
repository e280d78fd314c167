"""
Location tree endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..integrations import BIM360Client
from ..models import Location
from ..sync import paginate
from ..sync.loaders import DEFAULT_BROWSE_LIMIT
from .deps import get_user_client

router = APIRouter(prefix="/api/locations", tags=["locations"])


@router.get("/{location_container}")
async def list_locations(
    location_container: str,
    offset: Optional[int] = Query(default=None, ge=0),
    limit: Optional[int] = Query(default=None, ge=1),
    client: BIM360Client = Depends(get_user_client),
) -> List[Location]:
    """List nodes of the default location tree, all of them or one page."""
    if offset is None and limit is None:
        return await paginate(
            lambda page_offset, page_limit: client.list_location_nodes(
                location_container, page_offset, page_limit
            ),
            collection="locations",
        )
    return await client.list_location_nodes(
        location_container,
        offset if offset is not None else 0,
        limit if limit is not None else DEFAULT_BROWSE_LIMIT,
    )
