"""
Document lookup endpoint.
"""

from fastapi import APIRouter, Depends

from ..integrations import BIM360Client
from ..models import Document
from .deps import get_user_client

router = APIRouter(prefix="/api/docs", tags=["docs"])


@router.get("/{project_id}/{item_id}")
async def get_document(
    project_id: str,
    item_id: str,
    client: BIM360Client = Depends(get_user_client),
) -> Document:
    """Resolve a document item (e.g. an issue's ``target_urn``) to its name and path."""
    return await client.get_item(project_id, item_id)
