"""
Issue browsing endpoints.

All endpoints are prefixed with /api/issues and act on behalf of the
signed-in user.
"""

import mimetypes
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response

from ..integrations import BIM360Client
from ..models import (
    AttributeDefinition,
    Issue,
    IssueAttachment,
    IssueComment,
    IssueFilters,
    IssueType,
)
from ..sync import load_attribute_definitions, load_issue_types, load_issues
from .deps import get_user_client

router = APIRouter(prefix="/api/issues", tags=["issues"])


@router.get("/{issue_container}")
async def list_issues(
    issue_container: str,
    due_date: Optional[str] = None,
    synced_after: Optional[str] = None,
    created_at: Optional[str] = None,
    created_by: Optional[str] = None,
    owner: Optional[str] = None,
    ng_issue_type_id: Optional[str] = None,
    ng_issue_subtype_id: Optional[str] = None,
    offset: Optional[int] = Query(default=None, ge=0),
    limit: Optional[int] = Query(default=None, ge=1),
    client: BIM360Client = Depends(get_user_client),
) -> List[Issue]:
    """List issues matching the filters.

    Without offset and limit every matching issue is returned.
    """
    filters = IssueFilters(
        due_date=due_date,
        synced_after=synced_after,
        created_at=created_at,
        created_by=created_by,
        owner=owner,
        ng_issue_type_id=ng_issue_type_id,
        ng_issue_subtype_id=ng_issue_subtype_id,
    )
    return await load_issues(client, issue_container, filters, offset=offset, limit=limit)


@router.get("/{issue_container}/issue-types")
async def list_issue_types(
    issue_container: str,
    client: BIM360Client = Depends(get_user_client),
) -> List[IssueType]:
    return await load_issue_types(client, issue_container)


@router.get("/{issue_container}/attr-definitions")
async def list_attribute_definitions(
    issue_container: str,
    client: BIM360Client = Depends(get_user_client),
) -> List[AttributeDefinition]:
    return await load_attribute_definitions(client, issue_container)


@router.patch("/{issue_container}/{issue_id}")
async def update_issue(
    issue_container: str,
    issue_id: str,
    attributes: Dict[str, Any] = Body(...),
    client: BIM360Client = Depends(get_user_client),
) -> Issue:
    """Patch an issue with the given attributes as-is."""
    return await client.update_issue(issue_container, issue_id, attributes)


@router.get("/{issue_container}/root-causes")
async def list_root_causes(
    issue_container: str,
    client: BIM360Client = Depends(get_user_client),
) -> List[Dict[str, Any]]:
    return await client.list_root_causes(issue_container)


@router.get("/{issue_container}/attr-mappings")
async def list_attribute_mappings(
    issue_container: str,
    client: BIM360Client = Depends(get_user_client),
) -> List[Dict[str, Any]]:
    return await client.list_attribute_mappings(issue_container)


@router.get("/{issue_container}/{issue_id}/comments")
async def list_comments(
    issue_container: str,
    issue_id: str,
    client: BIM360Client = Depends(get_user_client),
) -> List[IssueComment]:
    return await client.list_issue_comments(issue_container, issue_id)


@router.get("/{issue_container}/{issue_id}/attachments")
async def list_attachments(
    issue_container: str,
    issue_id: str,
    client: BIM360Client = Depends(get_user_client),
) -> List[IssueAttachment]:
    return await client.list_issue_attachments(issue_container, issue_id)


@router.get("/{issue_container}/{issue_id}/attachments/{attachment_id}")
async def download_attachment(
    issue_container: str,
    issue_id: str,
    attachment_id: str,
    client: BIM360Client = Depends(get_user_client),
) -> Response:
    """Stream the content of one attachment of an issue."""
    attachments = await client.list_issue_attachments(issue_container, issue_id)
    attachment = next((a for a in attachments if a.id == attachment_id), None)
    if attachment is None or not attachment.url:
        raise HTTPException(status_code=404, detail="Attachment not found")

    download = await client.download(attachment.url)
    media_type = (
        mimetypes.guess_type(attachment.name or attachment.url)[0]
        or download.headers.get("content-type")
        or "application/octet-stream"
    )
    headers = {}
    if attachment.name:
        headers["Content-Disposition"] = f'inline; filename="{attachment.name}"'
    return Response(content=download.content, media_type=media_type, headers=headers)
