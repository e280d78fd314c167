"""
Hub and project browsing endpoints.

These back the pages where the signed-in user picks a BIM360 account and
a project; the project answer carries the container ids the issue, location
and spreadsheet endpoints need.
"""

import asyncio
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..integrations import BIM360Client
from ..models import Hub, Project
from ..models.project import BIM360_HUB_PREFIX
from .deps import get_user_client

router = APIRouter(prefix="/api/hubs", tags=["hubs"])


class HubDetails(BaseModel):
    hub: Hub
    projects: List[Project]


class ProjectDetails(BaseModel):
    hub: Hub
    project: Project
    account_id: str


@router.get("")
async def list_hubs(client: BIM360Client = Depends(get_user_client)) -> List[Hub]:
    """List the BIM360 hubs the user can access."""
    hubs = await client.list_hubs()
    return [hub for hub in hubs if hub.is_bim360]


@router.get("/{hub_id}")
async def get_hub(hub_id: str, client: BIM360Client = Depends(get_user_client)) -> HubDetails:
    hub, projects = await asyncio.gather(client.get_hub(hub_id), client.list_projects(hub_id))
    return HubDetails(hub=hub, projects=projects)


@router.get("/{hub_id}/projects/{project_id}")
async def get_project(
    hub_id: str,
    project_id: str,
    client: BIM360Client = Depends(get_user_client),
) -> ProjectDetails:
    hub, project = await asyncio.gather(
        client.get_hub(hub_id), client.get_project(hub_id, project_id)
    )
    return ProjectDetails(
        hub=hub,
        project=project,
        account_id=hub_id.removeprefix(BIM360_HUB_PREFIX),
    )
