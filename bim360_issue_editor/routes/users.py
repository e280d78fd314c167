"""
User listing endpoints. Both require app-context credentials.
"""

from typing import List

from fastapi import APIRouter, Depends

from ..config import Settings, get_settings
from ..integrations import BIM360Client
from ..models import User, UsersScope
from ..sync import load_users
from .deps import get_app_client

router = APIRouter(prefix="/api", tags=["users"])


@router.get("/users/{project_id}")
async def list_project_users(
    project_id: str,
    client: BIM360Client = Depends(get_app_client),
    settings: Settings = Depends(get_settings),
) -> List[User]:
    return await load_users(
        client, project_id=project_id, scope=UsersScope.PROJECT, page_size=settings.page_size
    )


@router.get("/account/{account_id}/users")
async def list_account_users(
    account_id: str,
    client: BIM360Client = Depends(get_app_client),
    settings: Settings = Depends(get_settings),
) -> List[User]:
    return await load_users(
        client, account_id=account_id, scope=UsersScope.ACCOUNT, page_size=settings.page_size
    )
