"""
API routers.
"""

from .docs import router as docs_router
from .hubs import router as hubs_router
from .issues import router as issues_router
from .locations import router as locations_router
from .spreadsheets import router as spreadsheets_router
from .users import router as users_router

__all__ = [
    "docs_router",
    "hubs_router",
    "issues_router",
    "locations_router",
    "spreadsheets_router",
    "users_router",
]
