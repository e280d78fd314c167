"""
Spreadsheet export and import endpoints.

Export streams an xlsx workbook for one project; import takes the edited
workbook as the raw request body and answers with the import ledger.
"""

from typing import Optional
from zipfile import BadZipFile

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from openpyxl.utils.exceptions import InvalidFileException

from ..config import Settings, get_settings
from ..integrations import BIM360Client
from ..models import ImportResult
from ..sync import ExportOptions, export_issues, import_issues
from ..sync.exporter import LAST_ROW
from .deps import get_optional_app_client, get_user_client

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["spreadsheets"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/export/{hub_id}/{project_id}")
async def export_spreadsheet(
    hub_id: str,
    project_id: str,
    issue_container: Optional[str] = None,
    location_container: Optional[str] = None,
    offset: Optional[int] = Query(default=None, ge=0),
    limit: Optional[int] = Query(default=None, ge=1),
    legacy_statuses: Optional[bool] = None,
    client: BIM360Client = Depends(get_user_client),
    app_client: Optional[BIM360Client] = Depends(get_optional_app_client),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Export the project's issues as an xlsx workbook.

    Container ids are looked up from the project when not given.
    ``legacy_statuses`` overrides the configured status list.
    """
    if issue_container is None:
        issue_container, discovered_location = await client.get_project_containers(
            hub_id, project_id
        )
        location_container = location_container or discovered_location
    if not issue_container:
        raise HTTPException(status_code=404, detail="Project has no issue container")

    options = ExportOptions(
        hub_id=hub_id,
        project_id=project_id,
        issue_container_id=issue_container,
        location_container_id=location_container,
        page_offset=offset,
        page_limit=limit,
        users_scope=settings.users_scope,
        document_source=settings.document_source,
        page_size=settings.page_size,
        document_chunk_size=settings.document_chunk_size,
        max_rate_limit_retries=settings.max_rate_limit_retries,
        location_path_separator=settings.location_path_separator,
        protect_sheets=settings.protect_sheets,
        legacy_statuses=settings.legacy_statuses if legacy_statuses is None else legacy_statuses,
    )
    content = await export_issues(options, client, app_client)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="issues-{project_id}.xlsx"'},
    )


@router.post("/import/{issue_container}")
async def import_spreadsheet(
    issue_container: str,
    request: Request,
    sequential: bool = False,
    from_row: Optional[int] = Query(default=None, ge=2),
    to_row: Optional[int] = Query(default=None, ge=2),
    client: BIM360Client = Depends(get_user_client),
    settings: Settings = Depends(get_settings),
) -> ImportResult:
    """Apply an edited workbook sent as the raw request body."""
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Request body must contain an xlsx workbook")

    row_range = None
    if from_row is not None or to_row is not None:
        row_range = (from_row or 2, to_row or LAST_ROW)
    try:
        return await import_issues(
            data,
            issue_container,
            client,
            sequential=sequential,
            row_range=row_range,
            page_size=settings.page_size,
        )
    except (BadZipFile, InvalidFileException) as e:
        logger.warning("import_rejected", issue_container=issue_container, error=str(e))
        raise HTTPException(status_code=400, detail="Request body is not an xlsx workbook")
