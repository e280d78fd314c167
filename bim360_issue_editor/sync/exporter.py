"""
Spreadsheet export of BIM360 issues.

Builds a workbook with an Issues sheet and four reference sheets (Types,
Owners, Locations, Documents). Cross-references in the Issues sheet are
composite "Name [ID]" cells whose allowed values come from the reference
column of the matching sheet, enforced with data validation.

Export only reads from the remote service.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog
from openpyxl import Workbook
from openpyxl.styles import Font, Protection
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation
from openpyxl.worksheet.worksheet import Worksheet
from pydantic import BaseModel

from ..integrations.bim360 import BIM360Client
from ..models import (
    AssigneeType,
    AttributeDefinition,
    AttributeType,
    Document,
    DocumentSource,
    Issue,
    IssueStatus,
    IssueType,
    LEGACY_STATUSES,
    Location,
    User,
    UsersScope,
)
from .cells import encode_reference, format_datetime
from .columns import (
    DOCUMENTS_SHEET,
    ISSUES_SHEET,
    LOCATIONS_SHEET,
    OWNERS_SHEET,
    REFERENCE_COLUMNS,
    REFERENCE_HEADER,
    TYPES_SHEET,
    CellKind,
    IssueColumn,
    issue_columns,
)
from .loaders import (
    DEFAULT_PAGE_SIZE,
    DOCUMENT_CHUNK_SIZE,
    MAX_RATE_LIMIT_RETRIES,
    load_attribute_definitions,
    load_documents_by_ids,
    load_documents_from_folders,
    load_issue_types,
    load_issues,
    load_locations,
    load_users,
)
from .locations import resolve_location_paths

logger = structlog.get_logger()

WORKBOOK_CREATOR = "bim360-issue-editor"
LAST_ROW = 1048576
# Excel refuses inline validation lists longer than this
MAX_INLINE_LIST_LENGTH = 255


class ExportOptions(BaseModel):
    """What to export and how to discover its reference data."""

    hub_id: str
    project_id: str
    issue_container_id: str
    location_container_id: Optional[str] = None
    page_offset: Optional[int] = None
    page_limit: Optional[int] = None
    users_scope: UsersScope = UsersScope.ACCOUNT
    document_source: DocumentSource = DocumentSource.ISSUES
    page_size: int = DEFAULT_PAGE_SIZE
    document_chunk_size: int = DOCUMENT_CHUNK_SIZE
    max_rate_limit_retries: int = MAX_RATE_LIMIT_RETRIES
    location_path_separator: str = " > "
    protect_sheets: bool = False
    legacy_statuses: bool = False


@dataclass
class ExportData:
    """Everything fetched for one export."""

    issues: List[Issue]
    types: List[IssueType] = field(default_factory=list)
    users: List[User] = field(default_factory=list)
    locations: List[Location] = field(default_factory=list)
    definitions: List[AttributeDefinition] = field(default_factory=list)
    documents: List[Document] = field(default_factory=list)


async def load_export_data(
    options: ExportOptions,
    user_client: BIM360Client,
    app_client: Optional[BIM360Client] = None,
) -> ExportData:
    """Fetch issues and reference data concurrently.

    User listings go through the app-context client when one is given.
    Documents referenced by issues can only be resolved once the issues are
    known, so that lookup runs after the concurrent batch.
    """
    users_client = app_client or user_client
    loads = [
        load_issues(
            user_client,
            options.issue_container_id,
            offset=options.page_offset,
            limit=options.page_limit,
            page_size=options.page_size,
        ),
        load_issue_types(user_client, options.issue_container_id),
        load_users(
            users_client,
            account_id=options.hub_id,
            project_id=options.project_id,
            scope=options.users_scope,
            page_size=options.page_size,
        ),
        load_locations(user_client, options.location_container_id, options.page_size),
        load_attribute_definitions(user_client, options.issue_container_id),
    ]
    if options.document_source == DocumentSource.FOLDERS:
        loads.append(load_documents_from_folders(user_client, options.hub_id, options.project_id))

    results = await asyncio.gather(*loads)
    issues, types, users, locations, definitions = results[:5]
    if options.document_source == DocumentSource.FOLDERS:
        documents = results[5]
    else:
        documents = await load_documents_by_ids(
            user_client,
            options.project_id,
            [issue.target_urn for issue in issues if issue.target_urn],
            chunk_size=options.document_chunk_size,
            max_retries=options.max_rate_limit_retries,
        )
    return ExportData(
        issues=issues,
        types=types,
        users=users,
        locations=locations,
        definitions=definitions,
        documents=documents,
    )


async def export_issues(
    options: ExportOptions,
    user_client: BIM360Client,
    app_client: Optional[BIM360Client] = None,
) -> bytes:
    """Fetch everything and return the serialized xlsx workbook."""
    logger.info(
        "export_start",
        project_id=options.project_id,
        issue_container_id=options.issue_container_id,
    )
    data = await load_export_data(options, user_client, app_client)
    logger.info(
        "export_data_loaded",
        issues=len(data.issues),
        types=len(data.types),
        users=len(data.users),
        locations=len(data.locations),
        documents=len(data.documents),
    )
    workbook = build_workbook(
        data,
        location_path_separator=options.location_path_separator,
        protect_sheets=options.protect_sheets,
        legacy_statuses=options.legacy_statuses,
    )
    return workbook_to_bytes(workbook)


def workbook_to_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_workbook(
    data: ExportData,
    location_path_separator: str = " > ",
    protect_sheets: bool = False,
    legacy_statuses: bool = False,
) -> Workbook:
    """Lay out the five sheets for already loaded data."""
    workbook = Workbook()
    workbook.remove(workbook.active)
    workbook.properties.creator = WORKBOOK_CREATOR

    reference_rows = {
        TYPES_SHEET: sum(len(issue_type.subtypes) for issue_type in data.types),
        OWNERS_SHEET: len(data.users),
        LOCATIONS_SHEET: len(data.locations),
        DOCUMENTS_SHEET: len(data.documents),
    }
    fill_issues(
        workbook.create_sheet(ISSUES_SHEET),
        data,
        reference_rows,
        statuses=LEGACY_STATUSES if legacy_statuses else tuple(IssueStatus),
    )
    fill_types(workbook.create_sheet(TYPES_SHEET), data.types)
    fill_owners(workbook.create_sheet(OWNERS_SHEET), data.users)
    fill_locations(workbook.create_sheet(LOCATIONS_SHEET), data.locations, location_path_separator)
    fill_documents(workbook.create_sheet(DOCUMENTS_SHEET), data.documents)

    if protect_sheets:
        for worksheet in workbook.worksheets:
            worksheet.protection.sheet = True
    return workbook


class IssueFormatter:
    """Renders issue properties into cell values using the loaded reference data."""

    def __init__(self, data: ExportData):
        self.subtypes = {
            subtype.id: (issue_type, subtype)
            for issue_type in data.types
            for subtype in issue_type.subtypes
        }
        self.users = {user.id: user for user in data.users}
        self.locations = {location.id: location for location in data.locations}
        self.documents = {document.id: document for document in data.documents}
        self.definitions = {definition.id: definition for definition in data.definitions}
        self._formatters: Dict[CellKind, Callable[[Any], Any]] = {
            CellKind.TYPE: self.format_type,
            CellKind.USER: self.format_user,
            CellKind.LOCATION: self.format_location,
            CellKind.DOCUMENT: self.format_document,
            CellKind.DATETIME: format_datetime,
        }

    def format_type(self, subtype_id: Optional[str]) -> Any:
        match = self.subtypes.get(subtype_id) if subtype_id else None
        if not match:
            return ""
        issue_type, subtype = match
        return encode_reference(
            f"{issue_type.title} > {subtype.title}", issue_type.id, subtype.id
        )

    def format_user(self, user_id: Optional[str]) -> Any:
        user = self.users.get(user_id) if user_id else None
        return encode_reference(user.name, user.id) if user else ""

    def format_location(self, location_id: Optional[str]) -> Any:
        location = self.locations.get(location_id) if location_id else None
        return encode_reference(location.name, location.id) if location else ""

    def format_document(self, document_id: Optional[str]) -> Any:
        document = self.documents.get(document_id) if document_id else None
        return encode_reference(document.display_name, document.id) if document else ""

    def format_custom(self, issue: Issue, attribute_id: str) -> Any:
        value = issue.custom_attribute_values().get(attribute_id)
        definition = self.definitions.get(attribute_id)
        if definition is not None and definition.type == AttributeType.LIST.value and value:
            # Options missing from the definition are written as their raw id
            return definition.option_value(value) or value
        return value

    def cell_value(self, issue: Issue, column: IssueColumn) -> Any:
        if column.kind == CellKind.CUSTOM:
            return self.format_custom(issue, column.key)
        raw = getattr(issue, column.prop)
        formatter = self._formatters.get(column.kind)
        if formatter:
            return formatter(raw)
        return raw


def fill_issues(
    worksheet: Worksheet,
    data: ExportData,
    reference_rows: Dict[str, int],
    statuses: Sequence[IssueStatus] = tuple(IssueStatus),
) -> None:
    columns = issue_columns(data.definitions)
    formatter = IssueFormatter(data)

    _write_header(worksheet, [(column.header, column.width) for column in columns])
    for issue in data.issues:
        worksheet.append([formatter.cell_value(issue, column) for column in columns])

    for index, column in enumerate(columns, start=1):
        _protect_column(worksheet, index, column.locked)
        validation = _column_validation(column, data, reference_rows, statuses)
        if validation is not None:
            letter = get_column_letter(index)
            worksheet.add_data_validation(validation)
            validation.add(f"{letter}2:{letter}{LAST_ROW}")


def _column_validation(
    column: IssueColumn,
    data: ExportData,
    reference_rows: Dict[str, int],
    statuses: Sequence[IssueStatus],
) -> Optional[DataValidation]:
    if column.locked:
        return None
    if column.kind == CellKind.STATUS:
        return _list_validation([status.value for status in statuses])
    if column.kind == CellKind.ASSIGNEE_TYPE:
        return _list_validation([kind.value for kind in AssigneeType])
    if column.source_sheet:
        letter = get_column_letter(REFERENCE_COLUMNS[column.source_sheet])
        last = max(reference_rows.get(column.source_sheet, 0) + 1, 2)
        return DataValidation(
            type="list",
            formula1=f"{column.source_sheet}!${letter}$2:${letter}${last}",
            allow_blank=True,
        )
    if column.kind == CellKind.CUSTOM:
        definition = next((d for d in data.definitions if d.id == column.key), None)
        if definition is not None and definition.type == AttributeType.LIST.value:
            values = [option.value for option in definition.options]
            if values and not any("," in value for value in values):
                return _list_validation(values)
    return None


def _list_validation(values: List[str]) -> Optional[DataValidation]:
    literal = ",".join(values)
    if len(literal) > MAX_INLINE_LIST_LENGTH:
        return None
    return DataValidation(type="list", formula1=f'"{literal}"', allow_blank=True)


def fill_types(worksheet: Worksheet, issue_types: List[IssueType]) -> None:
    _write_header(
        worksheet,
        [("Type ID", 16), ("Type Name", 32), ("Subtype ID", 16), ("Subtype Name", 32), (REFERENCE_HEADER, 64)],
    )
    for issue_type in issue_types:
        for subtype in issue_type.subtypes:
            worksheet.append(
                [
                    issue_type.id,
                    issue_type.title,
                    subtype.id,
                    subtype.title,
                    encode_reference(f"{issue_type.title} > {subtype.title}", issue_type.id, subtype.id),
                ]
            )
    _protect_sheet_columns(worksheet)


def fill_owners(worksheet: Worksheet, users: List[User]) -> None:
    _write_header(worksheet, [("User ID", 16), ("User Name", 32), (REFERENCE_HEADER, 64)])
    for user in users:
        worksheet.append([user.id, user.name, encode_reference(user.name, user.id)])
    _protect_sheet_columns(worksheet)


def fill_locations(worksheet: Worksheet, locations: List[Location], separator: str = " > ") -> None:
    _write_header(
        worksheet,
        [("Location ID", 16), ("Parent ID", 16), ("Location Name", 32), ("Location Path", 48), (REFERENCE_HEADER, 64)],
    )
    paths = resolve_location_paths(locations, separator)
    for location in locations:
        worksheet.append(
            [
                location.id,
                location.parent_id,
                location.name,
                paths[location.id].path,
                encode_reference(location.name, location.id),
            ]
        )
    _protect_sheet_columns(worksheet)


def fill_documents(worksheet: Worksheet, documents: List[Document]) -> None:
    _write_header(
        worksheet,
        [("Document ID", 16), ("Document Name", 32), ("Path In Project", 48), (REFERENCE_HEADER, 64)],
    )
    for document in documents:
        worksheet.append(
            [
                document.id,
                document.display_name,
                document.path_in_project,
                encode_reference(document.display_name, document.id),
            ]
        )
    _protect_sheet_columns(worksheet)


def _write_header(worksheet: Worksheet, columns: List[tuple]) -> None:
    worksheet.append([header for header, _ in columns])
    for index, (_, width) in enumerate(columns, start=1):
        worksheet.column_dimensions[get_column_letter(index)].width = width
        header = worksheet.cell(row=1, column=index)
        header.font = Font(bold=True)
        header.protection = Protection(locked=True)
    worksheet.freeze_panes = "A2"


def _protect_column(worksheet: Worksheet, index: int, locked: bool) -> None:
    for (cell,) in worksheet.iter_rows(min_row=2, min_col=index, max_col=index):
        cell.protection = Protection(locked=locked)


def _protect_sheet_columns(worksheet: Worksheet) -> None:
    """Reference sheets are read-only."""
    for row in worksheet.iter_rows():
        for cell in row:
            cell.protection = Protection(locked=True)
