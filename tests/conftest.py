"""Test configuration and fixtures."""

from io import BytesIO
from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from openpyxl import load_workbook

from bim360_issue_editor.integrations import BIM360Client
from bim360_issue_editor.models import (
    AttributeDefinition,
    Document,
    Issue,
    IssueSubtype,
    IssueType,
    Location,
    User,
)
from bim360_issue_editor.sync.columns import ISSUE_COLUMNS, ISSUES_SHEET
from bim360_issue_editor.sync.exporter import ExportData, build_workbook, workbook_to_bytes

CONTAINER_ID = "container-1"


def make_issue(**overrides) -> Issue:
    """Create an issue with optional overrides."""
    defaults: Dict[str, Any] = {
        "id": "issue-1",
        "identifier": 1,
        "title": "Cracked tile",
        "description": "Lobby floor",
        "status": "open",
        "owner": "U1",
        "created_by": "U1",
        "updated_by": "U2",
        "assigned_to": "U2",
        "assigned_to_type": "user",
        "ng_issue_type_id": "T1",
        "ng_issue_subtype_id": "S1",
        "lbs_location": "L2",
        "location_description": "Near the door",
        "target_urn": "urn:item:1",
        "answer": None,
        "comment_count": 2,
        "attachment_count": 0,
        "created_at": "2024-03-01T09:30:00.000Z",
        "updated_at": "2024-03-02T10:00:00.000Z",
        "due_date": "2024-05-01T00:00:00.000Z",
        "custom_attributes": [
            {"id": "A1", "type": "list", "title": "Trade", "value": "opt-2"},
            {"id": "A2", "type": "text", "title": "Notes", "value": "check grout"},
        ],
        "permitted_attributes": [
            "title",
            "description",
            "status",
            "owner",
            "assigned_to",
            "assigned_to_type",
            "due_date",
            "ng_issue_type_id",
            "ng_issue_subtype_id",
            "lbs_location",
            "location_description",
            "target_urn",
            "answer",
            "custom_attributes",
        ],
    }
    defaults.update(overrides)
    return Issue.model_validate(defaults)


@pytest.fixture
def issue_types() -> List[IssueType]:
    return [
        IssueType(
            id="T1",
            title="Quality",
            subtypes=[IssueSubtype(id="S1", title="Finishes"), IssueSubtype(id="S2", title="Structure")],
        ),
        IssueType(id="T2", title="Safety", subtypes=[IssueSubtype(id="S3", title="Fall hazard")]),
    ]


@pytest.fixture
def users() -> List[User]:
    return [User(id="U1", name="Ada Lovelace"), User(id="U2", name="Grace Hopper")]


@pytest.fixture
def locations() -> List[Location]:
    return [
        Location(id="L1", parent_id=None, name="Building A"),
        Location(id="L2", parent_id="L1", name="Level 1"),
        Location(id="L3", parent_id="L2", name="Lobby"),
    ]


@pytest.fixture
def definitions() -> List[AttributeDefinition]:
    return [
        AttributeDefinition.model_validate(
            {
                "id": "A1",
                "title": "Trade",
                "data_type": "list",
                "metadata": {
                    "list": {
                        "options": [
                            {"id": "opt-1", "value": "Electrical"},
                            {"id": "opt-2", "value": "Tiling"},
                        ]
                    }
                },
            }
        ),
        AttributeDefinition.model_validate({"id": "A2", "title": "Notes", "data_type": "text"}),
    ]


@pytest.fixture
def documents() -> List[Document]:
    return [Document(id="urn:item:1", display_name="A-101.pdf", path_in_project="/Plans/A-101.pdf")]


@pytest.fixture
def issues() -> List[Issue]:
    return [
        make_issue(),
        make_issue(
            id="issue-2",
            identifier=2,
            title="Missing rail",
            status="draft",
            ng_issue_type_id="T2",
            ng_issue_subtype_id="S3",
            lbs_location="L3",
            target_urn=None,
            due_date=None,
            custom_attributes=[],
            permitted_attributes=["title", "description"],
        ),
    ]


@pytest.fixture
def export_data(issues, issue_types, users, locations, definitions, documents) -> ExportData:
    return ExportData(
        issues=issues,
        types=issue_types,
        users=users,
        locations=locations,
        definitions=definitions,
        documents=documents,
    )


@pytest.fixture
def exported_workbook(export_data) -> bytes:
    """Serialized workbook as a user would download it."""
    return workbook_to_bytes(build_workbook(export_data))


def paged(records: List[Any]):
    """Side effect serving ``records`` by offset and limit."""

    async def fetch(container_id, filters=None, offset=0, limit=128):
        return records[offset : offset + limit]

    return fetch


@pytest.fixture
def client(issues, definitions) -> MagicMock:
    """BIM360 client double backed by an in-memory issue store.

    Updates and creates are applied to the store so later reads see them.
    """
    store = {issue.id: issue for issue in issues}
    mock = MagicMock(spec=BIM360Client)
    mock.store = store

    async def list_issues(container_id, filters=None, offset=0, limit=128):
        return list(store.values())[offset : offset + limit]

    async def update_issue(container_id, issue_id, attributes):
        updated = Issue.model_validate({**store[issue_id].model_dump(), **attributes})
        store[issue_id] = updated
        return updated

    async def create_issue(container_id, attributes):
        number = len(store) + 100
        created = Issue.model_validate({**attributes, "id": f"new-{number}", "identifier": number})
        store[created.id] = created
        return created

    mock.list_issues = AsyncMock(side_effect=list_issues)
    mock.update_issue = AsyncMock(side_effect=update_issue)
    mock.create_issue = AsyncMock(side_effect=create_issue)
    mock.list_attribute_definitions = AsyncMock(return_value=definitions)
    return mock


def edit_workbook(data: bytes, edits: Dict[tuple, Any]) -> bytes:
    """Apply ``{(row, header): value}`` edits to the Issues sheet."""
    workbook = load_workbook(BytesIO(data), rich_text=True)
    sheet = workbook[ISSUES_SHEET]
    headers = [cell.value for cell in sheet[1]]
    for (row, header), value in edits.items():
        sheet.cell(row=row, column=headers.index(header) + 1, value=value)
    return workbook_to_bytes(workbook)


def header_of(key: str) -> str:
    return next(column.header for column in ISSUE_COLUMNS if column.key == key)
