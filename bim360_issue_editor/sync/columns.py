"""
Column layout of the exported workbook.

The Issues sheet layout is shared by the exporter (how each issue property is
rendered, locked and validated) and the importer (which columns are editable
and how each is read back).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..models import AttributeDefinition


class CellKind(str, Enum):
    """How a column's cells are encoded."""

    TEXT = "text"
    NUMBER = "number"
    DATETIME = "datetime"
    TYPE = "type"
    USER = "user"
    LOCATION = "location"
    DOCUMENT = "document"
    STATUS = "status"
    ASSIGNEE_TYPE = "assignee_type"
    CUSTOM = "custom"


ISSUES_SHEET = "Issues"
TYPES_SHEET = "Types"
OWNERS_SHEET = "Owners"
LOCATIONS_SHEET = "Locations"
DOCUMENTS_SHEET = "Documents"

REFERENCE_HEADER = "Reference"


@dataclass(frozen=True)
class IssueColumn:
    key: str
    header: str
    width: int
    kind: CellKind = CellKind.TEXT
    prop: Optional[str] = None
    locked: bool = False
    # Sheet whose reference column restricts this column's values
    source_sheet: Optional[str] = None

    @property
    def editable(self) -> bool:
        return not self.locked


ISSUE_COLUMNS: List[IssueColumn] = [
    IssueColumn("id", "ID", 40, prop="id", locked=True),
    IssueColumn("number", "#", 8, CellKind.NUMBER, prop="identifier", locked=True),
    IssueColumn("type", "Type", 32, CellKind.TYPE, prop="ng_issue_subtype_id", source_sheet=TYPES_SHEET),
    IssueColumn("title", "Title", 32, prop="title"),
    IssueColumn("description", "Description", 32, prop="description"),
    IssueColumn("created_by", "Created By", 24, CellKind.USER, prop="created_by", locked=True),
    IssueColumn("updated_by", "Updated By", 24, CellKind.USER, prop="updated_by", locked=True),
    IssueColumn("assigned_to", "Assigned To", 24, CellKind.USER, prop="assigned_to"),
    IssueColumn("assigned_to_type", "Assignee Type", 12, CellKind.ASSIGNEE_TYPE, prop="assigned_to_type"),
    IssueColumn("owner", "Owner", 24, CellKind.USER, prop="owner", source_sheet=OWNERS_SHEET),
    IssueColumn("created_at", "Created On", 20, CellKind.DATETIME, prop="created_at", locked=True),
    IssueColumn("updated_at", "Updated On", 20, CellKind.DATETIME, prop="updated_at", locked=True),
    IssueColumn("due_date", "Due Date", 20, CellKind.DATETIME, prop="due_date"),
    IssueColumn("location", "Location", 24, CellKind.LOCATION, prop="lbs_location", source_sheet=LOCATIONS_SHEET),
    IssueColumn("location_details", "Location Details", 24, prop="location_description"),
    IssueColumn("document", "Document", 32, CellKind.DOCUMENT, prop="target_urn", source_sheet=DOCUMENTS_SHEET),
    IssueColumn("status", "Status", 16, CellKind.STATUS, prop="status"),
    IssueColumn("answer", "Answer", 32, prop="answer"),
    IssueColumn("comments", "Comments", 10, CellKind.NUMBER, prop="comment_count", locked=True),
    IssueColumn("attachments", "Attachments", 10, CellKind.NUMBER, prop="attachment_count", locked=True),
]


def custom_attribute_columns(definitions: List[AttributeDefinition]) -> List[IssueColumn]:
    """One trailing column per custom attribute, keyed by the definition id."""
    return [
        IssueColumn(definition.id, definition.title, 24, CellKind.CUSTOM)
        for definition in definitions
    ]


def issue_columns(definitions: List[AttributeDefinition]) -> List[IssueColumn]:
    return ISSUE_COLUMNS + custom_attribute_columns(definitions)


# Column (1-based) of each reference sheet holding the composite labels
REFERENCE_COLUMNS = {
    TYPES_SHEET: 5,
    OWNERS_SHEET: 3,
    LOCATIONS_SHEET: 5,
    DOCUMENTS_SHEET: 4,
}
