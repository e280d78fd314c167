"""
Data model for BIM360 issues and the reference data around them.
"""

from .enums import (
    LEGACY_STATUSES,
    AssigneeType,
    AttributeType,
    DocumentSource,
    IssueStatus,
    UsersScope,
)
from .issue import CustomAttributeValue, Issue, IssueAttachment, IssueComment, IssueFilters
from .project import Hub, Project
from .reference import (
    AttributeDefinition,
    AttributeOption,
    Document,
    IssueSubtype,
    IssueType,
    Location,
    User,
)
from .results import ImportFailure, ImportResult, ImportSuccess

__all__ = [
    # Enums
    "AssigneeType",
    "AttributeType",
    "DocumentSource",
    "IssueStatus",
    "LEGACY_STATUSES",
    "UsersScope",
    # Issues
    "CustomAttributeValue",
    "Issue",
    "IssueAttachment",
    "IssueComment",
    "IssueFilters",
    # Projects
    "Hub",
    "Project",
    # Reference data
    "AttributeDefinition",
    "AttributeOption",
    "Document",
    "IssueSubtype",
    "IssueType",
    "Location",
    "User",
    # Results
    "ImportFailure",
    "ImportResult",
    "ImportSuccess",
]
