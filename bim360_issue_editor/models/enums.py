"""
Canonical enums for BIM360 issue data.
"""

from enum import Enum


class IssueStatus(str, Enum):
    """Issue workflow states accepted by the issues API."""

    VOID = "void"
    DRAFT = "draft"
    OPEN = "open"
    ANSWERED = "answered"
    WORK_COMPLETED = "work_completed"
    READY_TO_INSPECT = "ready_to_inspect"
    IN_DISPUTE = "in_dispute"
    NOT_APPROVED = "not_approved"
    CLOSED = "closed"


# Statuses known to the first generation of the issues schema
LEGACY_STATUSES = (
    IssueStatus.VOID,
    IssueStatus.DRAFT,
    IssueStatus.OPEN,
    IssueStatus.CLOSED,
)


class AssigneeType(str, Enum):
    """Kinds of principal an issue can be assigned to."""

    USER = "user"
    COMPANY = "company"
    ROLE = "role"


class AttributeType(str, Enum):
    """Custom attribute data types."""

    LIST = "list"
    TEXT = "text"
    PARAGRAPH = "paragraph"
    NUMERIC = "numeric"


class UsersScope(str, Enum):
    """Where user listings come from."""

    ACCOUNT = "account"
    PROJECT = "project"


class DocumentSource(str, Enum):
    """How export discovers linked documents."""

    ISSUES = "issues"
    FOLDERS = "folders"
