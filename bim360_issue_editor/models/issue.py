"""
Issue schema.

An issue is owned by the remote service; this system only reads snapshots and
submits partial updates, so every field except ``id`` is optional.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CustomAttributeValue(BaseModel):
    """Value of one custom attribute on an issue."""

    model_config = ConfigDict(extra="allow")

    id: str
    type: Optional[str] = None
    title: Optional[str] = None
    value: Any = None


class Issue(BaseModel):
    """Snapshot of a remote issue record."""

    model_config = ConfigDict(extra="allow")

    id: str
    identifier: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None

    # People
    owner: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    assigned_to: Optional[str] = None
    assigned_to_type: Optional[str] = None

    # Taxonomy
    ng_issue_type_id: Optional[str] = None
    ng_issue_subtype_id: Optional[str] = None

    # Placement
    lbs_location: Optional[str] = None
    location_description: Optional[str] = None
    target_urn: Optional[str] = None

    answer: Optional[str] = None
    comment_count: Optional[int] = None
    attachment_count: Optional[int] = None

    # Timestamps (raw ISO strings as returned by the service)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    due_date: Optional[str] = None

    custom_attributes: List[CustomAttributeValue] = Field(default_factory=list)
    permitted_attributes: List[str] = Field(default_factory=list)

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "Issue":
        """Build an issue from a JSON:API resource or an already flat record."""
        return cls.model_validate(flatten_resource(record))

    def custom_attribute_values(self) -> Dict[str, Any]:
        """Map of custom attribute id to its stored value."""
        return {attr.id: attr.value for attr in self.custom_attributes}


class IssueComment(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    issue_id: Optional[str] = None
    body: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "IssueComment":
        return cls.model_validate(flatten_resource(record))


class IssueAttachment(BaseModel):
    """File attached to an issue; ``url`` downloads it with the user's token."""

    model_config = ConfigDict(extra="allow")

    id: str
    issue_id: Optional[str] = None
    name: Optional[str] = None
    url: Optional[str] = None
    urn: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "IssueAttachment":
        return cls.model_validate(flatten_resource(record))


def flatten_resource(record: Dict[str, Any]) -> Dict[str, Any]:
    """Merge a JSON:API resource's attributes with its id."""
    if "attributes" not in record:
        return record
    data = dict(record["attributes"])
    data["id"] = record["id"]
    return data


class IssueFilters(BaseModel):
    """Conjunctive issue filters. Unset keys impose no constraint."""

    model_config = ConfigDict(extra="forbid")

    due_date: Optional[str] = None
    synced_after: Optional[str] = None
    created_at: Optional[str] = None
    created_by: Optional[str] = None
    owner: Optional[str] = None
    ng_issue_type_id: Optional[str] = None
    ng_issue_subtype_id: Optional[str] = None

    def to_params(self) -> Dict[str, str]:
        """Encode as ``filter[...]`` query parameters."""
        return {
            f"filter[{name}]": value
            for name, value in self.model_dump(exclude_none=True).items()
            if value != ""
        }
