"""
Reference data used to decorate issue rows.

The remote service reports some of these objects in more than one shape
depending on which API produced them; the ``from_*`` constructors here are
the only code that knows about those source shapes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class IssueSubtype(BaseModel):
    """Second level of the issue type taxonomy."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str


class IssueType(BaseModel):
    """First level of the issue type taxonomy."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    subtypes: List[IssueSubtype] = Field(default_factory=list)


class User(BaseModel):
    """A user under one normalized identifier."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "User":
        """Normalize account (``uid``) and project (``autodeskId``) user records.

        Issues reference users by their Autodesk id, so that id wins over the
        record's own ``id`` when both are present.
        """
        user_id = record.get("uid") or record.get("autodeskId") or record.get("id")
        if not user_id:
            raise ValueError(f"User record has no identifier: {record!r}")
        name = record.get("name") or " ".join(
            part for part in (record.get("firstName"), record.get("lastName")) if part
        )
        return cls(id=str(user_id), name=name or str(user_id))


class Location(BaseModel):
    """Node of the location tree."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    parent_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("parentId", "parent_id")
    )
    name: str


class AttributeOption(BaseModel):
    """One option of a list-typed custom attribute."""

    model_config = ConfigDict(extra="ignore")

    id: str
    value: str


class AttributeDefinition(BaseModel):
    """Definition of a custom attribute."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    title: str
    type: str = Field(validation_alias=AliasChoices("type", "data_type", "dataType"))
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def options(self) -> List[AttributeOption]:
        """Options of a list attribute; empty for other types."""
        raw = (self.metadata.get("list") or {}).get("options") or []
        return [AttributeOption.model_validate(option) for option in raw]

    def option_value(self, option_id: Any) -> Optional[str]:
        for option in self.options:
            if option.id == option_id:
                return option.value
        return None

    def option_id(self, value: Any) -> Optional[str]:
        for option in self.options:
            if option.value == value:
                return option.id
        return None


class Document(BaseModel):
    """A linked document, whichever retrieval path produced it."""

    model_config = ConfigDict(extra="ignore")

    id: str
    display_name: str
    path_in_project: Optional[str] = None

    @classmethod
    def from_folder_item(cls, item: Dict[str, Any]) -> "Document":
        """Folder contents entry: ``{id, attributes: {displayName}}``."""
        attributes = item.get("attributes") or {}
        name = attributes.get("displayName") or item.get("displayName") or item["id"]
        return cls(
            id=item["id"],
            display_name=name,
            path_in_project=attributes.get("pathInProject"),
        )

    @classmethod
    def from_item_version(cls, version: Dict[str, Any]) -> "Document":
        """Data-service item version record.

        The document id is the *item* id from ``relationships.item``; the
        version's own id is only used when that relationship is missing.
        """
        attributes = version.get("attributes") or {}
        item = ((version.get("relationships") or {}).get("item") or {}).get("data") or {}
        return cls(
            id=item.get("id") or version["id"],
            display_name=attributes.get("displayName") or version["id"],
            path_in_project=attributes.get("pathInProject"),
        )
