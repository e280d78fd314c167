"""
Hubs and projects as reported by the project service.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

# Hubs of BIM360 accounts carry this id prefix; other hub kinds have no issues
BIM360_HUB_PREFIX = "b."


class Hub(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    region: Optional[str] = None

    @property
    def is_bim360(self) -> bool:
        return self.id.startswith(BIM360_HUB_PREFIX)

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "Hub":
        attributes = record.get("attributes") or {}
        return cls(
            id=record["id"],
            name=attributes.get("name") or record["id"],
            region=attributes.get("region"),
        )


class Project(BaseModel):
    """A project together with the containers its issues and locations live in."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    issue_container_id: Optional[str] = None
    location_container_id: Optional[str] = None

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> "Project":
        attributes = record.get("attributes") or {}
        relationships = record.get("relationships") or {}

        def container(name: str) -> Optional[str]:
            return ((relationships.get(name) or {}).get("data") or {}).get("id")

        return cls(
            id=record["id"],
            name=attributes.get("name") or record["id"],
            issue_container_id=container("issues"),
            location_container_id=container("locations"),
        )
