"""
Integration with the BIM360 / Forge REST APIs.

One client instance wraps one credential (user context or app context).
Every method performs exactly one logical remote call; pagination across
pages is the caller's business (see ``sync.loaders``), except where the
service hands out opaque "next" links.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..models import (
    AttributeDefinition,
    Document,
    Hub,
    Issue,
    IssueAttachment,
    IssueComment,
    IssueFilters,
    IssueType,
    Location,
    Project,
    User,
)
from ..models.issue import flatten_resource
from .errors import BIM360APIError, RateLimitedError, parse_retry_after

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://developer.api.autodesk.com"
JSON_API = "application/vnd.api+json"


class BIM360Client:
    """
    Async client for issue, admin, location and data-management endpoints.
    """

    def __init__(
        self,
        token: str,
        region: str = "US",
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.region = region
        self.base_url = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {token}"}
        if region != "US":
            headers["x-ads-region"] = region
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "BIM360Client":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Request to {url} failed: {e}")
            raise

        if response.status_code == 429:
            raise RateLimitedError(
                retry_after=parse_retry_after(response.headers.get("retry-after")),
                response=_decode(response),
            )
        if response.is_error:
            raise BIM360APIError(
                status_code=response.status_code,
                message=response.reason_phrase or "Request failed",
                response=_decode(response),
            )
        return response

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        response = await self._send(method, url, **kwargs)
        if not response.content:
            return None
        return response.json()

    async def _collect(
        self, url: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """GET every page of a collection by following its ``links.next``."""
        next_url: Optional[str] = url
        records: List[Dict[str, Any]] = []
        while next_url:
            data = await self._request("GET", next_url, params=params)
            records.extend(_records(data))
            next_url = _next_link(data)
            params = None
        return records

    # ------------------------------------------------------------------ Issues

    async def list_issues(
        self,
        container_id: str,
        filters: Optional[IssueFilters] = None,
        offset: int = 0,
        limit: int = 128,
    ) -> List[Issue]:
        """Get one page of issues."""
        params: Dict[str, Any] = {"page[offset]": offset, "page[limit]": limit}
        if filters:
            params.update(filters.to_params())
        data = await self._request(
            "GET", f"/issues/v1/containers/{container_id}/quality-issues", params=params
        )
        return [Issue.from_api(record) for record in _records(data)]

    async def create_issue(self, container_id: str, attributes: Dict[str, Any]) -> Issue:
        """Create a new issue."""
        body = {"data": {"type": "quality_issues", "attributes": attributes}}
        data = await self._request(
            "POST",
            f"/issues/v1/containers/{container_id}/quality-issues",
            json=body,
            headers={"Content-Type": JSON_API},
        )
        return Issue.from_api(data["data"])

    async def update_issue(
        self, container_id: str, issue_id: str, attributes: Dict[str, Any]
    ) -> Issue:
        """Patch the given attributes of an existing issue."""
        body = {"data": {"type": "quality_issues", "id": issue_id, "attributes": attributes}}
        data = await self._request(
            "PATCH",
            f"/issues/v1/containers/{container_id}/quality-issues/{issue_id}",
            json=body,
            headers={"Content-Type": JSON_API},
        )
        return Issue.from_api(data["data"])

    async def list_issue_types(self, container_id: str) -> List[IssueType]:
        """Get issue types together with their subtypes."""
        data = await self._request(
            "GET",
            f"/issues/v1/containers/{container_id}/ng-issue-types",
            params={"include": "subtypes"},
        )
        return [IssueType.model_validate(record) for record in _records(data)]

    async def list_attribute_definitions(self, container_id: str) -> List[AttributeDefinition]:
        """Get custom attribute definitions."""
        data = await self._request(
            "GET", f"/issues/v1/containers/{container_id}/issue-attribute-definitions"
        )
        return [AttributeDefinition.model_validate(record) for record in _records(data)]

    async def list_attribute_mappings(self, container_id: str) -> List[Dict[str, Any]]:
        """Get which custom attributes apply to which issue types."""
        records = await self._collect(
            f"/issues/v1/containers/{container_id}/issue-attribute-mappings"
        )
        return [flatten_resource(record) for record in records]

    async def list_root_causes(self, container_id: str) -> List[Dict[str, Any]]:
        records = await self._collect(f"/issues/v1/containers/{container_id}/root-causes")
        return [flatten_resource(record) for record in records]

    async def list_issue_comments(self, container_id: str, issue_id: str) -> List[IssueComment]:
        records = await self._collect(
            f"/issues/v1/containers/{container_id}/quality-issues/{issue_id}/comments"
        )
        return [IssueComment.from_api(record) for record in records]

    async def list_issue_attachments(
        self, container_id: str, issue_id: str
    ) -> List[IssueAttachment]:
        records = await self._collect(
            f"/issues/v1/containers/{container_id}/quality-issues/{issue_id}/attachments"
        )
        return [IssueAttachment.from_api(record) for record in records]

    async def download(self, url: str) -> httpx.Response:
        """Fetch a file (e.g. an attachment ``url``) with this client's credentials."""
        return await self._send("GET", url)

    # ------------------------------------------------------------------- Users

    async def list_account_users(
        self, account_id: str, offset: int = 0, limit: int = 128
    ) -> List[User]:
        """Get one page of account (hub) users. Requires an app-context token."""
        if self.region == "EMEA":
            url = f"/hq/v1/regions/eu/accounts/{account_id}/users"
        else:
            url = f"/hq/v1/accounts/{account_id}/users"
        data = await self._request("GET", url, params={"offset": offset, "limit": limit})
        return [User.from_api(record) for record in _records(data)]

    async def list_project_users(self, project_id: str, limit: int = 128) -> List[User]:
        """Get all project users, following the service's next-page links."""
        url: Optional[str] = f"/bim360/admin/v1/projects/{project_id}/users"
        params: Optional[Dict[str, Any]] = {"limit": limit}
        users: List[User] = []
        while url:
            data = await self._request("GET", url, params=params)
            users.extend(User.from_api(record) for record in _records(data))
            url = ((data or {}).get("pagination") or {}).get("nextUrl")
            params = None
        return users

    # --------------------------------------------------------------- Locations

    async def list_location_nodes(
        self, location_container_id: str, offset: int = 0, limit: int = 128
    ) -> List[Location]:
        """Get one page of nodes of the default location tree."""
        data = await self._request(
            "GET",
            f"/bim360/locations/v2/containers/{location_container_id}/trees/default/nodes",
            params={"offset": offset, "limit": limit},
        )
        return [Location.model_validate(record) for record in _records(data)]

    # ---------------------------------------------------------------- Projects

    async def list_hubs(self) -> List[Hub]:
        records = await self._collect("/project/v1/hubs")
        return [Hub.from_api(record) for record in records]

    async def get_hub(self, hub_id: str) -> Hub:
        data = await self._request("GET", f"/project/v1/hubs/{hub_id}")
        return Hub.from_api(data["data"])

    async def list_projects(self, hub_id: str) -> List[Project]:
        records = await self._collect(f"/project/v1/hubs/{hub_id}/projects")
        return [Project.from_api(record) for record in records]

    async def get_project(self, hub_id: str, project_id: str) -> Project:
        """Get project details including its issue and location containers."""
        data = await self._request("GET", f"/project/v1/hubs/{hub_id}/projects/{project_id}")
        record = dict((data or {}).get("data") or {})
        record.setdefault("id", project_id)
        return Project.from_api(record)

    async def get_project_containers(
        self, hub_id: str, project_id: str
    ) -> Tuple[Optional[str], Optional[str]]:
        """Get the issue and location container ids of a project."""
        project = await self.get_project(hub_id, project_id)
        return project.issue_container_id, project.location_container_id

    # --------------------------------------------------------------- Documents

    async def list_top_folders(self, hub_id: str, project_id: str) -> List[Dict[str, Any]]:
        """Get top-level folders of a project."""
        data = await self._request(
            "GET", f"/project/v1/hubs/{hub_id}/projects/{project_id}/topFolders"
        )
        return _records(data)

    async def list_folder_contents(self, project_id: str, folder_id: str) -> List[Dict[str, Any]]:
        """Get all entries (items and folders) of one folder."""
        return await self._collect(f"/data/v1/projects/{project_id}/folders/{folder_id}/contents")

    async def get_item(self, project_id: str, item_id: str) -> Document:
        data = await self._request("GET", f"/data/v1/projects/{project_id}/items/{item_id}")
        return Document.from_folder_item(data["data"])

    async def list_items(self, project_id: str, item_ids: List[str]) -> List[Document]:
        """Resolve a batch of item ids in a single ListItems command."""
        body = {
            "jsonapi": {"version": "1.0"},
            "data": {
                "type": "commands",
                "attributes": {
                    "extension": {
                        "type": "commands:autodesk.core:ListItems",
                        "version": "1.0.0",
                    }
                },
                "relationships": {
                    "resources": {"data": [{"type": "items", "id": item_id} for item_id in item_ids]}
                },
            },
        }
        data = await self._request(
            "POST",
            f"/data/v1/projects/{project_id}/commands",
            json=body,
            headers={"Content-Type": JSON_API},
        )
        documents = []
        for record in (data or {}).get("included") or []:
            if record.get("type") == "versions":
                documents.append(Document.from_item_version(record))
            elif record.get("type") == "items":
                documents.append(Document.from_folder_item(record))
        return documents


def _records(data: Any) -> List[Dict[str, Any]]:
    """Pull the record list out of the various envelope styles."""
    if data is None:
        return []
    if isinstance(data, list):
        return data
    for key in ("results", "data"):
        if isinstance(data.get(key), list):
            return data[key]
    return []


def _next_link(data: Any) -> Optional[str]:
    """Next page URL; the services use both plain and ``{href}`` links."""
    if not isinstance(data, dict):
        return None
    link = (data.get("links") or {}).get("next")
    if isinstance(link, dict):
        return link.get("href")
    return link or None


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None
