"""
Loaders for issues and the reference data around them.

Collections are fetched page by page starting at offset 0 with a fixed page
size; a page shorter than requested (or empty) ends the collection. Pages of
one collection are requested strictly in sequence, different collections may
be loaded concurrently by the caller.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

import httpx
import structlog

from ..integrations.bim360 import BIM360Client
from ..integrations.errors import BIM360Error, RateLimitedError
from ..models import (
    AttributeDefinition,
    Document,
    Issue,
    IssueFilters,
    IssueType,
    Location,
    User,
    UsersScope,
)

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 128
DEFAULT_BROWSE_LIMIT = 64
DOCUMENT_CHUNK_SIZE = 50
MAX_RATE_LIMIT_RETRIES = 3


async def paginate(
    fetch_page: Callable[[int, int], Awaitable[List[T]]],
    page_size: int = DEFAULT_PAGE_SIZE,
    collection: str = "",
) -> List[T]:
    """Fetch every page of a collection and concatenate them in order."""
    results: List[T] = []
    offset = 0
    while True:
        logger.debug("page_request", collection=collection, offset=offset, limit=page_size)
        page = await fetch_page(offset, page_size)
        results.extend(page)
        if len(page) < page_size:
            return results
        offset += len(page)


async def load_issues(
    client: BIM360Client,
    container_id: str,
    filters: Optional[IssueFilters] = None,
    offset: Optional[int] = None,
    limit: Optional[int] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> List[Issue]:
    """Load issues matching ``filters``.

    Without offset and limit every matching issue is returned; with either
    one of them exactly one page is returned, as the caller asked.
    """
    if offset is None and limit is None:
        return await paginate(
            lambda page_offset, page_limit: client.list_issues(
                container_id, filters, page_offset, page_limit
            ),
            page_size,
            "issues",
        )
    return await client.list_issues(
        container_id,
        filters,
        offset if offset is not None else 0,
        limit if limit is not None else DEFAULT_BROWSE_LIMIT,
    )


async def load_issue_types(client: BIM360Client, container_id: str) -> List[IssueType]:
    logger.info("loading_issue_types", container_id=container_id)
    return await client.list_issue_types(container_id)


async def load_attribute_definitions(
    client: BIM360Client, container_id: str
) -> List[AttributeDefinition]:
    logger.info("loading_attribute_definitions", container_id=container_id)
    return await client.list_attribute_definitions(container_id)


async def load_users(
    client: BIM360Client,
    account_id: Optional[str] = None,
    project_id: Optional[str] = None,
    scope: UsersScope = UsersScope.ACCOUNT,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> List[User]:
    """Load users of the hub account or of a single project.

    Hub ids carry a ``b.`` prefix that the account APIs do not accept.
    """
    if UsersScope(scope) == UsersScope.PROJECT:
        if not project_id:
            raise ValueError("project_id is required for project-scoped users")
        logger.info("loading_project_users", project_id=project_id)
        return await client.list_project_users(_strip_hub_prefix(project_id), limit=page_size)

    if not account_id:
        raise ValueError("account_id is required for account-scoped users")
    account_id = _strip_hub_prefix(account_id)
    logger.info("loading_account_users", account_id=account_id)
    return await paginate(
        lambda offset, limit: client.list_account_users(account_id, offset, limit),
        page_size,
        "users",
    )


async def load_locations(
    client: BIM360Client,
    location_container_id: Optional[str],
    page_size: int = DEFAULT_PAGE_SIZE,
) -> List[Location]:
    """Load the location tree, or nothing if the container has no locations."""
    if not location_container_id:
        logger.warning("locations_unavailable", reason="no location container")
        return []
    try:
        return await paginate(
            lambda offset, limit: client.list_location_nodes(location_container_id, offset, limit),
            page_size,
            "locations",
        )
    except (BIM360Error, httpx.HTTPError) as e:
        logger.warning(
            "locations_unavailable",
            location_container_id=location_container_id,
            error=str(e),
        )
        return []


async def load_documents_from_folders(
    client: BIM360Client, hub_id: str, project_id: str
) -> List[Document]:
    """Collect every item below the project's top folders.

    Folders are walked level by level: all folders of one level are listed
    concurrently, and their subfolders form the next level.
    """
    logger.info("loading_documents", project_id=project_id, source="folders")
    top_folders = await client.list_top_folders(hub_id, project_id)
    level = [folder["id"] for folder in top_folders]
    visited = set(level)
    documents: List[Document] = []
    while level:
        listings = await asyncio.gather(
            *(client.list_folder_contents(project_id, folder_id) for folder_id in level)
        )
        next_level = []
        for entries in listings:
            for entry in entries:
                if entry.get("type") == "items":
                    documents.append(Document.from_folder_item(entry))
                elif entry.get("type") == "folders" and entry["id"] not in visited:
                    visited.add(entry["id"])
                    next_level.append(entry["id"])
        level = next_level
    return documents


async def load_documents_by_ids(
    client: BIM360Client,
    project_id: str,
    document_ids: Iterable[str],
    chunk_size: int = DOCUMENT_CHUNK_SIZE,
    max_retries: int = MAX_RATE_LIMIT_RETRIES,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> List[Document]:
    """Resolve known document ids in concurrent batches.

    A rate-limited batch waits for the delay the service asked for and is
    retried, at most ``max_retries`` times. A batch that is still limited
    after that is dropped from the result.
    """
    unique_ids = list(dict.fromkeys(doc_id for doc_id in document_ids if doc_id))
    if not unique_ids:
        return []
    chunks = [unique_ids[i : i + chunk_size] for i in range(0, len(unique_ids), chunk_size)]
    logger.info(
        "loading_documents",
        project_id=project_id,
        source="issues",
        documents=len(unique_ids),
        chunks=len(chunks),
    )

    async def resolve(chunk: List[str]) -> List[Document]:
        retries = 0
        while True:
            try:
                return await client.list_items(project_id, chunk)
            except RateLimitedError as e:
                if retries >= max_retries:
                    logger.error(
                        "document_chunk_failed",
                        project_id=project_id,
                        retries=retries,
                        document_ids=chunk,
                    )
                    return []
                retries += 1
                logger.warning(
                    "document_chunk_rate_limited",
                    retry=retries,
                    delay=e.retry_after,
                )
                await sleep(e.retry_after)

    resolved = await asyncio.gather(*(resolve(chunk) for chunk in chunks))
    return [document for batch in resolved for document in batch]


def _strip_hub_prefix(identifier: str) -> str:
    return identifier[2:] if identifier.startswith("b.") else identifier
