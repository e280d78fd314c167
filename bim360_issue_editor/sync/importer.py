"""
Spreadsheet import of BIM360 issues.

Reads the Issues sheet of an edited workbook, turns every data row into a
candidate set of attributes and applies it against a freshly loaded issue
snapshot: unknown ids become create calls, known ids go through the
reconciliation policy. Every row ends up in the result ledger as a success,
a failure, or (when nothing changed) nowhere.

All rows are parsed before the first remote write. A cell that does not
carry the expected "Name [ID]" encoding fails only its row; any other error
while reading the sheet aborts the whole import.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import httpx
import structlog
from openpyxl import load_workbook

from ..integrations.bim360 import BIM360Client
from ..integrations.errors import BIM360Error, describe_error
from ..models import AttributeDefinition, AttributeType, ImportResult, Issue
from .cells import cell_text, decode_reference, flatten_cell, is_blank, parse_datetime, to_api_datetime
from .columns import ISSUE_COLUMNS, ISSUES_SHEET, CellKind, IssueColumn
from .loaders import DEFAULT_PAGE_SIZE, load_attribute_definitions, load_issues
from .policy import CUSTOM_ATTRIBUTES, UpdatePlan, apply_plan, plan_update

logger = structlog.get_logger()


class RowParseError(Exception):
    """A cell could not be decoded into the value its column requires."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Could not parse {field}")


@dataclass
class ParsedRow:
    row: int
    issue_id: Optional[str]
    attributes: Dict[str, Any]


class RowParser:
    """Reads candidate attributes out of Issues sheet rows.

    Columns are located by header text, so reordered columns still import.
    The first column always holds the issue id.

    Each header occurrence binds to one column only. Standard columns claim
    their headers first, then custom attributes claim the remaining
    occurrences of their titles in definition order, the order the exporter
    writes them in. A custom attribute titled like a standard column, or two
    attributes sharing a title, therefore each keep their own column.
    """

    def __init__(self, header: Sequence[Any], definitions: List[AttributeDefinition]):
        positions: Dict[str, List[int]] = {}
        for index, value in enumerate(header):
            if not is_blank(value):
                positions.setdefault(cell_text(value), []).append(index)

        def claim(title: str) -> Optional[int]:
            found = positions.get(title)
            return found.pop(0) if found else None

        self.columns: List[Tuple[int, IssueColumn]] = []
        for column in ISSUE_COLUMNS:
            index = claim(column.header)
            if index is not None and column.editable:
                self.columns.append((index, column))
        self.custom: List[Tuple[int, AttributeDefinition]] = []
        for definition in definitions:
            index = claim(definition.title)
            if index is not None:
                self.custom.append((index, definition))

    def parse(
        self, row_number: int, values: Sequence[Any], current: Optional[Issue] = None
    ) -> ParsedRow:
        """Read one row; ``current`` is the issue the row's id refers to, if any."""
        attributes: Dict[str, Any] = {}
        for index, column in self.columns:
            self._read_column(column, _value_at(values, index), attributes)
        if self.custom:
            stored = current.custom_attribute_values() if current else {}
            attributes[CUSTOM_ATTRIBUTES] = [
                {
                    "id": definition.id,
                    "value": self._read_custom(
                        definition, _value_at(values, index), stored.get(definition.id)
                    ),
                }
                for index, definition in self.custom
            ]
        return ParsedRow(row=row_number, issue_id=cell_text(_value_at(values, 0)), attributes=attributes)

    def _read_column(self, column: IssueColumn, value: Any, attributes: Dict[str, Any]) -> None:
        if column.kind == CellKind.TYPE:
            if is_blank(value):
                return
            ref = decode_reference(value)
            if ref is None or len(ref.ids) != 2:
                raise RowParseError(column.key)
            attributes["ng_issue_type_id"], attributes["ng_issue_subtype_id"] = ref.ids
        elif column.kind in (CellKind.USER, CellKind.LOCATION, CellKind.DOCUMENT):
            # Blank reference cells leave the current value alone
            if is_blank(value):
                return
            ref = decode_reference(value)
            if ref is None or len(ref.ids) != 1:
                raise RowParseError(column.key)
            attributes[column.prop] = ref.id
        elif column.kind == CellKind.DATETIME:
            try:
                attributes[column.prop] = to_api_datetime(parse_datetime(value))
            except (TypeError, ValueError):
                raise RowParseError(column.key)
        elif column.kind in (CellKind.STATUS, CellKind.ASSIGNEE_TYPE):
            text = cell_text(value)
            if text is not None:
                attributes[column.prop] = text.strip().lower()
        else:
            attributes[column.prop] = cell_text(value)

    def _read_custom(self, definition: AttributeDefinition, value: Any, stored: Any = None) -> Any:
        if is_blank(value):
            return None
        if definition.type == AttributeType.LIST.value:
            text = cell_text(value)
            option_id = definition.option_id(text)
            if option_id is not None:
                return option_id
            # Options no longer defined are exported as their raw id
            if stored is not None and text == str(stored):
                return stored
            raise RowParseError(definition.title)
        value = flatten_cell(value)
        if definition.type == AttributeType.NUMERIC.value and isinstance(value, (int, float)):
            return value
        return cell_text(value)


def _value_at(values: Sequence[Any], index: int) -> Any:
    return values[index] if index < len(values) else None


async def import_issues(
    data: bytes,
    container_id: str,
    client: BIM360Client,
    sequential: bool = False,
    row_range: Optional[Tuple[int, int]] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ImportResult:
    """Apply an edited workbook to the issues of ``container_id``.

    Args:
        data: Serialized xlsx workbook
        container_id: Issue container the rows belong to
        client: User-context client used for reads and writes
        sequential: Send row operations one at a time in row order instead
            of all at once
        row_range: Inclusive ``(first, last)`` sheet row numbers to process;
            row 1 is the header
    """
    workbook = load_workbook(BytesIO(data), rich_text=True)
    sheet = workbook[ISSUES_SHEET] if ISSUES_SHEET in workbook.sheetnames else workbook.worksheets[0]

    logger.info("import_start", container_id=container_id, sequential=sequential, row_range=row_range)
    issues, definitions = await asyncio.gather(
        load_issues(client, container_id, page_size=page_size),
        load_attribute_definitions(client, container_id),
    )
    current = {issue.id: issue for issue in issues}

    result = ImportResult()
    rows = sheet.iter_rows(values_only=True)
    header = next(rows, None)
    if header is None:
        return result
    parser = RowParser(header, definitions)

    operations: List[Callable[[], Awaitable[None]]] = []
    for row_number, values in enumerate(rows, start=2):
        if row_range and not row_range[0] <= row_number <= row_range[1]:
            continue
        if all(is_blank(value) for value in values):
            continue
        row_id = cell_text(_value_at(values, 0))
        issue = current.get(row_id) if row_id else None
        try:
            parsed = parser.parse(row_number, values, issue)
        except RowParseError as e:
            logger.warning("row_parse_failed", row=row_number, issue_id=row_id, field=e.field)
            result.add_failure(id=row_id, row=row_number, error=str(e))
            continue

        if issue is None:
            operations.append(_create_operation(client, container_id, parsed, result))
            continue
        plan = plan_update(issue, parsed.attributes)
        if plan.is_noop:
            continue
        if plan.blocked:
            logger.info("row_blocked_attributes", row=row_number, issue_id=issue.id, blocked=plan.blocked)
        operations.append(_update_operation(client, container_id, issue, parsed.row, plan, result))

    if sequential:
        for operation in operations:
            await operation()
    else:
        await asyncio.gather(*(operation() for operation in operations))

    logger.info(
        "import_complete",
        container_id=container_id,
        succeeded=len(result.succeeded),
        failed=len(result.failed),
    )
    return result


def _create_operation(
    client: BIM360Client, container_id: str, parsed: ParsedRow, result: ImportResult
) -> Callable[[], Awaitable[None]]:
    attributes = {name: value for name, value in parsed.attributes.items() if value is not None}
    if CUSTOM_ATTRIBUTES in attributes:
        attributes[CUSTOM_ATTRIBUTES] = [
            entry for entry in attributes[CUSTOM_ATTRIBUTES] if entry["value"] is not None
        ]
        if not attributes[CUSTOM_ATTRIBUTES]:
            del attributes[CUSTOM_ATTRIBUTES]

    async def create() -> None:
        try:
            created = await client.create_issue(container_id, attributes)
        except (BIM360Error, httpx.HTTPError) as e:
            logger.warning("row_create_failed", row=parsed.row, error=str(e))
            result.add_failure(id=parsed.issue_id, row=parsed.row, error=describe_error(e))
            return
        except Exception as e:
            logger.exception("row_create_failed", row=parsed.row)
            result.add_failure(id=parsed.issue_id, row=parsed.row, error=describe_error(e))
            return
        result.add_success(
            id=created.id, number=created.identifier, issue=created.model_dump(mode="json")
        )

    return create


def _update_operation(
    client: BIM360Client,
    container_id: str,
    issue: Issue,
    row_number: int,
    plan: UpdatePlan,
    result: ImportResult,
) -> Callable[[], Awaitable[None]]:
    async def update() -> None:
        try:
            updated = await apply_plan(client, container_id, issue, plan)
        except (BIM360Error, httpx.HTTPError) as e:
            logger.warning("row_update_failed", row=row_number, issue_id=issue.id, error=str(e))
            result.add_failure(
                id=issue.id, number=issue.identifier, row=row_number, error=describe_error(e)
            )
            return
        except Exception as e:
            logger.exception("row_update_failed", row=row_number, issue_id=issue.id)
            result.add_failure(
                id=issue.id, number=issue.identifier, row=row_number, error=describe_error(e)
            )
            return
        result.add_success(
            id=issue.id, number=issue.identifier, issue=updated.model_dump(mode="json")
        )

    return update
