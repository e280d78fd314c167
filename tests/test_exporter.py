"""Tests for the spreadsheet exporter."""

from io import BytesIO
from unittest.mock import AsyncMock, MagicMock

import pytest
from openpyxl import load_workbook
from openpyxl.cell.rich_text import CellRichText

from bim360_issue_editor.integrations import BIM360Client
from bim360_issue_editor.models import Document, DocumentSource, LEGACY_STATUSES, UsersScope
from bim360_issue_editor.sync.cells import decode_reference, flatten_cell
from bim360_issue_editor.sync.columns import ISSUE_COLUMNS
from bim360_issue_editor.sync.exporter import (
    ExportOptions,
    build_workbook,
    export_issues,
    load_export_data,
)

from conftest import header_of


def column_letter(sheet, header: str) -> str:
    for cell in sheet[1]:
        if cell.value == header:
            return cell.column_letter
    raise KeyError(header)


def validation_for(sheet, letter: str):
    for validation in sheet.data_validations.dataValidation:
        if any(str(cell_range).startswith(f"{letter}2:") for cell_range in validation.sqref.ranges):
            return validation
    return None


class TestWorkbookLayout:
    """Sheets, headers and rows."""

    def test_sheets_in_order(self, export_data):
        workbook = build_workbook(export_data)

        assert workbook.sheetnames == ["Issues", "Types", "Owners", "Locations", "Documents"]

    def test_issue_headers_include_custom_attributes(self, export_data):
        sheet = build_workbook(export_data)["Issues"]

        headers = [cell.value for cell in sheet[1]]
        assert headers == [column.header for column in ISSUE_COLUMNS] + ["Trade", "Notes"]
        assert sheet.freeze_panes == "A2"
        assert all(cell.font.b for cell in sheet[1])

    def test_one_row_per_issue(self, export_data):
        sheet = build_workbook(export_data)["Issues"]

        assert sheet.max_row == 1 + len(export_data.issues)
        assert [row[0].value for row in sheet.iter_rows(min_row=2)] == ["issue-1", "issue-2"]

    def test_references_are_composite_cells(self, export_data):
        sheet = build_workbook(export_data)["Issues"]
        row = {header.value: cell.value for header, cell in zip(sheet[1], sheet[2])}

        assert isinstance(row["Type"], CellRichText)
        assert flatten_cell(row["Type"]) == "Quality > Finishes [T1,S1]"
        assert decode_reference(row["Owner"]).id == "U1"
        assert decode_reference(row["Assigned To"]).id == "U2"
        assert decode_reference(row["Location"]).id == "L2"
        assert decode_reference(row["Document"]).id == "urn:item:1"
        assert row["Due Date"] == "2024-05-01 00:00:00"
        assert row["Trade"] == "Tiling"
        assert row["Notes"] == "check grout"

    def test_unresolvable_references_are_blank(self, export_data):
        export_data.documents = []
        sheet = build_workbook(export_data)["Issues"]
        letter = column_letter(sheet, header_of("document"))

        assert sheet[f"{letter}2"].value in ("", None)

    def test_reference_sheets(self, export_data):
        workbook = build_workbook(export_data, location_path_separator=" / ")

        types = workbook["Types"]
        assert types.max_row == 1 + 3
        assert flatten_cell(types["E4"].value) == "Safety > Fall hazard [T2,S3]"

        owners = workbook["Owners"]
        assert [owners["A2"].value, owners["B2"].value] == ["U1", "Ada Lovelace"]

        locations = workbook["Locations"]
        assert locations["D4"].value == "Building A / Level 1 / Lobby"
        assert flatten_cell(locations["E4"].value) == "Lobby [L3]"

        documents = workbook["Documents"]
        assert documents["C2"].value == "/Plans/A-101.pdf"
        assert flatten_cell(documents["D2"].value) == "A-101.pdf [urn:item:1]"


class TestValidationAndProtection:
    """Data validation lists and cell locks."""

    def test_reference_columns_validate_against_sheets(self, export_data):
        sheet = build_workbook(export_data)["Issues"]

        expected = {
            "type": "Types!$E$2:$E$4",
            "owner": "Owners!$C$2:$C$3",
            "location": "Locations!$E$2:$E$4",
            "document": "Documents!$D$2:$D$2",
        }
        for key, formula in expected.items():
            validation = validation_for(sheet, column_letter(sheet, header_of(key)))
            assert validation is not None, key
            assert validation.type == "list"
            assert validation.formula1 == formula

    def test_status_list(self, export_data):
        sheet = build_workbook(export_data)["Issues"]
        validation = validation_for(sheet, column_letter(sheet, header_of("status")))

        assert validation.formula1.startswith('"void,draft,open,answered')

    def test_legacy_status_list(self, export_data):
        sheet = build_workbook(export_data, legacy_statuses=True)["Issues"]
        validation = validation_for(sheet, column_letter(sheet, header_of("status")))

        assert validation.formula1 == '"' + ",".join(s.value for s in LEGACY_STATUSES) + '"'

    def test_list_custom_attribute_gets_inline_options(self, export_data):
        sheet = build_workbook(export_data)["Issues"]

        trade = validation_for(sheet, column_letter(sheet, "Trade"))
        assert trade.formula1 == '"Electrical,Tiling"'
        assert validation_for(sheet, column_letter(sheet, "Notes")) is None

    def test_locked_columns_have_no_validation(self, export_data):
        sheet = build_workbook(export_data)["Issues"]

        assert validation_for(sheet, column_letter(sheet, header_of("created_by"))) is None

    def test_cell_locks_follow_columns(self, export_data):
        sheet = build_workbook(export_data)["Issues"]

        for column in ISSUE_COLUMNS:
            cell = sheet[f"{column_letter(sheet, column.header)}2"]
            assert cell.protection.locked == column.locked, column.key
        assert sheet["A1"].protection.locked
        assert all(cell.protection.locked for cell in build_workbook(export_data)["Types"][2])

    def test_sheet_protection_toggle(self, export_data):
        assert not build_workbook(export_data)["Issues"].protection.sheet
        protected = build_workbook(export_data, protect_sheets=True)
        assert all(sheet.protection.sheet for sheet in protected.worksheets)


class TestLoadExportData:
    """What export fetches and from where."""

    def client(self, export_data) -> MagicMock:
        client = MagicMock(spec=BIM360Client)
        client.list_issues = AsyncMock(return_value=export_data.issues)
        client.list_issue_types = AsyncMock(return_value=export_data.types)
        client.list_account_users = AsyncMock(return_value=export_data.users)
        client.list_location_nodes = AsyncMock(return_value=export_data.locations)
        client.list_attribute_definitions = AsyncMock(return_value=export_data.definitions)
        client.list_items = AsyncMock(return_value=export_data.documents)
        return client

    def options(self, **overrides) -> ExportOptions:
        defaults = dict(
            hub_id="b.hub",
            project_id="b.proj",
            issue_container_id="c1",
            location_container_id="lc1",
        )
        defaults.update(overrides)
        return ExportOptions(**defaults)

    @pytest.mark.asyncio
    async def test_documents_resolved_from_issue_links(self, export_data):
        client = self.client(export_data)

        data = await load_export_data(self.options(), client)

        assert data.documents == export_data.documents
        client.list_items.assert_awaited_once_with("b.proj", ["urn:item:1"])

    @pytest.mark.asyncio
    async def test_users_come_from_app_client(self, export_data):
        client = self.client(export_data)
        app_client = MagicMock(spec=BIM360Client)
        app_client.list_project_users = AsyncMock(return_value=export_data.users)

        data = await load_export_data(self.options(users_scope=UsersScope.PROJECT), client, app_client)

        assert data.users == export_data.users
        app_client.list_project_users.assert_awaited_once()
        client.list_account_users.assert_not_called()

    @pytest.mark.asyncio
    async def test_folder_document_source(self, export_data):
        client = self.client(export_data)
        client.list_top_folders = AsyncMock(return_value=[{"id": "f1"}])
        client.list_folder_contents = AsyncMock(
            return_value=[{"type": "items", "id": "i9", "attributes": {"displayName": "Site-plan.pdf"}}]
        )

        data = await load_export_data(self.options(document_source=DocumentSource.FOLDERS), client)

        assert data.documents == [Document(id="i9", display_name="Site-plan.pdf")]
        client.list_items.assert_not_called()

    @pytest.mark.asyncio
    async def test_export_returns_xlsx_bytes(self, export_data):
        client = self.client(export_data)

        content = await export_issues(self.options(), client)

        workbook = load_workbook(BytesIO(content))
        assert workbook["Issues"].max_row == 3
        assert workbook.properties.creator == "bim360-issue-editor"
        client.create_issue.assert_not_called()
        client.update_issue.assert_not_called()
