"""Unit tests for the composite cell codec and date helpers."""

from datetime import date, datetime, timezone

import pytest
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.cell.text import InlineFont

from bim360_issue_editor.sync.cells import (
    ID_SUFFIX_COLOR,
    CompositeRef,
    cell_text,
    decode_reference,
    encode_reference,
    flatten_cell,
    format_datetime,
    is_blank,
    parse_datetime,
    to_api_datetime,
)


class TestCompositeReferences:
    """Tests for "Name [ID]" cells."""

    def test_round_trip_recovers_ids(self, issues, issue_types, users, locations):
        issue = issues[0]
        issue_type = next(t for t in issue_types if t.id == issue.ng_issue_type_id)
        subtype = next(s for s in issue_type.subtypes if s.id == issue.ng_issue_subtype_id)
        owner = next(u for u in users if u.id == issue.owner)
        location = next(loc for loc in locations if loc.id == issue.lbs_location)

        type_ref = decode_reference(
            encode_reference(f"{issue_type.title} > {subtype.title}", issue_type.id, subtype.id)
        )
        owner_ref = decode_reference(encode_reference(owner.name, owner.id))
        location_ref = decode_reference(encode_reference(location.name, location.id))

        assert type_ref.ids == ("T1", "S1")
        assert owner_ref.id == "U1"
        assert location_ref.id == "L2"

    def test_encoded_id_suffix_is_grey(self):
        value = encode_reference("Ada Lovelace", "U1")

        assert isinstance(value, CellRichText)
        label, suffix = list(value)
        assert label == "Ada Lovelace"
        assert suffix.text == " [U1]"
        assert suffix.font.color.rgb == ID_SUFFIX_COLOR

    def test_plain_text_decodes(self):
        assert decode_reference("Quality > Finishes [T1,S1]") == CompositeRef(
            label="Quality > Finishes", ids=("T1", "S1")
        )

    def test_last_bracket_group_carries_ids(self):
        ref = decode_reference("Room [North] [L7]")

        assert ref.label == "Room [North]"
        assert ref.ids == ("L7",)

    def test_rich_text_runs_are_concatenated(self):
        value = CellRichText("Level 1", TextBlock(InlineFont(b=True), " [L2]"))

        assert decode_reference(value).id == "L2"

    @pytest.mark.parametrize("value", [None, "", "No brackets", "Empty []", "Trailing [A,]", 42])
    def test_malformed_cells_do_not_decode(self, value):
        assert decode_reference(value) is None

    def test_to_text(self):
        assert CompositeRef("Quality > Finishes", ("T1", "S1")).to_text() == "Quality > Finishes [T1,S1]"


class TestCellValues:
    """Tests for plain cell helpers."""

    def test_flatten_keeps_non_rich_values(self):
        assert flatten_cell(5) == 5

    def test_blank_cells(self):
        assert is_blank(None)
        assert is_blank("   ")
        assert is_blank(CellRichText(""))
        assert not is_blank(0)

    def test_cell_text_drops_float_fraction_for_integers(self):
        assert cell_text(3.0) == "3"
        assert cell_text(3.5) == "3.5"
        assert cell_text("") is None


class TestDates:
    """Tests for date parsing and formatting."""

    def test_parses_service_timestamps(self):
        assert parse_datetime("2024-05-01T12:30:00.123Z") == datetime(
            2024, 5, 1, 12, 30, tzinfo=timezone.utc
        )

    def test_parses_sheet_strings_as_utc(self):
        assert parse_datetime("2024-05-01 12:30:00") == datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)

    def test_parses_native_cell_dates(self):
        assert parse_datetime(date(2024, 5, 1)) == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert parse_datetime(datetime(2024, 5, 1, 8)) == datetime(2024, 5, 1, 8, tzinfo=timezone.utc)

    def test_offsets_are_normalized(self):
        assert parse_datetime("2024-05-01T14:00:00+02:00") == datetime(
            2024, 5, 1, 12, tzinfo=timezone.utc
        )

    def test_blank_dates(self):
        assert parse_datetime("") is None
        assert format_datetime(None) == ""
        assert to_api_datetime(None) is None

    def test_invalid_dates_raise(self):
        with pytest.raises(ValueError):
            parse_datetime("next tuesday")

    def test_sheet_and_api_formats(self):
        parsed = parse_datetime("2024-05-01T00:00:00.000Z")

        assert format_datetime(parsed) == "2024-05-01 00:00:00"
        assert to_api_datetime(parsed) == "2024-05-01T00:00:00.000Z"
