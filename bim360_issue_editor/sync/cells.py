"""
Cell codecs shared by the exporter and the importer.

Cross-references travel through spreadsheets as composite cells: a human
label followed by the machine id(s) in trailing brackets, for example
``"Door > Broken [T1,S2]"``. In xlsx output the bracketed part is written as
a de-emphasized rich-text run; decoding first flattens rich text back into
plain text and then reads the ids from the last bracket group.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional, Tuple

from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.cell.text import InlineFont

# Greedy prefix so the *last* bracket group carries the ids
COMPOSITE_PATTERN = re.compile(r"^(.*)\[([^\[\]]*)\]\s*$", re.DOTALL)

ID_SUFFIX_COLOR = "FFCCCCCC"

SHEET_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class CompositeRef:
    """A display label tagged with the id(s) it stands for."""

    label: str
    ids: Tuple[str, ...]

    @property
    def id(self) -> str:
        return self.ids[0]

    def to_text(self) -> str:
        return f"{self.label} [{','.join(self.ids)}]"

    def to_rich_text(self) -> CellRichText:
        return CellRichText(
            self.label,
            TextBlock(InlineFont(color=ID_SUFFIX_COLOR), f" [{','.join(self.ids)}]"),
        )


def encode_reference(label: str, *ids: str) -> CellRichText:
    """Composite cell value for ``label`` referring to ``ids``."""
    return CompositeRef(label=label, ids=tuple(str(i) for i in ids)).to_rich_text()


def decode_reference(value: Any) -> Optional[CompositeRef]:
    """Recover the tagged value from a cell, or None if it does not match."""
    text = flatten_cell(value)
    if not isinstance(text, str):
        return None
    match = COMPOSITE_PATTERN.match(text)
    if not match:
        return None
    ids = tuple(part.strip() for part in match.group(2).split(","))
    if not all(ids):
        return None
    return CompositeRef(label=match.group(1).rstrip(), ids=ids)


def flatten_cell(value: Any) -> Any:
    """Plain value of a cell: rich text runs are concatenated, styling dropped."""
    if isinstance(value, CellRichText):
        return "".join(part if isinstance(part, str) else part.text for part in value)
    return value


def is_blank(value: Any) -> bool:
    value = flatten_cell(value)
    return value is None or (isinstance(value, str) and value.strip() == "")


def cell_text(value: Any) -> Optional[str]:
    """Cell content as a string, or None for blank cells."""
    value = flatten_cell(value)
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse service ISO strings, sheet strings and native cell dates into UTC."""
    value = flatten_cell(value)
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).replace(microsecond=0)


def format_datetime(value: Any) -> str:
    """``YYYY-MM-DD HH:MM:SS`` in UTC, or an empty string when missing."""
    parsed = parse_datetime(value)
    if parsed is None:
        return ""
    return parsed.strftime(SHEET_DATETIME_FORMAT)


def to_api_datetime(value: Optional[datetime]) -> Optional[str]:
    """Serialize a parsed date the way the issues API reports them."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")
