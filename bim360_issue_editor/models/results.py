"""
Import outcome ledger.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ImportSuccess(BaseModel):
    """A row whose create or update call went through."""

    number: Optional[int] = None
    id: str
    issue: Optional[Dict[str, Any]] = None


class ImportFailure(BaseModel):
    """A row that could not be parsed or written."""

    id: Optional[str] = None
    number: Optional[int] = None
    row: Optional[int] = None
    error: Any


class ImportResult(BaseModel):
    """Outcome of one spreadsheet import.

    Rows that carry no real change appear in neither list.
    """

    succeeded: List[ImportSuccess] = Field(default_factory=list)
    failed: List[ImportFailure] = Field(default_factory=list)

    def add_success(
        self, id: str, number: Optional[int] = None, issue: Optional[Dict[str, Any]] = None
    ) -> None:
        self.succeeded.append(ImportSuccess(id=id, number=number, issue=issue))

    def add_failure(
        self,
        error: Any,
        id: Optional[str] = None,
        number: Optional[int] = None,
        row: Optional[int] = None,
    ) -> None:
        self.failed.append(ImportFailure(id=id, number=number, row=row, error=error))
