"""
BIM360 Issue Editor

Browse BIM360 issues and edit them in bulk through spreadsheets.
"""

import importlib.metadata

__version__ = importlib.metadata.version("bim360-issue-editor")

from .integrations import BIM360Client, ForgeAuthClient
from .models import ImportResult, Issue, IssueFilters
from .sync import ExportOptions, export_issues, import_issues

__all__ = [
    "BIM360Client",
    "ExportOptions",
    "ForgeAuthClient",
    "ImportResult",
    "Issue",
    "IssueFilters",
    "export_issues",
    "import_issues",
]
