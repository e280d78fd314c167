"""
Issue <-> spreadsheet synchronization engine.
"""

from .exporter import ExportData, ExportOptions, build_workbook, export_issues, load_export_data
from .importer import RowParseError, import_issues
from .loaders import (
    load_attribute_definitions,
    load_documents_by_ids,
    load_documents_from_folders,
    load_issue_types,
    load_issues,
    load_locations,
    load_users,
    paginate,
)
from .policy import UpdatePlan, apply_plan, plan_update

__all__ = [
    "ExportData",
    "ExportOptions",
    "RowParseError",
    "UpdatePlan",
    "apply_plan",
    "build_workbook",
    "export_issues",
    "import_issues",
    "load_attribute_definitions",
    "load_documents_by_ids",
    "load_documents_from_folders",
    "load_export_data",
    "load_issue_types",
    "load_issues",
    "load_locations",
    "load_users",
    "paginate",
    "plan_update",
]
