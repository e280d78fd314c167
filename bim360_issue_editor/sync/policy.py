"""
Reconciliation of spreadsheet edits against the current server state.

This module decides, for one existing issue, which edited fields are real
changes and which remote update calls it takes to apply them. Planning is
pure; ``apply_plan`` performs the calls.

Rules:
- A field is unchanged when both values are empty (None, "" or an empty
  collection) or when both are present and equal. Date fields compare as UTC
  instants; a number and a string compare by their text.
- Changed fields missing from ``permitted_attributes`` are blocked. A plan
  with blocked fields first reopens the issue, then sends every change, then
  restores the original status unless the edit changes the status itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..integrations.bim360 import BIM360Client
from ..models import Issue, IssueStatus
from .cells import parse_datetime

DATE_FIELDS = {"due_date", "created_at", "updated_at"}
CUSTOM_ATTRIBUTES = "custom_attributes"
UNLOCK_STATUS = IssueStatus.OPEN.value


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def values_equal(current: Any, candidate: Any, field_name: Optional[str] = None) -> bool:
    """Typed equality used to tell real edits from round-trip noise."""
    current_empty, candidate_empty = is_empty(current), is_empty(candidate)
    if current_empty or candidate_empty:
        return current_empty and candidate_empty
    if field_name in DATE_FIELDS or isinstance(current, datetime) or isinstance(candidate, datetime):
        try:
            return parse_datetime(current) == parse_datetime(candidate)
        except ValueError:
            return False
    if isinstance(current, bool) or isinstance(candidate, bool):
        return current == candidate
    if type(current) is not type(candidate) and _is_scalar(current) and _is_scalar(candidate):
        return _scalar_text(current) == _scalar_text(candidate)
    return current == candidate


def _is_scalar(value: Any) -> bool:
    return isinstance(value, (str, int, float))


def _scalar_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def diff_custom_attributes(current: Issue, candidate: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Entries of ``candidate`` whose value differs from the issue's."""
    existing = current.custom_attribute_values()
    return [
        entry
        for entry in candidate
        if not values_equal(existing.get(entry["id"]), entry.get("value"))
    ]


@dataclass
class UpdatePlan:
    """Remote calls needed to apply one row's edits."""

    changes: Dict[str, Any] = field(default_factory=dict)
    blocked: List[str] = field(default_factory=list)
    calls: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.calls


def plan_update(current: Issue, candidate: Dict[str, Any]) -> UpdatePlan:
    """Compare a parsed row with the fresh issue and plan the update calls."""
    changes: Dict[str, Any] = {}
    for name, value in candidate.items():
        if name == CUSTOM_ATTRIBUTES:
            changed = diff_custom_attributes(current, value or [])
            if changed:
                changes[name] = changed
            continue
        if not values_equal(getattr(current, name, None), value, name):
            changes[name] = value

    if not changes:
        return UpdatePlan()

    permitted = set(current.permitted_attributes)
    blocked = [name for name in changes if name not in permitted]
    if not blocked:
        return UpdatePlan(changes=changes, calls=[dict(changes)])

    calls = [{"status": UNLOCK_STATUS}, dict(changes)]
    if "status" not in changes:
        calls.append({"status": current.status})
    return UpdatePlan(changes=changes, blocked=blocked, calls=calls)


async def apply_plan(
    client: BIM360Client, container_id: str, current: Issue, plan: UpdatePlan
) -> Issue:
    """Send the planned calls in order and return the last server response.

    A failing call aborts the remaining ones; calls already made are not
    rolled back.
    """
    updated = current
    for attributes in plan.calls:
        updated = await client.update_issue(container_id, current.id, attributes)
    return updated
