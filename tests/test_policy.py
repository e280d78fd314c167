"""Unit tests for the reconciliation policy."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from bim360_issue_editor.integrations import BIM360APIError, BIM360Client
from bim360_issue_editor.sync.policy import (
    apply_plan,
    diff_custom_attributes,
    plan_update,
    values_equal,
)

from conftest import make_issue


class TestValuesEqual:
    """Typed equality between server values and sheet values."""

    @pytest.mark.parametrize("current, candidate", [(None, ""), ("", None), ([], None), (None, None)])
    def test_empty_values_are_equal(self, current, candidate):
        assert values_equal(current, candidate)

    @pytest.mark.parametrize("current, candidate", [(None, "x"), ("x", ""), (0, None)])
    def test_empty_and_present_differ(self, current, candidate):
        assert not values_equal(current, candidate)

    def test_dates_compare_as_instants(self):
        assert values_equal("2024-05-01T00:00:00Z", "2024-05-01T00:00:00.000Z", "due_date")
        assert values_equal("2024-05-01T02:00:00+02:00", "2024-05-01T00:00:00.000Z", "due_date")
        assert not values_equal("2024-05-01T00:00:00Z", "2024-05-02T00:00:00.000Z", "due_date")

    def test_numbers_and_text_compare_by_text(self):
        assert values_equal(5, "5")
        assert values_equal(5.0, "5")
        assert not values_equal(5, "6")

    def test_booleans_are_strict(self):
        assert not values_equal(True, "True")

    def test_strings_compare_exactly(self):
        assert not values_equal("Title", "title")


class TestCustomAttributes:
    def test_only_changed_entries_are_kept(self):
        issue = make_issue()
        candidate = [{"id": "A1", "value": "opt-2"}, {"id": "A2", "value": "new note"}]

        assert diff_custom_attributes(issue, candidate) == [{"id": "A2", "value": "new note"}]

    def test_unknown_attribute_with_value_is_a_change(self):
        issue = make_issue(custom_attributes=[])

        assert diff_custom_attributes(issue, [{"id": "A3", "value": 4}]) == [{"id": "A3", "value": 4}]
        assert diff_custom_attributes(issue, [{"id": "A3", "value": None}]) == []


class TestPlanUpdate:
    """Which update calls a row turns into."""

    def test_unchanged_candidate_is_a_noop(self):
        issue = make_issue()

        plan = plan_update(issue, {"title": issue.title, "description": issue.description, "answer": ""})

        assert plan.is_noop
        assert plan.calls == []

    def test_permitted_changes_take_one_call(self):
        issue = make_issue()

        plan = plan_update(issue, {"title": "New title", "status": "open"})

        assert plan.calls == [{"title": "New title"}]
        assert plan.blocked == []

    def test_blocked_change_including_status_skips_restore(self):
        issue = make_issue(status="draft", permitted_attributes=["title"])

        plan = plan_update(issue, {"title": "New title", "status": "closed"})

        assert plan.blocked == ["status"]
        assert plan.calls == [
            {"status": "open"},
            {"title": "New title", "status": "closed"},
        ]

    def test_blocked_change_restores_original_status(self):
        issue = make_issue(status="draft", permitted_attributes=["title"])

        plan = plan_update(issue, {"title": "New title", "answer": "Fixed", "status": "draft"})

        assert plan.blocked == ["answer"]
        assert plan.calls == [
            {"status": "open"},
            {"title": "New title", "answer": "Fixed"},
            {"status": "draft"},
        ]

    def test_all_changes_blocked(self):
        issue = make_issue(status="closed", permitted_attributes=[])

        plan = plan_update(issue, {"title": "New title"})

        assert plan.calls == [{"status": "open"}, {"title": "New title"}, {"status": "closed"}]


class TestApplyPlan:
    @pytest.mark.asyncio
    async def test_calls_are_sent_in_order(self):
        issue = make_issue(status="draft", permitted_attributes=["title"])
        plan = plan_update(issue, {"title": "New title", "answer": "Fixed"})
        client = MagicMock(spec=BIM360Client)
        final = make_issue(title="New title", answer="Fixed", status="draft")
        client.update_issue = AsyncMock(side_effect=[make_issue(status="open"), make_issue(), final])

        updated = await apply_plan(client, "c1", issue, plan)

        assert updated is final
        assert [call.args for call in client.update_issue.await_args_list] == [
            ("c1", "issue-1", {"status": "open"}),
            ("c1", "issue-1", {"title": "New title", "answer": "Fixed"}),
            ("c1", "issue-1", {"status": "draft"}),
        ]

    @pytest.mark.asyncio
    async def test_failed_call_stops_the_sequence(self):
        issue = make_issue(status="draft", permitted_attributes=["title"])
        plan = plan_update(issue, {"answer": "Fixed"})
        client = MagicMock(spec=BIM360Client)
        client.update_issue = AsyncMock(
            side_effect=[make_issue(status="open"), BIM360APIError(403, "Forbidden")]
        )

        with pytest.raises(BIM360APIError):
            await apply_plan(client, "c1", issue, plan)

        assert client.update_issue.await_count == 2
