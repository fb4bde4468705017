"""
Tests for PlanSelector -- read-only plan queries over the SQL store.

Covers:
- get_snapshot matches the coordinator's view, None when absent
- iter_comments streams one or both ledgers in order
- plans_awaiting_actor returns the right work queue per person
"""

from uuid import uuid4

import pytest

from review_kernel.domain.values import PlanStatus, ReviewRole, WorkflowAction
from review_kernel.selectors.plan_selector import PlanSelector
from review_kernel.services.plan_intake_service import PlanIntakeService
from review_kernel.services.workflow_coordinator import WorkflowCoordinator


@pytest.fixture
def sql_intake(sql_store, deterministic_clock):
    return PlanIntakeService(sql_store, clock=deterministic_clock)


@pytest.fixture
def sql_coordinator(sql_store, deterministic_clock):
    return WorkflowCoordinator(sql_store, clock=deterministic_clock)


@pytest.fixture
def reviewed_plan(sql_intake, sql_coordinator, employee_id, supervisor_id, reviewer_id,
                  deterministic_clock):
    """Plan in reviewer assessment with comments on both ledgers."""
    plan = sql_intake.create_plan(employee_id, supervisor_id, reviewer_id)
    sql_intake.submit_plan(plan.plan_id, employee_id)
    for body in ("first", "second", "third"):
        deterministic_clock.advance(1)
        sql_coordinator.apply_action(plan.plan_id, supervisor_id, "supervisor", "comment", body)
    sql_coordinator.apply_action(plan.plan_id, supervisor_id, "supervisor", "approve")
    sql_coordinator.apply_action(plan.plan_id, reviewer_id, "reviewer", "comment", "reviewer note")
    return plan.plan_id


class TestGetSnapshot:
    def test_matches_coordinator(self, session, sql_coordinator, reviewed_plan):
        snapshot = PlanSelector(session).get_snapshot(reviewed_plan)
        assert snapshot == sql_coordinator.get_plan_snapshot(reviewed_plan)
        assert snapshot.status == PlanStatus.REVIEWER_ASSESSMENT

    def test_absent_plan(self, session):
        assert PlanSelector(session).get_snapshot(uuid4()) is None


class TestIterComments:
    def test_single_role_in_order(self, session, reviewed_plan):
        selector = PlanSelector(session, yield_per=2)
        entries = list(selector.iter_comments(reviewed_plan, ReviewRole.SUPERVISOR))
        assert [e.body for e in entries] == ["first", "second", "third", ""]
        assert [e.sequence for e in entries] == [1, 2, 3, 4]

    def test_both_roles(self, session, reviewed_plan):
        entries = list(PlanSelector(session).iter_comments(reviewed_plan))
        assert [e.role for e in entries] == [ReviewRole.SUPERVISOR] * 4 + [ReviewRole.REVIEWER]

    def test_is_lazy(self, session, reviewed_plan):
        stream = PlanSelector(session).iter_comments(reviewed_plan)
        assert next(stream).body == "first"

    def test_unknown_plan_yields_nothing(self, session):
        assert list(PlanSelector(session).iter_comments(uuid4())) == []


class TestWorkQueues:
    def test_supervisor_queue(
        self, session, sql_intake, sql_coordinator, employee_id, supervisor_id, reviewer_id,
    ):
        waiting = sql_intake.create_plan(employee_id, supervisor_id, reviewer_id)
        sql_intake.submit_plan(waiting.plan_id, employee_id)
        in_review = sql_intake.create_plan(employee_id, supervisor_id, reviewer_id)
        sql_intake.submit_plan(in_review.plan_id, employee_id)
        sql_coordinator.apply_action(in_review.plan_id, supervisor_id, "supervisor", "comment", "x")
        sql_intake.create_plan(employee_id, supervisor_id, reviewer_id)  # still a draft
        passed_on = sql_intake.create_plan(employee_id, supervisor_id, reviewer_id)
        sql_intake.submit_plan(passed_on.plan_id, employee_id)
        sql_coordinator.apply_action(passed_on.plan_id, supervisor_id, "supervisor", "approve")
        sent_back = sql_intake.create_plan(employee_id, supervisor_id, reviewer_id)
        sql_intake.submit_plan(sent_back.plan_id, employee_id)
        sql_coordinator.apply_action(
            sent_back.plan_id, supervisor_id, "supervisor", "request_changes", "Add goals",
        )

        queue = PlanSelector(session).plans_awaiting_actor(supervisor_id)
        assert {s.plan_id for s in queue} == {
            waiting.plan_id, in_review.plan_id, sent_back.plan_id,
        }

        reviewer_queue = PlanSelector(session).plans_awaiting_actor(reviewer_id)
        assert [s.plan_id for s in reviewer_queue] == [passed_on.plan_id]

    def test_queue_agrees_with_available_actions(
        self, session, sql_intake, sql_coordinator, employee_id, supervisor_id, reviewer_id,
    ):
        plan = sql_intake.create_plan(employee_id, supervisor_id, reviewer_id)
        sql_intake.submit_plan(plan.plan_id, employee_id)
        sql_coordinator.apply_action(plan.plan_id, supervisor_id, "supervisor", "approve")
        sql_coordinator.apply_action(
            plan.plan_id, reviewer_id, "reviewer", "request_changes", "Needs metrics",
        )

        actions = {a.action for a in sql_coordinator.available_actions(plan.plan_id, supervisor_id)}
        assert WorkflowAction.APPROVE in actions
        queue = PlanSelector(session).plans_awaiting_actor(supervisor_id)
        assert [s.plan_id for s in queue] == [plan.plan_id]
        assert PlanSelector(session).plans_awaiting_actor(reviewer_id) == []

    def test_stranger_has_empty_queue(self, session, reviewed_plan):
        assert PlanSelector(session).plans_awaiting_actor(uuid4()) == []
