"""
Plan state machine (``review_kernel.domain.state_machine``).

Responsibility
--------------
Owns the plan lifecycle.  Every legal workflow move is one row of
``PLAN_TRANSITIONS``, keyed by (current status, role, action).  A key
that is not in the table is an illegal move; there are no other
conditionals deciding legality.

Architecture position
---------------------
**Kernel domain layer** -- pure, ZERO I/O.  Consumed by the workflow
coordinator (review actions) and the intake service (submission).

Invariants enforced
-------------------
* A plan only moves along edges in ``PLAN_TRANSITIONS`` or
  ``SUBMISSION_TRANSITIONS``.
* ``approved`` is terminal.
* Reviewer comment / final approval require the supervisor record to be
  approved.
* Supervisor approval skips ``reviewer_assessment`` when the plan has no
  reviewer.

Failure modes
-------------
* ``InvalidTransitionError`` carrying the current status.

Stage entry
-----------
The first supervisor action on a ``submitted`` (or resubmitted) plan
enters ``supervisor_review``.  A ``comment`` stops there; ``approve`` and
``request_changes`` then continue to their own target in the same call.
Rules record that pass-through as ``via``.
"""

from __future__ import annotations

from dataclasses import dataclass

from review_kernel.domain.plan import Plan
from review_kernel.domain.values import (
    APPROVAL_ACTIONS,
    TERMINAL_PLAN_STATUSES,
    PlanStatus,
    ReviewRole,
    WorkflowAction,
)
from review_kernel.exceptions import InvalidTransitionError


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table.

    ``target`` of None means the action leaves the status unchanged.
    ``target_without_reviewer`` replaces ``target`` on plans that have no
    reviewer assigned.
    """

    target: PlanStatus | None
    target_without_reviewer: PlanStatus | None = None
    via: PlanStatus | None = None
    requires_supervisor_approval: bool = False

    def resolve(self, has_reviewer: bool) -> PlanStatus | None:
        if not has_reviewer and self.target_without_reviewer is not None:
            return self.target_without_reviewer
        return self.target


@dataclass(frozen=True)
class PlanTransition:
    """The outcome of a legal move."""

    from_status: PlanStatus
    to_status: PlanStatus
    role: str
    action: str
    via: PlanStatus | None = None

    @property
    def changes_status(self) -> bool:
        return self.from_status != self.to_status

    @property
    def path(self) -> tuple[PlanStatus, ...]:
        """Every status the plan passes through, start and end included."""
        steps = [self.from_status]
        if self.via is not None and self.via not in (self.from_status, self.to_status):
            steps.append(self.via)
        if self.to_status != steps[-1]:
            steps.append(self.to_status)
        return tuple(steps)


_S = ReviewRole.SUPERVISOR
_R = ReviewRole.REVIEWER

_SUPERVISOR_APPROVAL = dict(
    target=PlanStatus.REVIEWER_ASSESSMENT,
    target_without_reviewer=PlanStatus.APPROVED,
)

PLAN_TRANSITIONS: dict[
    tuple[PlanStatus, ReviewRole, WorkflowAction], TransitionRule
] = {
    # Supervisor stage
    (PlanStatus.SUBMITTED, _S, WorkflowAction.COMMENT):
        TransitionRule(target=PlanStatus.SUPERVISOR_REVIEW),
    (PlanStatus.REVISION_REQUESTED, _S, WorkflowAction.COMMENT):
        TransitionRule(target=PlanStatus.SUPERVISOR_REVIEW),
    (PlanStatus.SUPERVISOR_REVIEW, _S, WorkflowAction.COMMENT):
        TransitionRule(target=None),
    (PlanStatus.SUBMITTED, _S, WorkflowAction.APPROVE):
        TransitionRule(**_SUPERVISOR_APPROVAL, via=PlanStatus.SUPERVISOR_REVIEW),
    (PlanStatus.REVISION_REQUESTED, _S, WorkflowAction.APPROVE):
        TransitionRule(**_SUPERVISOR_APPROVAL, via=PlanStatus.SUPERVISOR_REVIEW),
    (PlanStatus.SUPERVISOR_REVIEW, _S, WorkflowAction.APPROVE):
        TransitionRule(**_SUPERVISOR_APPROVAL),
    (PlanStatus.SUBMITTED, _S, WorkflowAction.REQUEST_CHANGES):
        TransitionRule(
            target=PlanStatus.REVISION_REQUESTED,
            via=PlanStatus.SUPERVISOR_REVIEW,
        ),
    (PlanStatus.SUPERVISOR_REVIEW, _S, WorkflowAction.REQUEST_CHANGES):
        TransitionRule(target=PlanStatus.REVISION_REQUESTED),
    # Supervisor remarks stay open while the reviewer assesses
    (PlanStatus.REVIEWER_ASSESSMENT, _S, WorkflowAction.COMMENT):
        TransitionRule(target=None),
    # Reviewer stage
    (PlanStatus.REVIEWER_ASSESSMENT, _R, WorkflowAction.COMMENT):
        TransitionRule(target=None, requires_supervisor_approval=True),
    (PlanStatus.REVIEWER_ASSESSMENT, _R, WorkflowAction.FINAL_APPROVE):
        TransitionRule(
            target=PlanStatus.APPROVED,
            requires_supervisor_approval=True,
        ),
    (PlanStatus.REVIEWER_ASSESSMENT, _R, WorkflowAction.REQUEST_CHANGES):
        TransitionRule(target=PlanStatus.REVISION_REQUESTED),
}

# Employee-side moves owned by the surrounding shell.
SUBMISSION_TRANSITIONS: dict[PlanStatus, PlanStatus] = {
    PlanStatus.DRAFT: PlanStatus.SUBMITTED,
    PlanStatus.REVISION_REQUESTED: PlanStatus.SUBMITTED,
}

SUBMIT_ACTION = "submit"
EMPLOYEE_ROLE = "employee"


def workflow_edges() -> frozenset[tuple[PlanStatus, PlanStatus]]:
    """Every (from, to) status edge a plan may ever take, one hop at a time."""
    edges: set[tuple[PlanStatus, PlanStatus]] = set()
    for (status, _role, _action), rule in PLAN_TRANSITIONS.items():
        start = status
        if rule.via is not None:
            edges.add((status, rule.via))
            start = rule.via
        for target in (rule.target, rule.target_without_reviewer):
            if target is not None:
                edges.add((start, target))
    edges.update(SUBMISSION_TRANSITIONS.items())
    return frozenset(edges)


def statuses_awaiting(role: ReviewRole) -> frozenset[PlanStatus]:
    """Statuses in which ``role`` can decide the plan's course.

    A status counts when the table gives ``role`` an approval-bearing
    action there; remarks alone (a supervisor ``comment`` during
    reviewer assessment) do not.
    """
    return frozenset(
        status
        for status, rule_role, action in PLAN_TRANSITIONS
        if rule_role == role and action in APPROVAL_ACTIONS
    )


class PlanStateMachine:
    """Validates and resolves workflow moves against the transition table."""

    def __init__(
        self,
        transitions: dict[
            tuple[PlanStatus, ReviewRole, WorkflowAction], TransitionRule
        ] | None = None,
    ) -> None:
        self._transitions = PLAN_TRANSITIONS if transitions is None else transitions

    def evaluate(
        self,
        plan: Plan,
        role: ReviewRole,
        action: WorkflowAction,
    ) -> PlanTransition:
        """Resolve ``action`` by ``role`` on ``plan``.

        Does not check the role binding; callers establish that first.

        Raises:
            InvalidTransitionError: the move is not in the table, the plan
                is terminal, or the rule's supervisor-approval guard fails.
        """
        if plan.status in TERMINAL_PLAN_STATUSES:
            raise InvalidTransitionError(
                str(plan.plan_id), plan.status.value, role.value, action.value,
                reason="plan is already approved",
            )

        rule = self._transitions.get((plan.status, role, action))
        if rule is None:
            raise InvalidTransitionError(
                str(plan.plan_id), plan.status.value, role.value, action.value,
            )

        if (
            rule.requires_supervisor_approval
            and not plan.approvals.is_eligible_for_reviewer_stage(plan.plan_id)
        ):
            raise InvalidTransitionError(
                str(plan.plan_id), plan.status.value, role.value, action.value,
                reason="supervisor approval is required first",
            )

        target = rule.resolve(plan.has_reviewer)
        return PlanTransition(
            from_status=plan.status,
            to_status=target if target is not None else plan.status,
            role=role.value,
            action=action.value,
            via=rule.via,
        )

    def is_allowed(
        self,
        plan: Plan,
        role: ReviewRole,
        action: WorkflowAction,
    ) -> bool:
        try:
            self.evaluate(plan, role, action)
        except InvalidTransitionError:
            return False
        return True

    def allowed_actions(
        self,
        plan: Plan,
        role: ReviewRole,
    ) -> tuple[WorkflowAction, ...]:
        """Actions ``role`` may take on ``plan`` right now, in enum order."""
        return tuple(
            action for action in WorkflowAction
            if self.is_allowed(plan, role, action)
        )

    def evaluate_submission(self, plan: Plan) -> PlanTransition:
        """Resolve an employee (re)submission.

        Raises:
            InvalidTransitionError: the plan is not a draft or awaiting
                revision.
        """
        target = SUBMISSION_TRANSITIONS.get(plan.status)
        if target is None:
            raise InvalidTransitionError(
                str(plan.plan_id), plan.status.value, EMPLOYEE_ROLE, SUBMIT_ACTION,
            )
        return PlanTransition(
            from_status=plan.status,
            to_status=target,
            role=EMPLOYEE_ROLE,
            action=SUBMIT_ACTION,
        )
