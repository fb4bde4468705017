"""
Approval tracker (``review_kernel.domain.approval_tracker``).

Responsibility
--------------
Per-role approval records for one plan, and the derived question of
whether the plan may enter the reviewer stage.

Architecture position
---------------------
**Kernel domain layer** -- pure value object, ZERO I/O.

Invariants enforced
-------------------
* Sole writer of approval state: the only ways to change a record are
  ``record_approval`` and ``reset``.
* ``decided_at`` is stamped only when a record becomes ``approved``.
* A reviewer ``request_changes`` sends the supervisor record back to
  pending: the revised plan needs a fresh supervisor approval before it
  can reach the reviewer again.

Non-goals
---------
No re-validation.  Whether a reviewer may approve before the supervisor
has is decided by the state machine guard before this is ever called.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from uuid import UUID

from review_kernel.domain.values import (
    ApprovalRecord,
    ApprovalState,
    ReviewRole,
    WorkflowAction,
)

_ACTION_OUTCOMES: dict[WorkflowAction, ApprovalState] = {
    WorkflowAction.APPROVE: ApprovalState.APPROVED,
    WorkflowAction.REQUEST_CHANGES: ApprovalState.CHANGES_REQUESTED,
    WorkflowAction.FINAL_APPROVE: ApprovalState.APPROVED,
}


@dataclass(frozen=True)
class ApprovalTracker:
    """Supervisor and reviewer approval records for one plan."""

    plan_id: UUID
    supervisor: ApprovalRecord = field(default_factory=ApprovalRecord)
    reviewer: ApprovalRecord = field(default_factory=ApprovalRecord)

    def record_for(self, role: ReviewRole) -> ApprovalRecord:
        if role == ReviewRole.SUPERVISOR:
            return self.supervisor
        return self.reviewer

    def record_approval(
        self,
        plan_id: UUID,
        role: ReviewRole,
        action: WorkflowAction,
        at: datetime,
    ) -> ApprovalTracker:
        """Set the role's record from an approval-bearing action.

        ``approve`` and ``final_approve`` -> approved (stamped ``at``);
        ``request_changes`` -> changes_requested, and for the reviewer the
        supervisor record also returns to pending.

        Raises:
            ValueError: wrong plan, or ``action`` carries no approval
                meaning (``comment``).
        """
        if plan_id != self.plan_id:
            raise ValueError(
                f"Approvals belong to plan {self.plan_id}, not {plan_id}"
            )
        state = _ACTION_OUTCOMES.get(action)
        if state is None:
            raise ValueError(f"Action {action.value!r} does not record an approval")

        record = ApprovalRecord(
            state=state,
            decided_at=at if state == ApprovalState.APPROVED else None,
        )
        if role == ReviewRole.SUPERVISOR:
            return replace(self, supervisor=record)
        if action == WorkflowAction.REQUEST_CHANGES:
            return replace(self, reviewer=record, supervisor=ApprovalRecord())
        return replace(self, reviewer=record)

    def is_eligible_for_reviewer_stage(self, plan_id: UUID | None = None) -> bool:
        """True iff the supervisor record is approved."""
        if plan_id is not None and plan_id != self.plan_id:
            raise ValueError(
                f"Approvals belong to plan {self.plan_id}, not {plan_id}"
            )
        return self.supervisor.is_approved

    def reset(self) -> ApprovalTracker:
        """Both records back to pending, for a fresh review round."""
        return replace(self, supervisor=ApprovalRecord(), reviewer=ApprovalRecord())
