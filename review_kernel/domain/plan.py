"""
Plan aggregate (``review_kernel.domain.plan``).

Responsibility
--------------
The performance plan as the workflow sees it: assignments, lifecycle
status, optimistic-concurrency version, comment ledger and approval
records, plus the read-only ``PlanSnapshot`` projection handed back to
the shell.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects, ZERO I/O.

Invariants enforced
-------------------
* Supervisor and reviewer (when present) differ from the employee and
  from each other -- checked on every construction.
* The ledger and approval records belong to this plan.
* ``Plan`` is frozen; status changes come only from the state machine
  via the coordinator / intake service producing a new value.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from review_kernel.domain.approval_tracker import ApprovalTracker
from review_kernel.domain.comment_ledger import CommentLedger
from review_kernel.domain.values import (
    ApprovalRecord,
    CommentEntry,
    PlanMetadata,
    PlanStatus,
    ReviewRole,
)
from review_kernel.exceptions import PlanAssignmentError


def validate_assignment(
    employee_id: UUID,
    supervisor_id: UUID,
    reviewer_id: UUID | None,
) -> None:
    """Raise ``PlanAssignmentError`` unless all assigned people are distinct."""
    if supervisor_id == employee_id:
        raise PlanAssignmentError("supervisor must differ from the employee")
    if reviewer_id is None:
        return
    if reviewer_id == employee_id:
        raise PlanAssignmentError("reviewer must differ from the employee")
    if reviewer_id == supervisor_id:
        raise PlanAssignmentError("reviewer must differ from the supervisor")


@dataclass(frozen=True)
class Plan:
    """A performance plan under review."""

    plan_id: UUID
    employee_id: UUID
    supervisor_id: UUID
    reviewer_id: UUID | None
    status: PlanStatus
    ledger: CommentLedger
    approvals: ApprovalTracker
    created_at: datetime
    updated_at: datetime
    version: int = 1
    metadata: PlanMetadata = field(default_factory=PlanMetadata)
    submitted_at: datetime | None = None

    def __post_init__(self) -> None:
        validate_assignment(self.employee_id, self.supervisor_id, self.reviewer_id)
        if self.ledger.plan_id != self.plan_id:
            raise ValueError("Comment ledger belongs to a different plan")
        if self.approvals.plan_id != self.plan_id:
            raise ValueError("Approval records belong to a different plan")

    @classmethod
    def new_draft(
        cls,
        employee_id: UUID,
        supervisor_id: UUID,
        reviewer_id: UUID | None,
        created_at: datetime,
        metadata: PlanMetadata | None = None,
        plan_id: UUID | None = None,
    ) -> Plan:
        """Build a fresh draft plan with empty ledgers and pending approvals."""
        plan_id = plan_id or uuid4()
        return cls(
            plan_id=plan_id,
            employee_id=employee_id,
            supervisor_id=supervisor_id,
            reviewer_id=reviewer_id,
            status=PlanStatus.DRAFT,
            ledger=CommentLedger(plan_id),
            approvals=ApprovalTracker(plan_id),
            created_at=created_at,
            updated_at=created_at,
            metadata=metadata or PlanMetadata(),
        )

    @property
    def has_reviewer(self) -> bool:
        return self.reviewer_id is not None

    def bound_roles(self, actor_id: UUID) -> tuple[ReviewRole, ...]:
        """Roles ``actor_id`` holds on this plan, derived from the assignments."""
        roles: list[ReviewRole] = []
        if actor_id == self.supervisor_id:
            roles.append(ReviewRole.SUPERVISOR)
        if self.reviewer_id is not None and actor_id == self.reviewer_id:
            roles.append(ReviewRole.REVIEWER)
        return tuple(roles)

    def is_bound(self, actor_id: UUID, role: ReviewRole) -> bool:
        return role in self.bound_roles(actor_id)

    def revise(self, at: datetime, **changes: Any) -> Plan:
        """Successor value: ``changes`` applied, version bumped, stamped ``at``."""
        return replace(self, version=self.version + 1, updated_at=at, **changes)

    def snapshot(self) -> PlanSnapshot:
        return PlanSnapshot(
            plan_id=self.plan_id,
            employee_id=self.employee_id,
            supervisor_id=self.supervisor_id,
            reviewer_id=self.reviewer_id,
            status=self.status,
            version=self.version,
            metadata=self.metadata,
            supervisor_comments=self.ledger.supervisor,
            reviewer_comments=self.ledger.reviewer,
            supervisor_approval=self.approvals.supervisor,
            reviewer_approval=self.approvals.reviewer,
            created_at=self.created_at,
            updated_at=self.updated_at,
            submitted_at=self.submitted_at,
        )


@dataclass(frozen=True)
class PlanSnapshot:
    """Read-only projection of a plan: status, ledgers and approvals."""

    plan_id: UUID
    employee_id: UUID
    supervisor_id: UUID
    reviewer_id: UUID | None
    status: PlanStatus
    version: int
    metadata: PlanMetadata
    supervisor_comments: tuple[CommentEntry, ...]
    reviewer_comments: tuple[CommentEntry, ...]
    supervisor_approval: ApprovalRecord
    reviewer_approval: ApprovalRecord
    created_at: datetime
    updated_at: datetime
    submitted_at: datetime | None = None

    def comments_for(self, role: ReviewRole) -> tuple[CommentEntry, ...]:
        if role == ReviewRole.SUPERVISOR:
            return self.supervisor_comments
        return self.reviewer_comments

    def approval_for(self, role: ReviewRole) -> ApprovalRecord:
        if role == ReviewRole.SUPERVISOR:
            return self.supervisor_approval
        return self.reviewer_approval

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready payload for the workflow history view."""
        return {
            "plan_id": str(self.plan_id),
            "employee_id": str(self.employee_id),
            "supervisor_id": str(self.supervisor_id),
            "reviewer_id": str(self.reviewer_id) if self.reviewer_id else None,
            "status": self.status.value,
            "version": self.version,
            "metadata": self.metadata.to_dict(),
            "supervisor_comments": [c.to_dict() for c in self.supervisor_comments],
            "reviewer_comments": [c.to_dict() for c in self.reviewer_comments],
            "supervisor_approval": self.supervisor_approval.to_dict(),
            "reviewer_approval": self.reviewer_approval.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
