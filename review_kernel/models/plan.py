"""
Module: review_kernel.models.plan
Responsibility: ORM persistence for performance plans and their comment
    ledgers.

Architecture position: Kernel > Models.  May import from db/ and, for DTO
    conversion, domain/.

Invariants enforced:
    - Status, role, action and approval columns are limited to the domain
      enum values by check constraints.
    - ``version`` is the optimistic-concurrency token; the plan store only
      ever writes it through a compare-and-swap UPDATE.
    - Comment rows are append-only: UNIQUE(plan_id, role, sequence) and ORM
      listeners reject UPDATE and DELETE.

Failure modes:
    - IntegrityError on duplicate plan_id or duplicate ledger position.
    - LedgerImmutabilityError on comment UPDATE/DELETE.

Audit relevance:
    Comment rows are the attributable review history: who said what, in
    which role, with which action, and when.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from review_kernel.db.base import Base
from review_kernel.db.types import UUIDString
from review_kernel.domain.approval_tracker import ApprovalTracker
from review_kernel.domain.comment_ledger import CommentLedger
from review_kernel.domain.plan import Plan
from review_kernel.domain.values import (
    ApprovalRecord,
    ApprovalState,
    MAX_NAME_LENGTH,
    MAX_TITLE_LENGTH,
    CommentEntry,
    PlanMetadata,
    PlanStatus,
    ReviewRole,
    WorkflowAction,
)
from review_kernel.exceptions import LedgerImmutabilityError


def _in_clause(column: str, values) -> str:
    quoted = ", ".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({quoted})"


class PerformancePlanModel(Base):
    """Persistent performance plan.

    Contract:
        Rows are created by the plan store's ``add_plan`` and afterwards
        changed only by its versioned ``save_plan``.
    """

    __tablename__ = "performance_plans"

    __table_args__ = (
        CheckConstraint(
            _in_clause("status", PlanStatus),
            name="ck_performance_plans_valid_status",
        ),
        CheckConstraint(
            _in_clause("supervisor_approval", ApprovalState),
            name="ck_performance_plans_supervisor_approval",
        ),
        CheckConstraint(
            _in_clause("reviewer_approval", ApprovalState),
            name="ck_performance_plans_reviewer_approval",
        ),
        CheckConstraint("version >= 1", name="ck_performance_plans_version"),
        # Work queue lookups
        Index("ix_performance_plans_supervisor_status", "supervisor_id", "status"),
        Index("ix_performance_plans_reviewer_status", "reviewer_id", "status"),
    )

    plan_id: Mapped[UUID] = mapped_column(
        UUIDString(), nullable=False, unique=True,
    )
    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    supervisor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reviewer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    title: Mapped[str] = mapped_column(String(MAX_TITLE_LENGTH), nullable=False, default="")
    plan_year: Mapped[int | None] = mapped_column(nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    supervisor_approval: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ApprovalState.PENDING.value,
    )
    supervisor_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewer_approval: Mapped[str] = mapped_column(
        String(30), nullable=False, default=ApprovalState.PENDING.value,
    )
    reviewer_approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    comments: Mapped[list["PlanCommentModel"]] = relationship(
        "PlanCommentModel",
        back_populates="plan",
        primaryjoin="PerformancePlanModel.plan_id == PlanCommentModel.plan_id",
        order_by="(PlanCommentModel.role, PlanCommentModel.sequence)",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<PerformancePlan {self.plan_id} "
            f"status={self.status} v{self.version}>"
        )

    @staticmethod
    def state_values(plan: Plan) -> dict:
        """Column values that a workflow save may change."""
        return {
            "status": plan.status.value,
            "version": plan.version,
            "supervisor_approval": plan.approvals.supervisor.state.value,
            "supervisor_approved_at": plan.approvals.supervisor.decided_at,
            "reviewer_approval": plan.approvals.reviewer.state.value,
            "reviewer_approved_at": plan.approvals.reviewer.decided_at,
            "updated_at": plan.updated_at,
            "submitted_at": plan.submitted_at,
        }

    @classmethod
    def from_domain(cls, plan: Plan) -> PerformancePlanModel:
        """Create ORM model (without comment rows) from a domain plan."""
        return cls(
            plan_id=plan.plan_id,
            employee_id=plan.employee_id,
            supervisor_id=plan.supervisor_id,
            reviewer_id=plan.reviewer_id,
            title=plan.metadata.title,
            plan_year=plan.metadata.year,
            start_date=plan.metadata.start_date,
            end_date=plan.metadata.end_date,
            created_at=plan.created_at,
            **cls.state_values(plan),
        )

    def to_domain(self) -> Plan:
        """Convert ORM model and its comment rows to a frozen domain plan."""
        supervisor: list[CommentEntry] = []
        reviewer: list[CommentEntry] = []
        for row in sorted(self.comments, key=lambda c: (c.role, c.sequence)):
            entry = row.to_domain()
            if entry.role == ReviewRole.SUPERVISOR:
                supervisor.append(entry)
            else:
                reviewer.append(entry)

        return Plan(
            plan_id=self.plan_id,
            employee_id=self.employee_id,
            supervisor_id=self.supervisor_id,
            reviewer_id=self.reviewer_id,
            status=PlanStatus(self.status),
            version=self.version,
            metadata=PlanMetadata(
                title=self.title,
                year=self.plan_year,
                start_date=self.start_date,
                end_date=self.end_date,
            ),
            ledger=CommentLedger(
                self.plan_id,
                supervisor=tuple(supervisor),
                reviewer=tuple(reviewer),
            ),
            approvals=ApprovalTracker(
                self.plan_id,
                supervisor=ApprovalRecord(
                    ApprovalState(self.supervisor_approval),
                    self.supervisor_approved_at,
                ),
                reviewer=ApprovalRecord(
                    ApprovalState(self.reviewer_approval),
                    self.reviewer_approved_at,
                ),
            ),
            created_at=self.created_at,
            updated_at=self.updated_at,
            submitted_at=self.submitted_at,
        )


class PlanCommentModel(Base):
    """Persistent comment ledger entry. Append-only.

    Contract:
        Entries are immutable once created -- no UPDATE, no DELETE.
    """

    __tablename__ = "plan_comments"

    __table_args__ = (
        UniqueConstraint(
            "plan_id", "role", "sequence",
            name="uq_plan_comments_position",
        ),
        CheckConstraint(
            _in_clause("role", ReviewRole),
            name="ck_plan_comments_valid_role",
        ),
        CheckConstraint(
            _in_clause("action", WorkflowAction),
            name="ck_plan_comments_valid_action",
        ),
        CheckConstraint("sequence >= 1", name="ck_plan_comments_sequence"),
        Index("ix_plan_comments_plan_role", "plan_id", "role", "sequence"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(), nullable=False, unique=True,
    )
    plan_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("performance_plans.plan_id"),
        nullable=False,
    )
    role: Mapped[str] = mapped_column(String(30), nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    author_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    author_name: Mapped[str] = mapped_column(String(MAX_NAME_LENGTH), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    plan: Mapped["PerformancePlanModel"] = relationship(
        "PerformancePlanModel",
        back_populates="comments",
        foreign_keys=[plan_id],
        primaryjoin="PlanCommentModel.plan_id == PerformancePlanModel.plan_id",
    )

    def __repr__(self) -> str:
        return (
            f"<PlanComment {self.entry_id} plan={self.plan_id} "
            f"{self.role}#{self.sequence} {self.action}>"
        )

    def to_domain(self) -> CommentEntry:
        return CommentEntry(
            entry_id=self.entry_id,
            author_id=self.author_id,
            author_name=self.author_name,
            role=ReviewRole(self.role),
            action=WorkflowAction(self.action),
            body=self.body,
            created_at=self.created_at,
            sequence=self.sequence,
        )

    @classmethod
    def from_domain(cls, plan_id: UUID, entry: CommentEntry) -> PlanCommentModel:
        return cls(
            entry_id=entry.entry_id,
            plan_id=plan_id,
            role=entry.role.value,
            sequence=entry.sequence,
            action=entry.action.value,
            author_id=entry.author_id,
            author_name=entry.author_name,
            body=entry.body,
            created_at=entry.created_at,
        )


# =============================================================================
# ORM-Level Immutability for Comments (Append-Only)
# =============================================================================


@event.listens_for(PlanCommentModel, "before_update")
def prevent_comment_update(mapper, connection, target):
    """Prevent updates to ledger entries."""
    raise LedgerImmutabilityError(
        entry_id=str(target.entry_id),
        reason="ledger entries cannot be modified",
    )


@event.listens_for(PlanCommentModel, "before_delete")
def prevent_comment_delete(mapper, connection, target):
    """Prevent deletion of ledger entries."""
    raise LedgerImmutabilityError(
        entry_id=str(target.entry_id),
        reason="ledger entries cannot be deleted",
    )
