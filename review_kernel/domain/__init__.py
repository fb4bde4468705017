"""
Pure domain layer.

Plan values, the comment ledger, the approval tracker and the plan state
machine, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Wall-clock time (an injected Clock only)

All domain objects are immutable and deterministic.
"""

from review_kernel.domain.approval_tracker import ApprovalTracker
from review_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from review_kernel.domain.comment_ledger import CommentLedger, LedgerHistory
from review_kernel.domain.plan import Plan, PlanSnapshot, validate_assignment
from review_kernel.domain.state_machine import (
    PLAN_TRANSITIONS,
    PlanStateMachine,
    PlanTransition,
    TransitionRule,
    statuses_awaiting,
    workflow_edges,
)
from review_kernel.domain.values import (
    APPROVAL_ACTIONS,
    FEEDBACK_REQUIRED_ACTIONS,
    TERMINAL_PLAN_STATUSES,
    ApprovalRecord,
    ApprovalState,
    CommentEntry,
    PlanMetadata,
    PlanStatus,
    ReviewRole,
    WorkflowAction,
    coerce_action,
    coerce_role,
)

__all__ = [
    "APPROVAL_ACTIONS",
    "FEEDBACK_REQUIRED_ACTIONS",
    "PLAN_TRANSITIONS",
    "TERMINAL_PLAN_STATUSES",
    "ApprovalRecord",
    "ApprovalState",
    "ApprovalTracker",
    "Clock",
    "CommentEntry",
    "CommentLedger",
    "DeterministicClock",
    "LedgerHistory",
    "Plan",
    "PlanMetadata",
    "PlanSnapshot",
    "PlanStateMachine",
    "PlanStatus",
    "PlanTransition",
    "ReviewRole",
    "SystemClock",
    "TransitionRule",
    "WorkflowAction",
    "coerce_action",
    "coerce_role",
    "validate_assignment",
    "statuses_awaiting",
    "workflow_edges",
]
