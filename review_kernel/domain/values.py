"""
Review value types (``review_kernel.domain.values``).

Responsibility
--------------
The enums and small immutable records shared by every other domain
module: plan lifecycle statuses, review roles, workflow actions,
per-role approval states, comment entries and approval records.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/`` or ``selectors/``.

Invariants enforced
-------------------
* Comment entries and approval records are frozen; a change is always
  a new value.
* Role and action strings arriving from the shell are coerced into the
  enums here, so unknown values fail before any state is read.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from review_kernel.exceptions import InvalidInputError

# Column widths of the stored title and author name.
MAX_TITLE_LENGTH = 200
MAX_NAME_LENGTH = 200


# =========================================================================
# Plan Lifecycle
# =========================================================================


class PlanStatus(str, Enum):
    """Performance plan lifecycle states."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    SUPERVISOR_REVIEW = "supervisor_review"
    REVIEWER_ASSESSMENT = "reviewer_assessment"
    REVISION_REQUESTED = "revision_requested"
    APPROVED = "approved"


TERMINAL_PLAN_STATUSES: frozenset[PlanStatus] = frozenset({
    PlanStatus.APPROVED,
})


class ReviewRole(str, Enum):
    """Roles that act on a plan through the workflow."""

    SUPERVISOR = "supervisor"
    REVIEWER = "reviewer"


class WorkflowAction(str, Enum):
    """Actions a bound reviewer can take on a plan."""

    COMMENT = "comment"
    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    FINAL_APPROVE = "final_approve"


# Actions that write an approval record.
APPROVAL_ACTIONS: frozenset[WorkflowAction] = frozenset({
    WorkflowAction.APPROVE,
    WorkflowAction.REQUEST_CHANGES,
    WorkflowAction.FINAL_APPROVE,
})

# Actions whose comment body must not be empty.
FEEDBACK_REQUIRED_ACTIONS: frozenset[WorkflowAction] = frozenset({
    WorkflowAction.COMMENT,
    WorkflowAction.REQUEST_CHANGES,
})


class ApprovalState(str, Enum):
    """Per-role approval state."""

    PENDING = "pending"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"


def coerce_role(value: ReviewRole | str) -> ReviewRole:
    """Parse a role from the shell; unknown values are invalid input."""
    try:
        return ReviewRole(value)
    except ValueError:
        raise InvalidInputError(
            "role", f"unknown role {value!r}; expected one of "
            f"{[r.value for r in ReviewRole]}",
        ) from None


def coerce_action(value: WorkflowAction | str) -> WorkflowAction:
    """Parse an action from the shell; unknown values are invalid input."""
    try:
        return WorkflowAction(value)
    except ValueError:
        raise InvalidInputError(
            "action", f"unknown action {value!r}; expected one of "
            f"{[a.value for a in WorkflowAction]}",
        ) from None


# =========================================================================
# Records
# =========================================================================


@dataclass(frozen=True)
class PlanMetadata:
    """Descriptive plan fields.  Opaque to the workflow."""

    title: str = ""
    year: int | None = None
    start_date: date | None = None
    end_date: date | None = None

    def __post_init__(self) -> None:
        if len(self.title) > MAX_TITLE_LENGTH:
            raise InvalidInputError(
                "title", f"longer than {MAX_TITLE_LENGTH} characters",
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "year": self.year,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


@dataclass(frozen=True)
class CommentEntry:
    """One remark on a plan's review ledger.  Immutable.

    ``sequence`` is the 1-based position within the author's role ledger;
    the ledger assigns it on append.
    """

    entry_id: UUID
    author_id: UUID
    author_name: str
    role: ReviewRole
    action: WorkflowAction
    body: str
    created_at: datetime
    sequence: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.entry_id),
            "user_id": str(self.author_id),
            "name": self.author_name,
            "role": self.role.value,
            "action": self.action.value,
            "comment": self.body,
            "timestamp": self.created_at.isoformat(),
            "sequence": self.sequence,
        }


@dataclass(frozen=True)
class ApprovalRecord:
    """Approval state for one role.  ``decided_at`` is set only when approved."""

    state: ApprovalState = ApprovalState.PENDING
    decided_at: datetime | None = None

    @property
    def is_approved(self) -> bool:
        return self.state == ApprovalState.APPROVED

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
        }
