"""
Module: review_kernel.selectors.plan_selector
Responsibility: Read-only queries over stored plans: snapshots, streamed
    comment history and per-person work queues.
Architecture position: Kernel > Selectors.  May import from domain/, models/
    and selectors/base.py.

Invariants enforced:
    - Read-only: no mutations performed on any queried data.
    - Comment history streams in ledger order (sequence ascending).

Failure modes:
    - Returns None or an empty result when nothing matches (never raises on
      absence of data).

Audit relevance:
    iter_comments is the audit display path for long review histories; it
    pages rows through ``yield_per`` instead of loading the whole ledger.
"""

from collections.abc import Iterator
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from review_kernel.domain.plan import PlanSnapshot
from review_kernel.domain.state_machine import statuses_awaiting
from review_kernel.domain.values import CommentEntry, PlanStatus, ReviewRole
from review_kernel.models.plan import PerformancePlanModel, PlanCommentModel
from review_kernel.selectors.base import BaseSelector

# Statuses in which each role has the next move, read off the transition table.
SUPERVISOR_QUEUE_STATUSES: frozenset[PlanStatus] = statuses_awaiting(ReviewRole.SUPERVISOR)
REVIEWER_QUEUE_STATUSES: frozenset[PlanStatus] = statuses_awaiting(ReviewRole.REVIEWER)


class PlanSelector(BaseSelector[PerformancePlanModel]):
    """Selector for plan snapshots, ledgers and work queues."""

    def __init__(self, session: Session, yield_per: int = 100):
        super().__init__(session)
        self._yield_per = yield_per

    def get_snapshot(self, plan_id: UUID) -> PlanSnapshot | None:
        model = self.session.execute(
            select(PerformancePlanModel).where(
                PerformancePlanModel.plan_id == plan_id,
            )
        ).scalar_one_or_none()
        if model is None:
            return None
        return model.to_domain().snapshot()

    def iter_comments(
        self,
        plan_id: UUID,
        role: ReviewRole | None = None,
    ) -> Iterator[CommentEntry]:
        """
        Stream a plan's ledger entries in order.

        Args:
            plan_id: Plan whose ledger to read.
            role: Restrict to one role's ledger.  None yields the supervisor
                ledger followed by the reviewer ledger.
        """
        roles = (role,) if role is not None else tuple(ReviewRole)
        for ledger_role in roles:
            rows = self.session.execute(
                select(PlanCommentModel)
                .where(
                    PlanCommentModel.plan_id == plan_id,
                    PlanCommentModel.role == ledger_role.value,
                )
                .order_by(PlanCommentModel.sequence)
                .execution_options(yield_per=self._yield_per)
            ).scalars()
            for row in rows:
                yield row.to_domain()

    def plans_awaiting_actor(self, actor_id: UUID) -> list[PlanSnapshot]:
        """
        Plans on which ``actor_id`` has the next move.

        Supervisors see plans where the transition table lets them approve
        or request changes (including plans sent back for revision);
        reviewers see plans in reviewer assessment.  Oldest activity first.
        """
        stmt = (
            select(PerformancePlanModel)
            .where(
                or_(
                    and_(
                        PerformancePlanModel.supervisor_id == actor_id,
                        PerformancePlanModel.status.in_(
                            [s.value for s in SUPERVISOR_QUEUE_STATUSES]
                        ),
                    ),
                    and_(
                        PerformancePlanModel.reviewer_id == actor_id,
                        PerformancePlanModel.status.in_(
                            [s.value for s in REVIEWER_QUEUE_STATUSES]
                        ),
                    ),
                )
            )
            .order_by(
                PerformancePlanModel.updated_at,
                PerformancePlanModel.plan_id,
            )
        )
        models = self.session.execute(stmt).scalars().all()
        return [model.to_domain().snapshot() for model in models]
