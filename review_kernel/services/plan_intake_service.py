"""
PlanIntakeService -- employee-side plan creation and (re)submission.

Responsibility:
    Creates draft plans with validated assignments and moves a plan into
    the review workflow when its employee submits it.  Resubmission after
    a revision request opens a fresh review round.

Architecture position:
    Kernel > Services -- imperative shell.  Shares the PlanStore and the
    optimistic save loop with WorkflowCoordinator.

Invariants enforced:
    - Employee, supervisor and reviewer are distinct people.
    - Reviewer assignment is fixed at creation.
    - Only the plan's employee may submit, and only from ``draft`` or
      ``revision_requested``.
    - Submission resets both approval records to pending; the comment
      ledgers are kept in full.

Failure modes:
    - PlanAssignmentError: assignments overlap.
    - PlanNotFoundError: unknown plan_id on submit.
    - UnauthorizedActorError: submitter is not the plan's employee.
    - InvalidTransitionError: plan is not awaiting submission.
    - ConcurrentModificationError: save conflicted on every attempt.
"""

from __future__ import annotations

from uuid import UUID

from review_kernel.domain.clock import Clock, SystemClock
from review_kernel.domain.plan import Plan, PlanSnapshot
from review_kernel.domain.state_machine import EMPLOYEE_ROLE, PlanStateMachine
from review_kernel.domain.values import PlanMetadata
from review_kernel.exceptions import UnauthorizedActorError
from review_kernel.logging_config import LogContext, get_logger
from review_kernel.services.plan_store import PlanStore, apply_optimistically

logger = get_logger("services.plan_intake")


class PlanIntakeService:
    """Creates and submits performance plans on behalf of employees."""

    def __init__(
        self,
        store: PlanStore,
        clock: Clock | None = None,
        state_machine: PlanStateMachine | None = None,
        max_save_attempts: int = 2,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._state_machine = state_machine or PlanStateMachine()
        self._max_save_attempts = max_save_attempts

    def create_plan(
        self,
        employee_id: UUID,
        supervisor_id: UUID,
        reviewer_id: UUID | None = None,
        metadata: PlanMetadata | None = None,
        plan_id: UUID | None = None,
    ) -> Plan:
        """Create and store a new draft plan."""
        plan = Plan.new_draft(
            employee_id=employee_id,
            supervisor_id=supervisor_id,
            reviewer_id=reviewer_id,
            created_at=self._clock.now(),
            metadata=metadata,
            plan_id=plan_id,
        )
        self._store.add_plan(plan)

        logger.info(
            "plan_created",
            extra={
                "plan_id": str(plan.plan_id),
                "employee_id": str(employee_id),
                "supervisor_id": str(supervisor_id),
                "reviewer_id": str(reviewer_id) if reviewer_id else None,
            },
        )
        return plan

    def submit_plan(self, plan_id: UUID, employee_id: UUID) -> PlanSnapshot:
        """Submit (or resubmit) a plan for supervisor review."""
        with LogContext.bind(
            plan_id=str(plan_id), actor_id=str(employee_id), role=EMPLOYEE_ROLE,
        ):

            def submit(current: Plan) -> Plan:
                if employee_id != current.employee_id:
                    raise UnauthorizedActorError(
                        str(current.plan_id), str(employee_id), EMPLOYEE_ROLE,
                    )
                transition = self._state_machine.evaluate_submission(current)
                now = self._clock.now()
                return current.revise(
                    now,
                    status=transition.to_status,
                    approvals=current.approvals.reset(),
                    submitted_at=now,
                )

            plan = apply_optimistically(
                self._store, plan_id, submit, self._max_save_attempts,
            )

            logger.info(
                "plan_submitted",
                extra={
                    "status": plan.status.value,
                    "version": plan.version,
                    "resubmission": plan.ledger.total_entries > 0,
                },
            )
            return plan.snapshot()
