"""
WorkflowCoordinator -- the single write path for review actions.

Responsibility:
    Turns one reviewer request (actor, claimed role, action, comment)
    into one atomic plan update: role binding, transition table lookup,
    feedback validation, ledger append, approval update, status change
    and a versioned save.  Also answers read-side questions the shell
    asks before rendering (snapshot, available actions).

Architecture position:
    Kernel > Services -- imperative shell.  Orchestrates the pure
    domain objects (PlanStateMachine, CommentLedger, ApprovalTracker)
    around an injected PlanStore.

Invariants enforced:
    - Checks run in a fixed order: role binding, then transition, then
      comment body.  The first failure wins.
    - Every successful call appends exactly one entry, to the ledger of
      the acting role.
    - Nothing is visible until the store accepts the new version; a
      rejected call leaves the stored plan untouched.
    - A lost save race re-evaluates every guard against the fresh plan.

Failure modes:
    - PlanNotFoundError: unknown plan_id.
    - InvalidInputError: unknown role/action string, or an author name
      longer than the stored column.
    - UnauthorizedActorError: actor is not bound to the claimed role.
    - InvalidTransitionError: action not legal in the current status.
    - MissingCommentError: comment / request_changes without a body.
    - ConcurrentModificationError: save conflicted on every attempt.

Audit relevance:
    Each applied action logs ``plan_action_applied`` with the status
    path and ledger entry id; each rejection logs ``plan_action_rejected``
    with the error code.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID, uuid4

from review_kernel.domain.clock import Clock, SystemClock
from review_kernel.domain.plan import Plan, PlanSnapshot
from review_kernel.domain.state_machine import PlanStateMachine, PlanTransition
from review_kernel.domain.values import (
    APPROVAL_ACTIONS,
    FEEDBACK_REQUIRED_ACTIONS,
    MAX_NAME_LENGTH,
    CommentEntry,
    ReviewRole,
    WorkflowAction,
    coerce_action,
    coerce_role,
)
from review_kernel.exceptions import (
    InvalidInputError,
    MissingCommentError,
    ReviewKernelError,
    UnauthorizedActorError,
)
from review_kernel.logging_config import LogContext, get_logger
from review_kernel.services.plan_store import PlanStore, apply_optimistically

logger = get_logger("services.workflow_coordinator")

NameResolver = Callable[[UUID], str]


@dataclass(frozen=True)
class AvailableAction:
    """One action an actor may take on a plan right now."""

    role: ReviewRole
    action: WorkflowAction
    requires_comment: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "role": self.role.value,
            "action": self.action.value,
            "requires_comment": self.requires_comment,
        }


class WorkflowCoordinator:
    """Applies supervisor and reviewer actions to performance plans."""

    def __init__(
        self,
        store: PlanStore,
        clock: Clock | None = None,
        state_machine: PlanStateMachine | None = None,
        name_resolver: NameResolver | None = None,
        max_save_attempts: int = 2,
    ) -> None:
        if max_save_attempts < 1:
            raise ValueError(
                f"max_save_attempts must be at least 1, got {max_save_attempts}"
            )
        self._store = store
        self._clock = clock or SystemClock()
        self._state_machine = state_machine or PlanStateMachine()
        self._name_resolver = name_resolver
        self._max_save_attempts = max_save_attempts

    def apply_action(
        self,
        plan_id: UUID,
        actor_id: UUID,
        role: ReviewRole | str,
        action: WorkflowAction | str,
        comment_body: str = "",
        display_name: str | None = None,
    ) -> PlanSnapshot:
        """Apply one review action and return the updated plan snapshot.

        Args:
            plan_id: Plan to act on.
            actor_id: Identity of the person acting.
            role: Role the actor claims (``supervisor`` / ``reviewer``).
            action: ``comment``, ``approve``, ``request_changes`` or
                ``final_approve``.
            comment_body: Feedback text.  Required (non-blank) for
                ``comment`` and ``request_changes``.
            display_name: Author name recorded on the ledger entry.  Falls
                back to the name resolver, then to the actor id.

        Raises:
            See module docstring.  No failure leaves a partial update.
        """
        with LogContext.bind(
            plan_id=str(plan_id),
            actor_id=str(actor_id),
            role=str(getattr(role, "value", role)),
        ):
            try:
                claimed_role = coerce_role(role)
                requested = coerce_action(action)
                body = (comment_body or "").strip()
                applied: list[PlanTransition] = []

                def advance(current: Plan) -> Plan:
                    updated, transition = self._advance(
                        current, actor_id, claimed_role, requested, body,
                        display_name,
                    )
                    applied.append(transition)
                    return updated

                plan = apply_optimistically(
                    self._store, plan_id, advance, self._max_save_attempts,
                )
            except ReviewKernelError as exc:
                logger.warning(
                    "plan_action_rejected",
                    extra={
                        "requested_role": role,
                        "requested_action": action,
                        "error_code": exc.code,
                        "error": str(exc),
                    },
                )
                raise

            transition = applied[-1]
            entry = plan.ledger.entries(claimed_role)[-1]
            logger.info(
                "plan_action_applied",
                extra={
                    "requested_role": claimed_role.value,
                    "requested_action": requested.value,
                    "from_status": transition.from_status.value,
                    "to_status": transition.to_status.value,
                    "status_path": [s.value for s in transition.path],
                    "entry_id": str(entry.entry_id),
                    "version": plan.version,
                },
            )
            return plan.snapshot()

    def get_plan_snapshot(self, plan_id: UUID) -> PlanSnapshot:
        """Read-only projection of the plan's status, ledgers and approvals."""
        return self._store.load_plan(plan_id).snapshot()

    def available_actions(
        self,
        plan_id: UUID,
        actor_id: UUID,
    ) -> list[AvailableAction]:
        """Every (role, action) pair ``actor_id`` may legally perform now.

        Empty when the actor holds no role on the plan or the plan is in a
        status where none of their actions apply.
        """
        plan = self._store.load_plan(plan_id)
        return [
            AvailableAction(
                role=bound_role,
                action=allowed,
                requires_comment=allowed in FEEDBACK_REQUIRED_ACTIONS,
            )
            for bound_role in plan.bound_roles(actor_id)
            for allowed in self._state_machine.allowed_actions(plan, bound_role)
        ]

    def _advance(
        self,
        current: Plan,
        actor_id: UUID,
        role: ReviewRole,
        action: WorkflowAction,
        body: str,
        display_name: str | None,
    ) -> tuple[Plan, PlanTransition]:
        if not current.is_bound(actor_id, role):
            raise UnauthorizedActorError(
                str(current.plan_id), str(actor_id), role.value,
            )

        transition = self._state_machine.evaluate(current, role, action)

        if action in FEEDBACK_REQUIRED_ACTIONS and not body:
            raise MissingCommentError(str(current.plan_id), action.value)

        now = self._clock.now()
        entry = CommentEntry(
            entry_id=uuid4(),
            author_id=actor_id,
            author_name=self._author_name(actor_id, display_name),
            role=role,
            action=action,
            body=body,
            created_at=now,
        )
        ledger = current.ledger.append(current.plan_id, role, entry)

        approvals = current.approvals
        if action in APPROVAL_ACTIONS:
            approvals = approvals.record_approval(current.plan_id, role, action, now)

        updated = current.revise(
            now,
            status=transition.to_status,
            ledger=ledger,
            approvals=approvals,
        )
        return updated, transition

    def _author_name(self, actor_id: UUID, display_name: str | None) -> str:
        if display_name and display_name.strip():
            return _checked_name("display_name", display_name.strip())
        if self._name_resolver is not None:
            resolved = self._name_resolver(actor_id)
            if resolved:
                return _checked_name("author_name", resolved)
        return str(actor_id)


def _checked_name(field: str, name: str) -> str:
    if len(name) > MAX_NAME_LENGTH:
        raise InvalidInputError(field, f"longer than {MAX_NAME_LENGTH} characters")
    return name
