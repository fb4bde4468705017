"""
Plan persistence collaborators (``review_kernel.services.plan_store``).

Responsibility:
    Loads and saves whole plans (status, approvals and both comment
    ledgers) under an optimistic-concurrency contract, and provides
    ``apply_optimistically``, the load / mutate / compare-and-swap loop
    every workflow write goes through.

Architecture position:
    Kernel > Services -- imperative shell.  May import from domain/,
    models/, db/.

Invariants enforced:
    - ``save_plan(plan, expected_version)`` succeeds only while the stored
      version still equals ``expected_version``; the new value must carry
      ``expected_version + 1``.  A lost race returns False and writes
      nothing.
    - The stored ledgers are a prefix of the saved ledgers.  Entries
      already on file can be followed by new ones, never rewritten.
    - Status, approvals and new comment rows land in one transaction.

Failure modes:
    - PlanNotFoundError: unknown plan_id on load or save.
    - LedgerImmutabilityError: a save would alter or drop a stored entry.
    - InvalidInputError: add_plan with a plan_id already on file.
    - ConcurrentModificationError: apply_optimistically ran out of attempts.

Usage:
    store = SqlAlchemyPlanStore(get_session_factory())
    updated = apply_optimistically(
        store, plan_id, lambda plan: plan.revise(now, status=...),
        max_attempts=2,
    )
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from review_kernel.db.engine import session_scope
from review_kernel.domain.plan import Plan
from review_kernel.domain.values import ReviewRole
from review_kernel.exceptions import (
    ConcurrentModificationError,
    InvalidInputError,
    LedgerImmutabilityError,
    PlanNotFoundError,
)
from review_kernel.logging_config import get_logger
from review_kernel.models.plan import PerformancePlanModel, PlanCommentModel

logger = get_logger("services.plan_store")


class PlanStore(Protocol):
    """Persistence contract the workflow coordinator depends on."""

    def load_plan(self, plan_id: UUID) -> Plan:
        """Return the current plan.  Raises PlanNotFoundError."""
        ...

    def save_plan(self, plan: Plan, expected_version: int) -> bool:
        """Compare-and-swap on version.  False means another writer won."""
        ...

    def add_plan(self, plan: Plan) -> None:
        """Store a plan that is not yet on file."""
        ...


def check_successor(stored: Plan, plan: Plan, expected_version: int) -> None:
    """Validate that ``plan`` may replace ``stored``.

    Raises:
        ValueError: the plan identity or version does not follow on.
        LedgerImmutabilityError: a stored ledger entry was changed or dropped.
    """
    if plan.plan_id != stored.plan_id:
        raise ValueError(f"Cannot save plan {plan.plan_id} over {stored.plan_id}")
    if plan.version != expected_version + 1:
        raise ValueError(
            f"Plan {plan.plan_id} must be saved as version "
            f"{expected_version + 1}, got {plan.version}"
        )

    for role in ReviewRole:
        before = stored.ledger.entries(role)
        after = plan.ledger.entries(role)
        if len(after) < len(before):
            missing = before[len(after)]
            raise LedgerImmutabilityError(
                entry_id=str(missing.entry_id),
                reason=f"{role.value} ledger entry would be removed",
            )
        for old, new in zip(before, after):
            if old != new:
                raise LedgerImmutabilityError(
                    entry_id=str(old.entry_id),
                    reason=f"{role.value} ledger entry would be modified",
                )


def apply_optimistically(
    store: PlanStore,
    plan_id: UUID,
    mutate: Callable[[Plan], Plan],
    max_attempts: int = 2,
) -> Plan:
    """Load, mutate and save a plan, retrying on version conflicts.

    ``mutate`` receives the freshly loaded plan on every attempt, so any
    guard it evaluates sees the latest state.  Its exceptions propagate
    untouched and nothing is saved.

    Returns:
        The plan as saved.

    Raises:
        ConcurrentModificationError: every attempt lost the race.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    expected_version = 0
    for attempt in range(1, max_attempts + 1):
        current = store.load_plan(plan_id)
        expected_version = current.version
        updated = mutate(current)
        if store.save_plan(updated, expected_version):
            return updated

        logger.warning(
            "plan_save_conflict",
            extra={
                "plan_id": str(plan_id),
                "expected_version": expected_version,
                "attempt": attempt,
                "max_attempts": max_attempts,
            },
        )

    raise ConcurrentModificationError(str(plan_id), expected_version, max_attempts)


class InMemoryPlanStore:
    """Process-local plan store.

    Plans are frozen values, so the dict holds them directly; the lock
    makes each compare-and-swap atomic across threads.
    """

    def __init__(self) -> None:
        self._plans: dict[UUID, Plan] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._plans)

    def __contains__(self, plan_id: object) -> bool:
        with self._lock:
            return plan_id in self._plans

    def add_plan(self, plan: Plan) -> None:
        with self._lock:
            if plan.plan_id in self._plans:
                raise InvalidInputError(
                    "plan_id", f"plan {plan.plan_id} already exists",
                )
            self._plans[plan.plan_id] = plan

    def load_plan(self, plan_id: UUID) -> Plan:
        with self._lock:
            plan = self._plans.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(str(plan_id))
        return plan

    def save_plan(self, plan: Plan, expected_version: int) -> bool:
        with self._lock:
            stored = self._plans.get(plan.plan_id)
            if stored is None:
                raise PlanNotFoundError(str(plan.plan_id))
            if stored.version != expected_version:
                return False
            check_successor(stored, plan, expected_version)
            self._plans[plan.plan_id] = plan
            return True

    def all_plans(self) -> list[Plan]:
        with self._lock:
            return list(self._plans.values())


class SqlAlchemyPlanStore:
    """
    Plan store backed by the ``performance_plans`` / ``plan_comments`` tables.

    Contract:
        Each call runs in its own ``session_scope``; on SQLite those scopes
        are serialized across threads.  ``save_plan`` issues
        ``UPDATE performance_plans ... WHERE plan_id = :id AND version =
        :expected`` and inserts only the new comment rows; zero updated
        rows means a concurrent writer got there first.

    Guarantees:
        - A conflicting save writes nothing.
        - Stored comment rows are never updated or deleted.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        self._session_factory = session_factory

    def _select_plan(self, session: Session, plan_id: UUID) -> PerformancePlanModel | None:
        return session.execute(
            select(PerformancePlanModel).where(
                PerformancePlanModel.plan_id == plan_id,
            )
        ).scalar_one_or_none()

    def add_plan(self, plan: Plan) -> None:
        with session_scope(self._session_factory) as session:
            if self._select_plan(session, plan.plan_id) is not None:
                raise InvalidInputError(
                    "plan_id", f"plan {plan.plan_id} already exists",
                )
            session.add(PerformancePlanModel.from_domain(plan))
            for role in ReviewRole:
                for entry in plan.ledger.entries(role):
                    session.add(PlanCommentModel.from_domain(plan.plan_id, entry))

    def load_plan(self, plan_id: UUID) -> Plan:
        with session_scope(self._session_factory) as session:
            model = self._select_plan(session, plan_id)
            plan = model.to_domain() if model is not None else None
        if plan is None:
            raise PlanNotFoundError(str(plan_id))
        return plan

    def save_plan(self, plan: Plan, expected_version: int) -> bool:
        with session_scope(self._session_factory) as session:
            model = self._select_plan(session, plan.plan_id)
            if model is None:
                raise PlanNotFoundError(str(plan.plan_id))
            if model.version != expected_version:
                return False

            stored = model.to_domain()
            check_successor(stored, plan, expected_version)

            result = session.execute(
                update(PerformancePlanModel)
                .where(
                    PerformancePlanModel.plan_id == plan.plan_id,
                    PerformancePlanModel.version == expected_version,
                )
                .values(**PerformancePlanModel.state_values(plan))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return False

            for role in ReviewRole:
                already_stored = len(stored.ledger.entries(role))
                for entry in plan.ledger.entries(role)[already_stored:]:
                    session.add(PlanCommentModel.from_domain(plan.plan_id, entry))
            return True
