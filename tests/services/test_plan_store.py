"""
Tests for the plan stores and the optimistic save loop.

Covers (against both InMemoryPlanStore and SqlAlchemyPlanStore):
- add / load round trip of a plan with comments and approvals
- compare-and-swap on version: stale saves return False and write nothing
- version must advance by exactly one
- stored ledger entries cannot be changed or dropped
SqlAlchemyPlanStore only:
- comment rows are append-only at the ORM level
- a rejected save rolls back cleanly
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from threading import Event
from uuid import uuid4

import pytest
from sqlalchemy import select

from review_kernel.db.engine import session_scope
from review_kernel.domain.values import (
    CommentEntry,
    PlanStatus,
    ReviewRole,
    WorkflowAction,
)
from review_kernel.exceptions import (
    ConcurrentModificationError,
    InvalidInputError,
    LedgerImmutabilityError,
    PlanNotFoundError,
)
from review_kernel.models.plan import PerformancePlanModel, PlanCommentModel
from review_kernel.services.plan_store import apply_optimistically


def _comment(plan, role, body, clock):
    author = plan.supervisor_id if role == ReviewRole.SUPERVISOR else plan.reviewer_id
    return CommentEntry(
        entry_id=uuid4(),
        author_id=author,
        author_name="Reviewer Name",
        role=role,
        action=WorkflowAction.COMMENT,
        body=body,
        created_at=clock.now(),
    )


def _with_comment(plan, role, body, clock):
    ledger = plan.ledger.append(plan.plan_id, role, _comment(plan, role, body, clock))
    return plan.revise(clock.now(), ledger=ledger)


class TestStoreContract:
    def test_add_and_load(self, plan_store, build_plan):
        plan = build_plan(PlanStatus.SUBMITTED)
        plan_store.add_plan(plan)
        assert plan_store.load_plan(plan.plan_id) == plan

    def test_load_unknown(self, plan_store):
        with pytest.raises(PlanNotFoundError):
            plan_store.load_plan(uuid4())

    def test_add_twice_rejected(self, plan_store, build_plan):
        plan = build_plan()
        plan_store.add_plan(plan)
        with pytest.raises(InvalidInputError):
            plan_store.add_plan(plan)

    def test_save_round_trip_with_ledgers_and_approvals(
        self, plan_store, build_plan, deterministic_clock,
    ):
        plan = build_plan(PlanStatus.REVIEWER_ASSESSMENT, supervisor_approved=True)
        plan_store.add_plan(plan)

        deterministic_clock.advance(5)
        updated = _with_comment(plan, ReviewRole.SUPERVISOR, "one", deterministic_clock)
        updated = replace(
            _with_comment(updated, ReviewRole.REVIEWER, "two", deterministic_clock),
            version=plan.version + 1,
            status=PlanStatus.APPROVED,
        )
        assert plan_store.save_plan(updated, plan.version) is True

        loaded = plan_store.load_plan(plan.plan_id)
        assert loaded == updated
        assert loaded.ledger.supervisor[0].created_at.tzinfo is not None

    def test_stale_version_is_conflict(self, plan_store, build_plan, deterministic_clock):
        plan = build_plan()
        plan_store.add_plan(plan)
        first = _with_comment(plan, ReviewRole.SUPERVISOR, "first", deterministic_clock)
        second = _with_comment(plan, ReviewRole.SUPERVISOR, "second", deterministic_clock)

        assert plan_store.save_plan(first, plan.version) is True
        assert plan_store.save_plan(second, plan.version) is False

        loaded = plan_store.load_plan(plan.plan_id)
        assert [e.body for e in loaded.ledger.supervisor] == ["first"]

    def test_version_must_advance_by_one(self, plan_store, build_plan, deterministic_clock):
        plan = build_plan()
        plan_store.add_plan(plan)
        skipping = replace(plan.revise(deterministic_clock.now()), version=plan.version + 2)
        with pytest.raises(ValueError):
            plan_store.save_plan(skipping, plan.version)

    def test_stored_entries_cannot_be_rewritten(
        self, plan_store, build_plan, deterministic_clock,
    ):
        plan = build_plan()
        plan_store.add_plan(plan)
        commented = _with_comment(plan, ReviewRole.SUPERVISOR, "original", deterministic_clock)
        assert plan_store.save_plan(commented, plan.version)

        tampered_entry = replace(commented.ledger.supervisor[0], body="rewritten")
        tampered = commented.revise(
            deterministic_clock.now(),
            ledger=replace(commented.ledger, supervisor=(tampered_entry,)),
        )
        with pytest.raises(LedgerImmutabilityError):
            plan_store.save_plan(tampered, commented.version)

        assert plan_store.load_plan(plan.plan_id).ledger.supervisor[0].body == "original"

    def test_stored_entries_cannot_be_dropped(
        self, plan_store, build_plan, deterministic_clock,
    ):
        plan = build_plan()
        plan_store.add_plan(plan)
        commented = _with_comment(plan, ReviewRole.SUPERVISOR, "keep me", deterministic_clock)
        assert plan_store.save_plan(commented, plan.version)

        emptied = commented.revise(
            deterministic_clock.now(), ledger=replace(commented.ledger, supervisor=()),
        )
        with pytest.raises(LedgerImmutabilityError):
            plan_store.save_plan(emptied, commented.version)

    def test_save_unknown_plan(self, plan_store, build_plan, deterministic_clock):
        plan = build_plan()
        with pytest.raises(PlanNotFoundError):
            plan_store.save_plan(plan.revise(deterministic_clock.now()), plan.version)


class TestApplyOptimistically:
    def test_returns_saved_plan(self, memory_store, build_plan, deterministic_clock):
        plan = build_plan()
        memory_store.add_plan(plan)
        saved = apply_optimistically(
            memory_store, plan.plan_id,
            lambda p: p.revise(deterministic_clock.now(), status=PlanStatus.SUPERVISOR_REVIEW),
        )
        assert saved.version == plan.version + 1
        assert memory_store.load_plan(plan.plan_id) == saved

    def test_mutation_errors_propagate_without_saving(self, memory_store, build_plan):
        plan = build_plan()
        memory_store.add_plan(plan)

        def boom(_plan):
            raise RuntimeError("guard failed")

        with pytest.raises(RuntimeError):
            apply_optimistically(memory_store, plan.plan_id, boom)
        assert memory_store.load_plan(plan.plan_id) == plan

    def test_exhausted_attempts(self, memory_store, build_plan, deterministic_clock):
        plan = build_plan()
        memory_store.add_plan(plan)

        def always_stale(current):
            # Someone else always commits first.
            memory_store.save_plan(current.revise(deterministic_clock.now()), current.version)
            return current.revise(deterministic_clock.now())

        with pytest.raises(ConcurrentModificationError) as exc_info:
            apply_optimistically(memory_store, plan.plan_id, always_stale, max_attempts=3)
        assert exc_info.value.attempts == 3
        assert exc_info.value.expected_version == plan.version + 2

    def test_rejects_zero_attempts(self, memory_store):
        with pytest.raises(ValueError):
            apply_optimistically(memory_store, uuid4(), lambda p: p, max_attempts=0)


class TestSqlPersistence:
    """ORM-level guarantees of the SQL store."""

    def test_rows_written(self, sql_store, session, build_plan, deterministic_clock):
        plan = build_plan()
        sql_store.add_plan(plan)
        sql_store.save_plan(
            _with_comment(plan, ReviewRole.SUPERVISOR, "hello", deterministic_clock),
            plan.version,
        )

        model = session.execute(
            select(PerformancePlanModel).where(PerformancePlanModel.plan_id == plan.plan_id)
        ).scalar_one()
        assert model.version == plan.version + 1
        assert model.status == "submitted"
        rows = session.execute(select(PlanCommentModel)).scalars().all()
        assert [(r.role, r.sequence, r.body) for r in rows] == [("supervisor", 1, "hello")]

    def test_comment_update_blocked(self, sql_store, session, build_plan, deterministic_clock):
        plan = build_plan()
        sql_store.add_plan(plan)
        sql_store.save_plan(
            _with_comment(plan, ReviewRole.SUPERVISOR, "immutable", deterministic_clock),
            plan.version,
        )
        row = session.execute(select(PlanCommentModel)).scalar_one()

        row.body = "edited"
        with pytest.raises(LedgerImmutabilityError):
            session.flush()
        session.rollback()

    def test_comment_delete_blocked(self, sql_store, session, build_plan, deterministic_clock):
        plan = build_plan()
        sql_store.add_plan(plan)
        sql_store.save_plan(
            _with_comment(plan, ReviewRole.SUPERVISOR, "permanent", deterministic_clock),
            plan.version,
        )
        row = session.execute(select(PlanCommentModel)).scalar_one()

        session.delete(row)
        with pytest.raises(LedgerImmutabilityError):
            session.flush()
        session.rollback()

    def test_conflicting_save_writes_no_comments(
        self, sql_store, session, build_plan, deterministic_clock,
    ):
        plan = build_plan()
        sql_store.add_plan(plan)
        assert sql_store.save_plan(
            _with_comment(plan, ReviewRole.SUPERVISOR, "winner", deterministic_clock),
            plan.version,
        )
        assert not sql_store.save_plan(
            _with_comment(plan, ReviewRole.SUPERVISOR, "loser", deterministic_clock),
            plan.version,
        )

        bodies = session.execute(select(PlanCommentModel.body)).scalars().all()
        assert bodies == ["winner"]

    def test_sqlite_transactions_do_not_interleave(self, sqlite_session_factory):
        """A second thread waits for the open SQLite transaction to finish."""
        inside = Event()
        release = Event()
        order = []

        def first():
            with session_scope(sqlite_session_factory):
                order.append("first-in")
                inside.set()
                release.wait(5)
                order.append("first-out")

        def second():
            inside.wait(5)
            with session_scope(sqlite_session_factory):
                order.append("second-in")

        with ThreadPoolExecutor(max_workers=2) as pool:
            a = pool.submit(first)
            b = pool.submit(second)
            inside.wait(5)
            time.sleep(0.1)
            release.set()
            a.result()
            b.result()

        assert order == ["first-in", "first-out", "second-in"]


@pytest.mark.postgres
class TestPostgresStore:
    """Same contract on PostgreSQL when DATABASE_URL is provided."""

    def test_round_trip(self, postgres_url, build_plan, deterministic_clock):
        from review_kernel.db.engine import (
            create_tables,
            drop_tables,
            get_session_factory,
            init_engine_from_url,
            reset_engine,
        )
        from review_kernel.services.plan_store import SqlAlchemyPlanStore

        init_engine_from_url(postgres_url, pool_size=2, max_overflow=0)
        create_tables()
        try:
            store = SqlAlchemyPlanStore(get_session_factory())
            plan = build_plan()
            store.add_plan(plan)
            updated = _with_comment(plan, ReviewRole.SUPERVISOR, "pg", deterministic_clock)
            assert store.save_plan(updated, plan.version)
            assert not store.save_plan(updated, plan.version)
            assert store.load_plan(plan.plan_id) == updated
        finally:
            drop_tables()
            reset_engine()
