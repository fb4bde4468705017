"""
Pytest fixtures for the review kernel test suite.

Provides:
- Structured logging setup and JSON log capture
- A deterministic clock and distinct people (employee, supervisor, reviewer)
- In-memory and SQLite-backed plan stores
- Coordinator / intake service wiring and plan builders

Environment Variables:
- DATABASE_URL: PostgreSQL connection URL for tests marked ``postgres``.
  Those tests are skipped when it is not set.
"""

import json
import logging
import os
from dataclasses import replace
from io import StringIO
from uuid import uuid4

import pytest

from review_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from review_kernel.domain.clock import DeterministicClock
from review_kernel.domain.plan import Plan
from review_kernel.domain.values import (
    ApprovalRecord,
    ApprovalState,
    PlanMetadata,
    PlanStatus,
)
from review_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from review_kernel.services.plan_intake_service import PlanIntakeService
from review_kernel.services.plan_store import InMemoryPlanStore, SqlAlchemyPlanStore
from review_kernel.services.workflow_coordinator import WorkflowCoordinator


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture review_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, coordinator):
            coordinator.apply_action(...)
            logs = captured_logs()
            assert any(r["message"] == "plan_action_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("review_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL (DATABASE_URL)"
    )


# =============================================================================
# Time and people
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock fixed at 2024-01-01 12:00 UTC until advanced."""
    return DeterministicClock()


@pytest.fixture
def employee_id():
    return uuid4()


@pytest.fixture
def supervisor_id():
    return uuid4()


@pytest.fixture
def reviewer_id():
    return uuid4()


@pytest.fixture
def outsider_id():
    """Someone with no role on any test plan."""
    return uuid4()


# =============================================================================
# Stores and services
# =============================================================================


@pytest.fixture
def memory_store():
    return InMemoryPlanStore()


@pytest.fixture
def sqlite_session_factory():
    """Fresh in-memory SQLite database with the review tables."""
    init_engine_from_url("sqlite://")
    create_tables()
    yield get_session_factory()
    reset_engine()


@pytest.fixture
def session(sqlite_session_factory):
    session = sqlite_session_factory()
    yield session
    session.close()


@pytest.fixture
def sql_store(sqlite_session_factory):
    return SqlAlchemyPlanStore(sqlite_session_factory)


@pytest.fixture(params=["memory", "sqlite"])
def plan_store(request):
    """Each store implementation in turn."""
    if request.param == "memory":
        return InMemoryPlanStore()
    return request.getfixturevalue("sql_store")


@pytest.fixture
def coordinator(memory_store, deterministic_clock):
    return WorkflowCoordinator(memory_store, clock=deterministic_clock)


@pytest.fixture
def intake(memory_store, deterministic_clock):
    return PlanIntakeService(memory_store, clock=deterministic_clock)


# =============================================================================
# Plan builders
# =============================================================================


@pytest.fixture
def build_plan(employee_id, supervisor_id, reviewer_id, deterministic_clock):
    """
    Build a Plan value directly in a given workflow position.

    Usage::

        plan = build_plan(PlanStatus.REVIEWER_ASSESSMENT, supervisor_approved=True)
    """

    def _build(
        status: PlanStatus = PlanStatus.SUBMITTED,
        with_reviewer: bool = True,
        supervisor_approved: bool = False,
    ) -> Plan:
        plan = Plan.new_draft(
            employee_id=employee_id,
            supervisor_id=supervisor_id,
            reviewer_id=reviewer_id if with_reviewer else None,
            created_at=deterministic_clock.now(),
            metadata=PlanMetadata(title="FY2024 plan", year=2024),
        )
        approvals = plan.approvals
        if supervisor_approved:
            approvals = replace(
                approvals,
                supervisor=ApprovalRecord(
                    ApprovalState.APPROVED, deterministic_clock.now(),
                ),
            )
        return replace(plan, status=status, approvals=approvals)

    return _build


@pytest.fixture
def submitted_plan(intake, employee_id, supervisor_id, reviewer_id):
    """A plan with supervisor and reviewer, submitted for review."""
    plan = intake.create_plan(
        employee_id, supervisor_id, reviewer_id,
        metadata=PlanMetadata(title="FY2024 plan", year=2024),
    )
    intake.submit_plan(plan.plan_id, employee_id)
    return plan.plan_id


@pytest.fixture
def submitted_in(deterministic_clock, employee_id, supervisor_id, reviewer_id):
    """Create and submit a plan in the given store; returns its id."""

    def _submitted_in(store):
        service = PlanIntakeService(store, clock=deterministic_clock)
        plan = service.create_plan(employee_id, supervisor_id, reviewer_id)
        service.submit_plan(plan.plan_id, employee_id)
        return plan.plan_id

    return _submitted_in


@pytest.fixture
def submitted_plan_without_reviewer(intake, employee_id, supervisor_id):
    """A plan with no reviewer assigned, submitted for review."""
    plan = intake.create_plan(employee_id, supervisor_id, None)
    intake.submit_plan(plan.plan_id, employee_id)
    return plan.plan_id


@pytest.fixture
def postgres_url():
    """DATABASE_URL for postgres-marked tests; skips when unset."""
    url = os.environ.get("DATABASE_URL")
    if not url:
        pytest.skip("DATABASE_URL not set")
    return url
