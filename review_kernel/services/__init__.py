"""
Kernel services -- the imperative shell around the pure domain.

WorkflowCoordinator is the only writer of review actions;
PlanIntakeService covers creation and submission; the plan stores are
the persistence collaborators both depend on.
"""

from review_kernel.services.plan_intake_service import PlanIntakeService
from review_kernel.services.plan_store import (
    InMemoryPlanStore,
    PlanStore,
    SqlAlchemyPlanStore,
    apply_optimistically,
    check_successor,
)
from review_kernel.services.workflow_coordinator import (
    AvailableAction,
    WorkflowCoordinator,
)

__all__ = [
    "AvailableAction",
    "InMemoryPlanStore",
    "PlanIntakeService",
    "PlanStore",
    "SqlAlchemyPlanStore",
    "WorkflowCoordinator",
    "apply_optimistically",
    "check_successor",
]
