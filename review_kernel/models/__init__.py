"""ORM models for the review kernel."""

from review_kernel.models.plan import PerformancePlanModel, PlanCommentModel

__all__ = [
    "PerformancePlanModel",
    "PlanCommentModel",
]
