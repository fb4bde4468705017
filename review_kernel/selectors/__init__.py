"""Read-only selectors for plans and their review history."""

from review_kernel.selectors.base import BaseSelector
from review_kernel.selectors.plan_selector import PlanSelector

__all__ = [
    "BaseSelector",
    "PlanSelector",
]
