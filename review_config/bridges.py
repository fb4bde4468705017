"""
Config -> Kernel Bridges.

Functions that turn a ReviewConfig into wired kernel objects.  These live
in review_config (the producer) because the kernel must NEVER import
review_config.

Usage:
    from review_config import get_active_config
    from review_config.bridges import build_coordinator, build_plan_store

    config = get_active_config()
    configure_kernel_logging(config)
    store = build_plan_store(config)
    coordinator = build_coordinator(config, store)
"""

from __future__ import annotations

from typing import IO

from review_config.schema import ReviewConfig
from review_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from review_kernel.domain.clock import Clock
from review_kernel.logging_config import configure_logging
from review_kernel.services.plan_intake_service import PlanIntakeService
from review_kernel.services.plan_store import PlanStore, SqlAlchemyPlanStore
from review_kernel.services.workflow_coordinator import (
    NameResolver,
    WorkflowCoordinator,
)


def configure_kernel_logging(config: ReviewConfig, stream: IO[str] | None = None) -> None:
    """Install the JSON log handler at the configured level."""
    configure_logging(level=config.logging.level_number, stream=stream)


def build_plan_store(config: ReviewConfig, create_schema: bool = True) -> SqlAlchemyPlanStore:
    """Initialize the engine from ``config.database`` and return a SQL store.

    Args:
        config: Active configuration.
        create_schema: Create the review tables if they do not exist.
    """
    db = config.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
    )
    if create_schema:
        create_tables()
    return SqlAlchemyPlanStore(get_session_factory())


def build_coordinator(
    config: ReviewConfig,
    store: PlanStore,
    clock: Clock | None = None,
    name_resolver: NameResolver | None = None,
) -> WorkflowCoordinator:
    """WorkflowCoordinator with the configured save-retry budget."""
    return WorkflowCoordinator(
        store,
        clock=clock,
        name_resolver=name_resolver,
        max_save_attempts=config.workflow.max_save_attempts,
    )


def build_intake_service(
    config: ReviewConfig,
    store: PlanStore,
    clock: Clock | None = None,
) -> PlanIntakeService:
    """PlanIntakeService sharing the coordinator's save-retry budget."""
    return PlanIntakeService(
        store,
        clock=clock,
        max_save_attempts=config.workflow.max_save_attempts,
    )
