"""
Dependency Injection Wiring (Composition Root).

This module acts as the central "container" for the application's services.
It is responsible for:
1. Instantiating the core Singleton services (Repository, Processor client, Service).
2. Wiring them together (e.g., injecting the Repository and Processor into the Service).
3. Managing the lifecycle of these objects using @lru_cache to ensure
   they are created only once per application process.

Tests override get_execution_service through app.dependency_overrides.
"""


from functools import lru_cache
from fastapi import Depends

from ..config import settings
from ..processor.interface import StepProcessor
from ..processor.adapters.http_adapter import HttpStepProcessor
from ..repositories.flow import FlowRepository, StaticFlowRepository, SqlFlowRepository
from ..services.execution import ExecutionService


# Step Processor client (Singleton)
@lru_cache()
def get_step_processor() -> StepProcessor:
    return HttpStepProcessor(
        base_url=settings.PROCESSOR_BASE_URL,
        api_key=settings.PROCESSOR_API_KEY,
    )


# Flow Repository (Singleton)
@lru_cache()
def get_flow_repository() -> FlowRepository:
    if settings.FLOW_SOURCE == "database":
        return SqlFlowRepository()
    return StaticFlowRepository()


# The Execution Service (Singleton Service)
# Note: it holds the live sessions, so it must be a singleton!
@lru_cache()
def get_execution_service(
    flow_repo: FlowRepository = Depends(get_flow_repository),
    processor: StepProcessor = Depends(get_step_processor),
) -> ExecutionService:
    return ExecutionService(flow_repository=flow_repo, processor=processor)
