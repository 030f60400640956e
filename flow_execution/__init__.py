"""
Flow Execution Engine

A client-driven state machine that runs data-driven, multi-step form flows
("execute buttons"): it builds steps from configured groups, collects and
validates input, submits it to an external Step Processor and interprets the
processor's answer to advance, confirm, exit or complete.
"""

from flow_execution.domain import (
    FieldDefinition,
    FieldMapping,
    FieldType,
    FlowDefinition,
    Group,
    NodeMapping,
)
from flow_execution.state import (
    ExecutionSession,
    FlowPhase,
)
from flow_execution.schemas import (
    ConfirmationPrompt,
    ExecutionResult,
    ExitData,
    StepResult,
)
from flow_execution.execution import FlowExecutionDriver, combined_step, resolve

__all__ = [
    # Domain Layer
    "FieldDefinition",
    "FieldMapping",
    "FieldType",
    "FlowDefinition",
    "Group",
    "NodeMapping",
    # State Layer
    "ExecutionSession",
    "FlowPhase",
    # Schemas
    "ConfirmationPrompt",
    "ExecutionResult",
    "ExitData",
    "StepResult",
    # Execution Layer
    "FlowExecutionDriver",
    "combined_step",
    "resolve",
]
