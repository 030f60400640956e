"""
State Layer - Runtime Data Models

Defines the runtime state of an execution session: the state machine phase,
the step path taken, entered values and accumulated context data.
"""

from flow_execution.state.models import (
    ArrayData,
    ExecutionSession,
    FlowPhase,
    FormData,
    StepPath,
)

__all__ = [
    "ArrayData",
    "ExecutionSession",
    "FlowPhase",
    "FormData",
    "StepPath",
]
