"""
Execution Layer - Flow Execution State Machine

Defines the FlowExecutionDriver (deterministic state machine) and the
components it coordinates: step path building, form state, validation,
variable resolution and the field rendering contract.
"""

from flow_execution.execution.engine import FlowExecutionDriver
from flow_execution.execution.form_state import FormStateStore
from flow_execution.execution.step_path import StepPathBuilder, combined_step
from flow_execution.execution.validator import Validator
from flow_execution.execution.variables import resolve


__all__ = [
    "FlowExecutionDriver",
    "FormStateStore",
    "StepPathBuilder",
    "Validator",
    "combined_step",
    "resolve",
]
