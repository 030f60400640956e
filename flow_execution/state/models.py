"""
State Layer - Runtime Data Models

This module defines the runtime state of one execution session: which phase
the state machine is in, the path of Steps taken so far, the values the user
has entered, and the context data accumulated from the Step Processor.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..schemas.processor import ConfirmationPrompt, ExecutionResult, ExitData


class FlowPhase(str, Enum):
    """
    States of the execution state machine.

    COLLECTING_INPUT: The current Step is editable.
    SUBMITTING: A request is in flight. Nothing else may be submitted.
    AWAITING_CONFIRMATION: The processor asked a Yes/No question.
    EXITED: The flow reached an exit node (terminal).
    COMPLETED: The processor returned a final result (terminal).
    """
    COLLECTING_INPUT = "COLLECTING_INPUT"
    SUBMITTING = "SUBMITTING"
    AWAITING_CONFIRMATION = "AWAITING_CONFIRMATION"
    EXITED = "EXITED"
    COMPLETED = "COMPLETED"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowPhase.EXITED, FlowPhase.COMPLETED)


# FormData: field_key -> scalar value. Checkboxes hold 'True' / 'False'.
FormData = Dict[str, Any]

# ArrayData: array_field_name -> rows of field_key -> value.
ArrayData = Dict[str, List[Dict[str, Any]]]

# A Step is the ids of the groups displayed together.
StepPath = List[List[str]]


class ExecutionSession(BaseModel):
    """
    Read-only snapshot of one execution session.
    """
    session_id: str
    button_id: str
    phase: FlowPhase
    current_step: int
    step_path: StepPath = Field(default_factory=list)
    form_data: FormData = Field(default_factory=dict)
    array_data: ArrayData = Field(default_factory=dict)
    context_data: Optional[Dict[str, Any]] = None
    errors: Dict[str, str] = Field(default_factory=dict)
    confirmation_prompt: Optional[ConfirmationPrompt] = None
    exit_data: Optional[ExitData] = None
    execution_result: Optional[ExecutionResult] = None
