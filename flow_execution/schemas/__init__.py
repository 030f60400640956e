"""
Schemas - Step Processor Wire Models

Defines the Pydantic request/response models exchanged with the external
Step Processor and the tagged union its responses are parsed into.
"""

from flow_execution.schemas.processor import (
    ConfirmationAnswerRequest,
    ConfirmationPrompt,
    ConfirmationRequired,
    ExecuteRequest,
    ExecutionResult,
    ExitData,
    FlowExited,
    NextGroup,
    ProcessorResponse,
    StepResult,
    TerminalResult,
    parse_processor_response,
)

__all__ = [
    "ConfirmationAnswerRequest",
    "ConfirmationPrompt",
    "ConfirmationRequired",
    "ExecuteRequest",
    "ExecutionResult",
    "ExitData",
    "FlowExited",
    "NextGroup",
    "ProcessorResponse",
    "StepResult",
    "TerminalResult",
    "parse_processor_response",
]
