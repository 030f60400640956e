"""
API Layer - Request/Response Schemas

Pydantic models for API request and response validation.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..execution.rendering import StepView


class StartExecutionRequest(BaseModel):
    button_id: str
    user_id: Optional[str] = None


class FieldValue(BaseModel):
    value: Any = None


class ConfirmationAnswer(BaseModel):
    answer: bool


class RowCountResponse(BaseModel):
    row_count: int


class TransitionResponse(BaseModel):
    transition: str
    from_step: int
    to_step: int
    revisited: bool = False
    errors: Dict[str, str] = {}
    view: Optional[StepView] = None


class SessionResponse(BaseModel):
    session_id: str
    button_id: str
    title: str
    view: StepView
