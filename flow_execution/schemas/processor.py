"""
Schemas - Step Processor Wire Models

Pydantic models for the requests sent to the external Step Processor and the
responses it returns. The processor speaks camelCase JSON; Python code uses
the snake_case attribute names and dumps with by_alias=True.

A processor response is one of four mutually exclusive shapes. Rather than
carrying four independently optional fields around, parse_processor_response()
classifies the raw JSON once into a tagged union (ProcessorResponse) and the
engine matches on it.
"""

import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ==============================================================================
# Requests
# ==============================================================================

class ExecuteRequest(WireModel):
    """Normal submission of the current step's data."""
    button_id: str
    execute_parameters: Dict[str, Any]
    user_id: str
    current_group_node_id: Optional[str] = None
    existing_context_data: Optional[Dict[str, Any]] = None


class ConfirmationAnswerRequest(WireModel):
    """Answer to a confirmation prompt. Replaces fresh form data with the pending context."""
    button_id: str
    execute_parameters: Dict[str, Any]
    user_id: str
    user_confirmation_response: bool
    pending_context_data: Any = None


# ==============================================================================
# Response payloads
# ==============================================================================

StepResultStatus = Literal["completed", "failed", "skipped"]


class StepResult(WireModel):
    """Outcome of a single node executed by the processor."""
    node: Optional[str] = None
    step: Optional[str] = None
    status: StepResultStatus
    output: Any = None
    error: Optional[str] = None
    request_url: Optional[str] = None
    request_body: Optional[str] = None
    http_method: Optional[str] = None


class ExecutionResult(WireModel):
    """Terminal outcome of a flow, shown once execution has completed."""
    success: bool = False
    results: List[StepResult] = Field(default_factory=list)
    error: Optional[str] = None
    context_data: Optional[Dict[str, Any]] = None
    message: Optional[str] = None


class ConfirmationPrompt(WireModel):
    """
    A Yes/No question the processor needs answered before it can continue.

    pending_context_data is opaque to the engine: it is stored as received and
    echoed back unchanged with the answer.
    """
    prompt_message: str = ""
    yes_button_label: str = "Yes"
    no_button_label: str = "No"
    pending_context_data: Any = None
    show_location_map: bool = False
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_location(self) -> bool:
        return bool(self.show_location_map and self.latitude and self.longitude)

    @computed_field
    @property
    def map_url(self) -> Optional[str]:
        if not self.has_location:
            return None
        return f"https://www.google.com/maps/search/?api=1&query={self.latitude},{self.longitude}"

    def static_map_url(self, api_key: Optional[str]) -> Optional[str]:
        """Static map image for the prompt. Requires a Maps API key."""
        if not self.has_location or not api_key:
            return None
        center = f"{self.latitude},{self.longitude}"
        return (
            "https://maps.googleapis.com/maps/api/staticmap"
            f"?center={center}&zoom=15&size=600x300&maptype=roadmap"
            f"&markers={quote('color:red|' + center, safe=':,')}&key={api_key}"
        )


class ExitData(WireModel):
    exit_message: str = ""
    show_restart_button: bool = False


# ==============================================================================
# Response variants (tagged union)
# ==============================================================================

class ConfirmationRequired(BaseModel):
    kind: Literal["confirmation"] = "confirmation"
    prompt: ConfirmationPrompt
    context_data: Optional[Dict[str, Any]] = None


class FlowExited(BaseModel):
    kind: Literal["exit"] = "exit"
    exit_data: ExitData
    context_data: Optional[Dict[str, Any]] = None


class NextGroup(BaseModel):
    kind: Literal["next_group"] = "next_group"
    group_id: str
    node_id: Optional[str] = None
    label: Optional[str] = None
    context_data: Optional[Dict[str, Any]] = None
    # Kept so an unknown group can still be reported as a terminal result.
    fallback: ExecutionResult = Field(default_factory=ExecutionResult)


class TerminalResult(BaseModel):
    kind: Literal["terminal"] = "terminal"
    result: ExecutionResult
    context_data: Optional[Dict[str, Any]] = None


ProcessorResponse = Annotated[
    Union[ConfirmationRequired, FlowExited, NextGroup, TerminalResult],
    Field(discriminator="kind"),
]


def parse_processor_response(raw: Any) -> ProcessorResponse:
    """
    Classifies a raw processor response into exactly one variant.

    Precedence follows the processor's own contract: a confirmation request
    wins over an exit, an exit over a next group, and anything else is a
    terminal result. No schema validation is enforced on the terminal shape:
    a malformed body is reported with whatever fields it has and
    success=False unless it says otherwise.
    """
    if not isinstance(raw, dict):
        logger.warning(f"Processor returned a non-object body: {type(raw).__name__}")
        return TerminalResult(
            result=ExecutionResult(success=False, error="Malformed processor response")
        )

    context_data = raw.get("contextData")
    if not isinstance(context_data, dict):
        context_data = None

    confirmation = raw.get("confirmationData")
    if raw.get("requiresConfirmation") and isinstance(confirmation, dict):
        prompt = ConfirmationPrompt.model_validate(
            {**_present(confirmation), "pendingContextData": raw.get("pendingContextData")}
        )
        return ConfirmationRequired(prompt=prompt, context_data=context_data)

    exit_data = raw.get("exitData")
    if isinstance(exit_data, dict):
        return FlowExited(
            exit_data=ExitData.model_validate(_present(exit_data)), context_data=context_data
        )

    terminal = _terminal_result(raw, context_data)

    next_group = raw.get("nextGroupNode")
    if isinstance(next_group, dict) and next_group.get("groupId"):
        return NextGroup(
            group_id=str(next_group["groupId"]),
            node_id=next_group.get("id"),
            label=next_group.get("label"),
            context_data=context_data,
            fallback=terminal,
        )

    return TerminalResult(result=terminal, context_data=context_data)


def _present(data: Dict[str, Any]) -> Dict[str, Any]:
    # Null keys fall back to model defaults.
    return {key: value for key, value in data.items() if value is not None}


def _terminal_result(raw: Dict[str, Any], context_data: Optional[Dict[str, Any]]) -> ExecutionResult:
    results = []
    for item in raw.get("results") or []:
        try:
            results.append(StepResult.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping unreadable step result: {e}")

    error = raw.get("error")
    message = raw.get("message")
    return ExecutionResult(
        success=bool(raw.get("success", False)),
        results=results,
        error=str(error) if error is not None else None,
        context_data=context_data,
        message=str(message) if message is not None else None,
    )
